"""
Requesting user for the vaccination endpoints.

Tokens are authenticated by the gateway in front of this service; the API
only reads the integer ``sub`` claim to know who records an application.
"""
import base64
import binascii
import json
from typing import Optional

from fastapi import Header, HTTPException, status

BEARER = "bearer"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def subject_from_token(token: str) -> int:
    """Return the user id stored in the payload segment of a JWT.

    Raises:
        ValueError: when the token has no payload segment or ``sub`` is not an integer
    """
    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        raise ValueError("Token must have three segments")
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Token payload is not valid JSON") from exc
    if not isinstance(claims, dict) or claims.get("sub") in (None, ""):
        raise ValueError("Token has no subject")
    return int(claims["sub"])


def get_current_user_id(authorization: Optional[str] = Header(None)) -> int:
    """FastAPI dependency: id of the user behind ``Authorization: Bearer <jwt>``"""
    if not authorization:
        raise _unauthorized("Missing token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != BEARER or not token.strip():
        raise _unauthorized("Invalid Authorization format")
    try:
        return subject_from_token(token.strip())
    except (ValueError, TypeError) as exc:
        raise _unauthorized("Invalid token") from exc
