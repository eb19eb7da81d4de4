"""SQL-backed user directory"""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.user import User
from app.models.vaccination.types import UserRole
from app.services.vaccination.protocols import UserSummary
from app.services.vaccination.stores.base import retry_read


def _summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        cpf=user.cpf,
        role=user.role,
        coren=user.coren,
        is_active=bool(user.is_active),
    )


class SqlUserDirectory:
    """Reads users from the shared ``users`` table"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(User).filter(User.deleted_at.is_(None))

    @retry_read
    def get_user(self, user_id: int) -> Optional[UserSummary]:
        user = self._query().filter(User.id == user_id).first()
        return _summary(user) if user is not None else None

    @retry_read
    def list_active(self, role: Optional[UserRole] = None) -> List[UserSummary]:
        query = self._query().filter(User.is_active.is_(True))
        if role is not None:
            query = query.filter(User.role == role)
        return [_summary(user) for user in query.order_by(User.id).all()]
