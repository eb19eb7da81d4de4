"""
Collaborator interfaces consumed by the vaccination services.

The engine only needs read access to the user directory and a
fire-and-forget notification outlet; both are injected by the composition
root so tests can swap them.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol

from app.models.vaccination.types import UserRole

if TYPE_CHECKING:
    from app.services.vaccination.notifications import NotificationEvent


@dataclass(frozen=True)
class UserSummary:
    id: int
    name: str
    email: str
    cpf: str
    role: UserRole
    coren: Optional[str] = None
    is_active: bool = True

    @property
    def is_nurse(self) -> bool:
        return self.role == UserRole.NURSE

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER


class UserDirectory(Protocol):
    """Read-only lookup of users."""

    def get_user(self, user_id: int) -> Optional[UserSummary]:
        """
        Get a user by id.

        Returns:
            The user summary, or None when the id is unknown or deleted
        """
        ...

    def list_active(self, role: Optional[UserRole] = None) -> List[UserSummary]:
        """Active, non-deleted users, optionally restricted to one role"""
        ...


class NotificationSink(Protocol):
    """Outlet for scheduling/application events."""

    def publish(self, event: "NotificationEvent") -> None:
        """
        Deliver an event. Implementations may raise; callers treat delivery
        as fire-and-forget and only log failures.
        """
        ...
