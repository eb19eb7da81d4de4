"""Notification events emitted after commits and by the on-demand stock checks"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from app.services.vaccination.protocols import NotificationSink
from app.utils.time_helpers import utc_now

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    SCHEDULING_CREATED = "SCHEDULING_CREATED"
    SCHEDULING_CONFIRMED = "SCHEDULING_CONFIRMED"
    SCHEDULING_CANCELLED = "SCHEDULING_CANCELLED"
    NURSE_CHANGED = "NURSE_CHANGED"
    REMINDER = "REMINDER"
    VACCINE_APPLIED = "VACCINE_APPLIED"
    LOW_STOCK = "LOW_STOCK"
    BATCH_EXPIRING = "BATCH_EXPIRING"


@dataclass(frozen=True)
class NotificationEvent:
    type: NotificationType
    user_id: int
    title: str
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)


class LoggingNotificationSink:
    """Default sink: writes events to the application log"""

    def publish(self, event: NotificationEvent) -> None:
        logger.info(f"[{event.type.value}] user={event.user_id} {event.title}: {event.message}")


def notify(sink: Optional[NotificationSink], events: Iterable[NotificationEvent]) -> int:
    """Publish events one by one; a failing delivery is logged and skipped.

    Returns the number of events delivered.
    """
    delivered = 0
    if sink is None:
        return delivered
    for event in events:
        try:
            sink.publish(event)
            delivered += 1
        except Exception as e:
            logger.error(f"Failed to deliver {event.type.value} notification to user {event.user_id}: {e}")
    return delivered
