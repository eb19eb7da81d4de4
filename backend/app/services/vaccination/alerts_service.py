"""Inventory alerts computed on demand from the catalog and batch inventory"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from app.core.config import settings
from app.models.vaccination import Vaccine, VaccineBatch
from app.models.vaccination.types import UserRole
from app.services.vaccination.errors import ValidationError
from app.services.vaccination.notifications import NotificationEvent, NotificationType, notify
from app.services.vaccination.protocols import NotificationSink, UserDirectory
from app.services.vaccination.stores import BatchStore, VaccineStore
from app.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)

MIN_HORIZON_DAYS = 1
MAX_HORIZON_DAYS = 30

# Expiring batches inside this many days are flagged urgent
URGENT_EXPIRATION_DAYS = 7


class AlertType(str, enum.Enum):
    LOW_STOCK = "LOW_STOCK"
    EXPIRED_BATCH = "EXPIRED_BATCH"
    NEARING_EXPIRATION_BATCH = "NEARING_EXPIRATION_BATCH"


@dataclass
class Alert:
    alert_type: AlertType
    objects: list = field(default_factory=list)


@dataclass
class StockNotificationResult:
    low_stock: int
    batch_expiring: int
    recipients: int
    delivered: int


class AlertsService:
    """Alerts never change a batch status; notifications are sent only when asked"""

    def __init__(
        self,
        vaccines: VaccineStore,
        batches: BatchStore,
        users: Optional[UserDirectory] = None,
        notifier: Optional[NotificationSink] = None,
        clock: Clock = utc_now,
    ):
        self.vaccines = vaccines
        self.batches = batches
        self.users = users
        self.notifier = notifier
        self.clock = clock

    def get_alerts(self, horizon_days: Optional[int] = None) -> List[Alert]:
        horizon_days = self._horizon(horizon_days)
        today = self.clock().date()
        stock = self.batches.available_stock_by_vaccine(today)

        alerts = [
            Alert(AlertType.LOW_STOCK, self._low_stock(stock)),
            Alert(AlertType.EXPIRED_BATCH, self.batches.list_expired_unmarked(today)),
            Alert(
                AlertType.NEARING_EXPIRATION_BATCH,
                self.batches.list_expiring_between(today, today + timedelta(days=horizon_days)),
            ),
        ]
        alerts = [a for a in alerts if a.objects]
        logger.debug(f"Alerts computed: {[(a.alert_type.value, len(a.objects)) for a in alerts]}")
        return alerts

    def send_stock_notifications(self, horizon_days: Optional[int] = None) -> StockNotificationResult:
        """Notify every active manager of low stock and of batches nearing expiration"""
        horizon_days = self._horizon(horizon_days)
        today = self.clock().date()
        stock = self.batches.available_stock_by_vaccine(today)
        low_stock = self._low_stock(stock)
        expiring = self.batches.list_expiring_between(today, today + timedelta(days=horizon_days))

        managers = self.users.list_active(UserRole.MANAGER) if self.users else []
        if not managers:
            logger.warning("No active manager to notify about stock levels")

        events = []
        for manager in managers:
            events.extend(self._low_stock_event(manager.id, v, stock.get(v.id, 0)) for v in low_stock)
            events.extend(self._expiring_event(manager.id, b, today) for b in expiring)
        delivered = notify(self.notifier, events)

        logger.info(
            f"Stock notifications: {len(low_stock)} low stock, {len(expiring)} expiring batch(es), "
            f"{delivered}/{len(events)} delivered to {len(managers)} manager(s)"
        )
        return StockNotificationResult(
            low_stock=len(low_stock),
            batch_expiring=len(expiring),
            recipients=len(managers),
            delivered=delivered,
        )

    def _horizon(self, horizon_days: Optional[int]) -> int:
        if horizon_days is None:
            horizon_days = settings.NEARING_EXPIRATION_DAYS
        if horizon_days < MIN_HORIZON_DAYS or horizon_days > MAX_HORIZON_DAYS:
            raise ValidationError(
                f"horizon_days must be between {MIN_HORIZON_DAYS} and {MAX_HORIZON_DAYS}",
                horizon_days=horizon_days,
            )
        return horizon_days

    def _low_stock(self, stock: Dict[int, int]) -> List[Vaccine]:
        return [v for v in self.vaccines.list_with_min_stock() if stock.get(v.id, 0) < v.min_stock_level]

    @staticmethod
    def _low_stock_event(user_id: int, vaccine: Vaccine, current: int) -> NotificationEvent:
        percentage = round(current / vaccine.min_stock_level * 100) if vaccine.min_stock_level else 0
        urgency = "critical" if percentage < 50 else "high"
        return NotificationEvent(
            type=NotificationType.LOW_STOCK,
            user_id=user_id,
            title="Low stock",
            message=(
                f"{vaccine.name} stock is below the minimum: {current} dose(s) left, "
                f"minimum {vaccine.min_stock_level} ({percentage}%)"
            ),
            payload={
                "vaccine_id": vaccine.id,
                "vaccine_name": vaccine.name,
                "manufacturer": vaccine.manufacturer,
                "current_stock": current,
                "min_stock_level": vaccine.min_stock_level,
                "stock_percentage": percentage,
                "urgency": urgency,
            },
        )

    @staticmethod
    def _expiring_event(user_id: int, batch: VaccineBatch, today: date) -> NotificationEvent:
        days_left = (batch.expiration_date - today).days
        vaccine_name = batch.vaccine.name if batch.vaccine else f"vaccine {batch.vaccine_id}"
        return NotificationEvent(
            type=NotificationType.BATCH_EXPIRING,
            user_id=user_id,
            title="Batch nearing expiration",
            message=(
                f"Batch {batch.batch_number} of {vaccine_name} expires in {days_left} day(s) "
                f"({batch.expiration_date.isoformat()}), {batch.current_quantity} dose(s) left"
            ),
            payload={
                "batch_id": batch.id,
                "batch_number": batch.batch_number,
                "vaccine_id": batch.vaccine_id,
                "vaccine_name": vaccine_name,
                "expiration_date": batch.expiration_date.isoformat(),
                "days_until_expiration": days_left,
                "current_quantity": batch.current_quantity,
                "urgency": "urgent" if days_left <= URGENT_EXPIRATION_DAYS else "high",
            },
        )
