"""
Composition root for the vaccination services.

Wires stores and services around one request-scoped Session. The API layer
gets the bundle through ``get_services``; tests call ``build_services``
directly with their own session, clock and notification sink.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.vaccination.alerts_service import AlertsService
from app.services.vaccination.application_service import ApplicationService
from app.services.vaccination.catalog_service import CatalogService
from app.services.vaccination.coverage_service import CoverageService
from app.services.vaccination.inventory_service import InventoryService
from app.services.vaccination.notifications import LoggingNotificationSink
from app.services.vaccination.protocols import NotificationSink, UserDirectory
from app.services.vaccination.scheduling_service import SchedulingService
from app.services.vaccination.stores import (
    ApplicationStore,
    BatchStore,
    SchedulingStore,
    SqlUserDirectory,
    VaccineStore,
)
from app.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)

_default_sink = LoggingNotificationSink()


@dataclass
class VaccinationServices:
    catalog: CatalogService
    inventory: InventoryService
    scheduling: SchedulingService
    applications: ApplicationService
    alerts: AlertsService
    coverage: CoverageService


def build_services(
    db: Session,
    notifier: Optional[NotificationSink] = None,
    clock: Clock = utc_now,
    users: Optional[UserDirectory] = None,
) -> VaccinationServices:
    """
    Create the full service bundle for a session.

    Args:
        db: Session owning the unit of work
        notifier: Notification sink (defaults to the logging sink)
        clock: Source of "now" (naive UTC)
        users: User directory (defaults to the SQL-backed one)

    Returns:
        Wired VaccinationServices
    """
    notifier = notifier or _default_sink
    users = users or SqlUserDirectory(db)

    vaccines = VaccineStore(db)
    batches = BatchStore(db)
    schedulings = SchedulingStore(db)
    applications = ApplicationStore(db)

    return VaccinationServices(
        catalog=CatalogService(db, vaccines, batches, clock=clock),
        inventory=InventoryService(db, batches, vaccines, clock=clock),
        scheduling=SchedulingService(
            db, schedulings, applications, vaccines, users, notifier=notifier, clock=clock
        ),
        applications=ApplicationService(
            db, applications, schedulings, batches, vaccines, users, notifier=notifier, clock=clock
        ),
        alerts=AlertsService(vaccines, batches, users=users, notifier=notifier, clock=clock),
        coverage=CoverageService(vaccines, applications, users),
    )


def get_services(db: Session = Depends(get_db)) -> VaccinationServices:
    """FastAPI dependency returning the services bound to the request session"""
    return build_services(db)
