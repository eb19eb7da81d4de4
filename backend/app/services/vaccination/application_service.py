"""
Application engine.

Turns a scheduling (or a walk-in request) into an application record. Every
rule is checked before the first write; the stock decrement, the scheduling
completion and the application insert then share one transaction.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.vaccination import (
    BatchStatus,
    SchedulingStatus,
    Vaccine,
    VaccineApplication,
    VaccineBatch,
    VaccineScheduling,
)
from app.services.vaccination.commands import (
    ApplicationCommand,
    ApplicationFilters,
    Page,
    ScheduledApplication,
    WalkInApplication,
)
from app.services.vaccination.errors import (
    BatchNotAvailableError,
    ConflictingInputError,
    DuplicateApplicationError,
    ExceededDosesError,
    InsufficientStockError,
    IntervalNotMetError,
    InvalidDoseNumberError,
    InvalidStatusTransitionError,
    MissingPreviousDoseError,
    NotFoundError,
    SchedulingAlreadyCompletedError,
    UnauthorizedApplicationUpdateError,
    ValidationError,
)
from app.services.vaccination.history import UserHistory, build_user_history
from app.services.vaccination.notifications import NotificationEvent, NotificationType, notify
from app.services.vaccination.protocols import NotificationSink, UserDirectory, UserSummary
from app.services.vaccination.stores import ApplicationStore, BatchStore, SchedulingStore, VaccineStore
from app.services.vaccination.stores.scheduling_store import OPEN_STATUSES
from app.utils.time_helpers import Clock, days_between, utc_now

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"application_site", "observations"}


class ApplicationService:
    def __init__(
        self,
        db: Session,
        applications: ApplicationStore,
        schedulings: SchedulingStore,
        batches: BatchStore,
        vaccines: VaccineStore,
        users: UserDirectory,
        notifier: Optional[NotificationSink] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.applications = applications
        self.schedulings = schedulings
        self.batches = batches
        self.vaccines = vaccines
        self.users = users
        self.notifier = notifier
        self.clock = clock

    # ============ CREATE ============
    def create_application(self, command: ApplicationCommand, requested_by_id: int) -> VaccineApplication:
        now = self.clock()
        requester = self._require_user(requested_by_id)

        if isinstance(command, ScheduledApplication):
            scheduling = self.schedulings.get(command.scheduling_id)
            if not scheduling:
                raise NotFoundError.for_entity("Vaccine scheduling", command.scheduling_id)
            if scheduling.status == SchedulingStatus.COMPLETED:
                raise SchedulingAlreadyCompletedError()
            if scheduling.status == SchedulingStatus.CANCELLED:
                raise InvalidStatusTransitionError(
                    scheduling.status, SchedulingStatus.COMPLETED,
                    message="Cannot apply a vaccine for a cancelled scheduling",
                )
            patient = self._require_user(scheduling.user_id)
            vaccine = self._require_vaccine(scheduling.vaccine_id)
            dose_number = scheduling.dose_number
        elif isinstance(command, WalkInApplication):
            patient = self._require_user(command.user_id)
            vaccine = self._require_vaccine(command.vaccine_id)
            dose_number = command.dose_number
            if dose_number < 1:
                raise InvalidDoseNumberError(vaccine.id, vaccine.doses_required, dose_number)
            # Walk-ins complete an open booking of the same dose when there is one
            scheduling = self.schedulings.find_live(patient.id, vaccine.id, dose_number)
            if scheduling is not None and scheduling.status not in OPEN_STATUSES:
                scheduling = None
        else:
            raise ConflictingInputError()

        if scheduling is not None and scheduling.assigned_nurse_id:
            applier = self._require_user(scheduling.assigned_nurse_id)
        else:
            applier = requester
        self._validate_people(applier, patient)

        batch = self.batches.get(command.batch_id)
        if not batch:
            raise NotFoundError.for_entity("Vaccine batch", command.batch_id)
        self._validate_application(patient, vaccine, batch, dose_number, now)

        try:
            if not self.batches.decrement_stock(batch.id):
                raise InsufficientStockError(f"Batch {batch.batch_number} has no remaining doses")

            if scheduling is None:
                scheduling = VaccineScheduling(
                    user_id=patient.id,
                    vaccine_id=vaccine.id,
                    scheduled_date=now,
                    dose_number=dose_number,
                    status=SchedulingStatus.COMPLETED,
                    notes="Walk-in application",
                )
                self.schedulings.add(scheduling)
            else:
                scheduling.status = SchedulingStatus.COMPLETED

            application = VaccineApplication(
                scheduling_id=scheduling.id,
                batch_id=batch.id,
                applied_by_id=applier.id,
                user_id=patient.id,
                vaccine_id=vaccine.id,
                dose_number=dose_number,
                application_date=now,
                application_site=command.application_site.strip(),
                observations=command.observations.strip() if command.observations else None,
            )
            self.applications.add(application)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Unique violation while applying dose {dose_number} of vaccine {vaccine.id}: {e.orig}")
            raise DuplicateApplicationError(patient.id, vaccine.id, dose_number)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(application)
        self.db.refresh(batch)
        logger.info(
            f"Application {application.id}: dose {dose_number} of vaccine {vaccine.id} to user {patient.id} "
            f"from batch {batch.batch_number} (remaining {batch.current_quantity}, {batch.status.value})"
        )
        notify(self.notifier, [NotificationEvent(
            type=NotificationType.VACCINE_APPLIED,
            user_id=patient.id,
            title="Vaccine applied",
            message=f"Dose {dose_number} of {vaccine.name} applied",
            payload={
                "application_id": application.id,
                "scheduling_id": application.scheduling_id,
                "vaccine_id": vaccine.id,
                "dose_number": dose_number,
                "batch_number": batch.batch_number,
            },
        )])
        return application

    @staticmethod
    def _validate_people(applier: UserSummary, patient: UserSummary) -> None:
        if not applier.is_nurse:
            raise ValidationError("Only users with NURSE role can apply vaccines", applied_by_id=applier.id)
        if applier.id == patient.id:
            raise ValidationError("The applicator and the receiver cannot be the same person")
        if not applier.is_active or not patient.is_active:
            raise ValidationError("Both applicator and receiver must be active users")

    def _validate_application(
        self, patient: UserSummary, vaccine: Vaccine, batch: VaccineBatch, dose_number: int, now
    ) -> None:
        if batch.vaccine_id != vaccine.id:
            raise ValidationError(
                f"Batch {batch.batch_number} is not compatible with vaccine {vaccine.id}"
            )
        if batch.status != BatchStatus.AVAILABLE:
            raise BatchNotAvailableError(
                f"Batch {batch.batch_number} is not available (status: {batch.status.value})"
            )
        if batch.current_quantity < 1:
            raise InsufficientStockError(f"Batch {batch.batch_number} has no remaining doses")
        # A batch is usable through the whole expiration day
        if batch.expiration_date < now.date():
            raise BatchNotAvailableError(f"Batch {batch.batch_number} has expired")

        if dose_number > vaccine.doses_required:
            raise ExceededDosesError(vaccine.id, vaccine.doses_required)
        if self.applications.find_by_dose(patient.id, vaccine.id, dose_number):
            raise DuplicateApplicationError(patient.id, vaccine.id, dose_number)
        if self.applications.count_for_user_vaccine(patient.id, vaccine.id) >= vaccine.doses_required:
            raise ExceededDosesError(vaccine.id, vaccine.doses_required)

        if dose_number > 1:
            applied = {
                a.dose_number: a for a in self.applications.list_for_user_vaccine(patient.id, vaccine.id)
            }
            missing = [d for d in range(1, dose_number) if d not in applied]
            if missing:
                raise MissingPreviousDoseError("Previous doses must be applied", missing_doses=missing)

            if vaccine.interval_days:
                elapsed = days_between(applied[dose_number - 1].application_date, now)
                if elapsed < vaccine.interval_days:
                    raise IntervalNotMetError(vaccine.interval_days, elapsed)

    # ============ READS ============
    def get_application(self, application_id: int) -> VaccineApplication:
        application = self.applications.get(application_id)
        if not application:
            raise NotFoundError.for_entity("Vaccine application", application_id)
        return application

    def list_applications(
        self, filters: ApplicationFilters, page: int, per_page: int
    ) -> Page[VaccineApplication]:
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must be before end_date")
        return self.applications.list(filters, page, per_page)

    def get_user_history(self, user_id: int) -> UserHistory:
        self._require_user(user_id)
        return build_user_history(
            user_id,
            self.applications.list_for_user(user_id),
            self.vaccines.list_all(),
            issued_at=self.clock(),
        )

    # ============ UPDATE ============
    def update_application(
        self, application_id: int, patch: Dict[str, Any], requested_by_id: int
    ) -> VaccineApplication:
        """Edit site/observations; dose, patient and vaccine never change"""
        application = self.get_application(application_id)
        requester = self._require_user(requested_by_id)

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if not patch:
            raise ValidationError("At least one field must be provided for update")
        if requester.id != application.applied_by_id and not requester.is_manager:
            raise UnauthorizedApplicationUpdateError()

        if "application_site" in patch:
            site = (patch["application_site"] or "").strip()
            if not site:
                raise ValidationError("application_site cannot be empty")
            application.application_site = site
        if "observations" in patch:
            application.observations = patch["observations"].strip() if patch["observations"] else None

        self.db.commit()
        self.db.refresh(application)
        logger.info(f"Application {application.id} updated by user {requester.id}: {sorted(patch)}")
        return application

    # ============ LOOKUPS ============
    def _require_user(self, user_id: int) -> UserSummary:
        user = self.users.get_user(user_id)
        if not user:
            raise NotFoundError.for_entity("User", user_id)
        return user

    def _require_vaccine(self, vaccine_id: int) -> Vaccine:
        vaccine = self.vaccines.get(vaccine_id)
        if not vaccine:
            raise NotFoundError.for_entity("Vaccine", vaccine_id)
        return vaccine
