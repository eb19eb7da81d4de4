"""
Scheduling engine.

Creates and validates dose appointments. Status rules:

    SCHEDULED -> CONFIRMED | CANCELLED | COMPLETED
    CONFIRMED -> CANCELLED | COMPLETED
    CANCELLED, COMPLETED are terminal

COMPLETED is only reached through the application engine.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.vaccination import SchedulingStatus, Vaccine, VaccineScheduling
from app.services.vaccination.commands import Page, SchedulingFilters
from app.services.vaccination.errors import (
    DuplicateSchedulingError,
    IntervalNotMetError,
    InvalidDoseNumberError,
    InvalidSchedulingDateError,
    InvalidStatusTransitionError,
    MissingPreviousDoseError,
    NotFoundError,
    SchedulingAlreadyCompletedError,
    ValidationError,
)
from app.services.vaccination.notifications import NotificationEvent, NotificationType, notify
from app.services.vaccination.protocols import NotificationSink, UserDirectory, UserSummary
from app.services.vaccination.stores import ApplicationStore, SchedulingStore, VaccineStore
from app.services.vaccination.stores.scheduling_store import OPEN_STATUSES
from app.utils.time_helpers import Clock, days_between, end_of_day, month_days, start_of_day, to_naive_utc, utc_now

logger = logging.getLogger(__name__)

# Transitions reachable through update_scheduling
UPDATE_TRANSITIONS = {
    SchedulingStatus.SCHEDULED: {SchedulingStatus.CONFIRMED, SchedulingStatus.CANCELLED},
    SchedulingStatus.CONFIRMED: {SchedulingStatus.CANCELLED},
}

UPDATABLE_FIELDS = {"status", "assigned_nurse_id", "scheduled_date", "notes"}


class SchedulingService:
    def __init__(
        self,
        db: Session,
        schedulings: SchedulingStore,
        applications: ApplicationStore,
        vaccines: VaccineStore,
        users: UserDirectory,
        notifier: Optional[NotificationSink] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.schedulings = schedulings
        self.applications = applications
        self.vaccines = vaccines
        self.users = users
        self.notifier = notifier
        self.clock = clock

    # ============ CREATE ============
    def create_scheduling(
        self,
        user_id: int,
        vaccine_id: int,
        scheduled_date: datetime,
        dose_number: int,
        nurse_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> VaccineScheduling:
        scheduled_date = to_naive_utc(scheduled_date)
        patient = self._require_user(user_id)
        nurse = self._require_nurse(nurse_id) if nurse_id is not None else None
        vaccine = self._require_vaccine(vaccine_id)

        if scheduled_date <= self.clock():
            raise InvalidSchedulingDateError()
        if dose_number < 1 or dose_number > vaccine.doses_required:
            raise InvalidDoseNumberError(vaccine.id, vaccine.doses_required, dose_number)
        if self.schedulings.find_live(user_id, vaccine_id, dose_number):
            raise DuplicateSchedulingError()
        self._check_dose_sequence(user_id, vaccine, dose_number, scheduled_date)

        scheduling = VaccineScheduling(
            user_id=user_id,
            vaccine_id=vaccine_id,
            assigned_nurse_id=nurse_id,
            scheduled_date=scheduled_date,
            dose_number=dose_number,
            status=SchedulingStatus.SCHEDULED,
            notes=notes.strip() if notes else None,
        )
        try:
            self.schedulings.add(scheduling)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateSchedulingError()
        self.db.refresh(scheduling)
        logger.info(
            f"Scheduling {scheduling.id} created: user {user_id}, vaccine {vaccine_id}, "
            f"dose {dose_number} on {scheduled_date.isoformat()}"
        )

        when = scheduled_date.strftime("%Y-%m-%d %H:%M")
        events = [self._event(
            NotificationType.SCHEDULING_CREATED, patient.id, scheduling,
            "Vaccination scheduled", f"Dose {dose_number} of {vaccine.name} scheduled for {when}",
        )]
        if nurse:
            events.append(self._event(
                NotificationType.SCHEDULING_CREATED, nurse.id, scheduling,
                "New vaccination assigned", f"{patient.name} - {vaccine.name} dose {dose_number} on {when}",
            ))
        notify(self.notifier, events)
        return scheduling

    # ============ READS ============
    def get_scheduling(self, scheduling_id: int) -> VaccineScheduling:
        scheduling = self.schedulings.get(scheduling_id)
        if not scheduling:
            raise NotFoundError.for_entity("Vaccine scheduling", scheduling_id)
        return scheduling

    def list_schedulings(self, filters: SchedulingFilters, page: int, per_page: int) -> Page[VaccineScheduling]:
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must be before end_date")
        return self.schedulings.list(filters, page, per_page)

    def get_schedulings_by_date(
        self, day: Optional[date] = None, nurse_id: Optional[int] = None
    ) -> List[VaccineScheduling]:
        day = day or self.clock().date()
        return self.schedulings.list_between(start_of_day(day), end_of_day(day), nurse_id=nurse_id)

    def get_monthly(self, nurse_id: int, year: int, month: int) -> Dict[str, List[VaccineScheduling]]:
        """Schedulings of a nurse keyed by ISO date; every day of the month is present"""
        if month < 1 or month > 12:
            raise ValidationError("Month must be between 1 and 12")
        if year < 1:
            raise ValidationError("Invalid year")
        if not self.users.get_user(nurse_id):
            raise NotFoundError.for_entity("Nurse", nurse_id)
        self._require_nurse(nurse_id)

        days = month_days(year, month)
        grouped: Dict[str, List[VaccineScheduling]] = {d.isoformat(): [] for d in days}
        for scheduling in self.schedulings.list_between(
            start_of_day(days[0]), end_of_day(days[-1]), nurse_id=nurse_id
        ):
            grouped[scheduling.scheduled_date.date().isoformat()].append(scheduling)
        return grouped

    # ============ UPDATE ============
    def update_scheduling(self, scheduling_id: int, patch: Dict[str, Any]) -> VaccineScheduling:
        scheduling = self.get_scheduling(scheduling_id)
        self._ensure_mutable(scheduling)

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if not patch:
            raise ValidationError("At least one field must be provided for update")

        previous_status = scheduling.status
        previous_nurse_id = scheduling.assigned_nurse_id
        changes: Dict[str, Any] = {}

        # Validate the whole patch before touching the row
        if patch.get("status") is not None:
            target = SchedulingStatus(patch["status"])
            if target != scheduling.status:
                if target not in UPDATE_TRANSITIONS.get(scheduling.status, set()):
                    message = None
                    if target == SchedulingStatus.COMPLETED:
                        message = "A scheduling is completed only by recording its application"
                    raise InvalidStatusTransitionError(scheduling.status, target, message=message)
                changes["status"] = target

        if "assigned_nurse_id" in patch:
            nurse_id = patch["assigned_nurse_id"]
            if nurse_id is not None:
                self._require_nurse(nurse_id)
            changes["assigned_nurse_id"] = nurse_id

        if patch.get("scheduled_date") is not None:
            new_date = to_naive_utc(patch["scheduled_date"])
            if new_date <= self.clock():
                raise InvalidSchedulingDateError()
            vaccine = self._require_vaccine(scheduling.vaccine_id)
            self._check_interval(scheduling.user_id, vaccine, scheduling.dose_number, new_date)
            changes["scheduled_date"] = new_date

        if "notes" in patch:
            changes["notes"] = patch["notes"].strip() if patch["notes"] else None

        for field, value in changes.items():
            setattr(scheduling, field, value)

        try:
            self.db.commit()
        except IntegrityError:
            # Reviving a cancelled slot is refused above; this only guards the live index
            self.db.rollback()
            raise DuplicateSchedulingError()
        self.db.refresh(scheduling)

        notify(self.notifier, self._update_events(scheduling, previous_status, previous_nurse_id))
        return scheduling

    def cancel_scheduling(self, scheduling_id: int) -> VaccineScheduling:
        return self.update_scheduling(scheduling_id, {"status": SchedulingStatus.CANCELLED})

    # ============ REMINDERS ============
    def send_reminders(self, within_hours: int = 24) -> int:
        """Notify patients and nurses of open schedulings due within the window"""
        if within_hours < 1:
            raise ValidationError("within_hours must be at least 1")
        now = self.clock()
        due = self.schedulings.list_between(now, now + timedelta(hours=within_hours), statuses=OPEN_STATUSES)
        events = []
        for scheduling in due:
            when = scheduling.scheduled_date.strftime("%Y-%m-%d %H:%M")
            vaccine_name = scheduling.vaccine.name if scheduling.vaccine else f"vaccine {scheduling.vaccine_id}"
            events.append(self._event(
                NotificationType.REMINDER, scheduling.user_id, scheduling,
                "Vaccination reminder", f"Dose {scheduling.dose_number} of {vaccine_name} on {when}",
            ))
            if scheduling.assigned_nurse_id:
                events.append(self._event(
                    NotificationType.REMINDER, scheduling.assigned_nurse_id, scheduling,
                    "Upcoming vaccination", f"Dose {scheduling.dose_number} of {vaccine_name} on {when}",
                ))
        notify(self.notifier, events)
        logger.info(f"Sent reminders for {len(due)} scheduling(s) due in the next {within_hours}h")
        return len(due)

    # ============ RULES ============
    def _check_dose_sequence(self, user_id: int, vaccine: Vaccine, dose_number: int, scheduled_date: datetime):
        if dose_number > 1:
            applied = {a.dose_number for a in self.applications.list_for_user_vaccine(user_id, vaccine.id)}
            live = {s.dose_number for s in self.schedulings.list_live_for_user_vaccine(user_id, vaccine.id)}
            missing = [d for d in range(1, dose_number) if d not in applied and d not in live]
            if missing:
                raise MissingPreviousDoseError(
                    f"Dose {missing[0]} must be applied or scheduled before dose {dose_number}",
                    missing_doses=missing,
                )
        self._check_interval(user_id, vaccine, dose_number, scheduled_date)

    def _check_interval(self, user_id: int, vaccine: Vaccine, dose_number: int, scheduled_date: datetime):
        """Dose d must land at least interval_days after dose d-1 and before an open booking of dose d+1"""
        if not vaccine.interval_days:
            return
        interval = timedelta(days=vaccine.interval_days)

        if dose_number > 1:
            previous = self.applications.find_by_dose(user_id, vaccine.id, dose_number - 1)
            if previous:
                reference = previous.application_date
            else:
                prior = self.schedulings.find_live(user_id, vaccine.id, dose_number - 1)
                reference = prior.scheduled_date if prior else None
            if reference is not None and reference + interval > scheduled_date:
                raise IntervalNotMetError(vaccine.interval_days, max(days_between(reference, scheduled_date), 0))

        following = self.schedulings.find_live(user_id, vaccine.id, dose_number + 1)
        if following is not None and following.status in OPEN_STATUSES:
            if scheduled_date + interval > following.scheduled_date:
                raise IntervalNotMetError(
                    vaccine.interval_days,
                    max(days_between(scheduled_date, following.scheduled_date), 0),
                    message=f"Dose {dose_number + 1} is already booked for "
                    f"{following.scheduled_date.strftime('%Y-%m-%d %H:%M')}",
                )

    @staticmethod
    def _ensure_mutable(scheduling: VaccineScheduling) -> None:
        if scheduling.status == SchedulingStatus.COMPLETED:
            raise SchedulingAlreadyCompletedError()
        if scheduling.status == SchedulingStatus.CANCELLED:
            raise InvalidStatusTransitionError(
                scheduling.status, message="Cancelled schedulings cannot be modified"
            )

    # ============ LOOKUPS ============
    def _require_user(self, user_id: int) -> UserSummary:
        user = self.users.get_user(user_id)
        if not user:
            raise NotFoundError.for_entity("User", user_id)
        return user

    def _require_nurse(self, nurse_id: int) -> UserSummary:
        nurse = self.users.get_user(nurse_id)
        if not nurse:
            raise ValidationError(f"Nurse with ID {nurse_id} not found")
        if not nurse.is_nurse:
            raise ValidationError(f"User {nurse_id} is not a nurse")
        if not nurse.is_active:
            raise ValidationError(f"Nurse {nurse_id} is not active")
        return nurse

    def _require_vaccine(self, vaccine_id: int) -> Vaccine:
        vaccine = self.vaccines.get(vaccine_id)
        if not vaccine:
            raise NotFoundError.for_entity("Vaccine", vaccine_id)
        return vaccine

    # ============ NOTIFICATIONS ============
    @staticmethod
    def _event(kind: NotificationType, user_id: int, scheduling: VaccineScheduling, title: str, message: str):
        return NotificationEvent(
            type=kind,
            user_id=user_id,
            title=title,
            message=message,
            payload={
                "scheduling_id": scheduling.id,
                "vaccine_id": scheduling.vaccine_id,
                "dose_number": scheduling.dose_number,
                "scheduled_date": scheduling.scheduled_date.isoformat(),
            },
        )

    def _update_events(self, scheduling, previous_status, previous_nurse_id) -> List[NotificationEvent]:
        events = []
        recipients = [scheduling.user_id]
        if scheduling.assigned_nurse_id:
            recipients.append(scheduling.assigned_nurse_id)

        if scheduling.status != previous_status:
            if scheduling.status == SchedulingStatus.CONFIRMED:
                kind, title = NotificationType.SCHEDULING_CONFIRMED, "Vaccination confirmed"
            else:
                kind, title = NotificationType.SCHEDULING_CANCELLED, "Vaccination cancelled"
                if previous_nurse_id and previous_nurse_id not in recipients:
                    recipients.append(previous_nurse_id)
            message = f"Scheduling {scheduling.id} (dose {scheduling.dose_number}) is now {scheduling.status.value}"
            events.extend(self._event(kind, uid, scheduling, title, message) for uid in recipients)

        if scheduling.assigned_nurse_id != previous_nurse_id and scheduling.status != SchedulingStatus.CANCELLED:
            message = f"Assigned nurse changed for scheduling {scheduling.id}"
            targets = [scheduling.user_id, scheduling.assigned_nurse_id, previous_nurse_id]
            events.extend(
                self._event(NotificationType.NURSE_CHANGED, uid, scheduling, "Nurse changed", message)
                for uid in dict.fromkeys(t for t in targets if t)
            )
        return events
