"""Tests for the scheduling engine"""
from datetime import date, timedelta, timezone

import pytest

from app.models.vaccination import SchedulingStatus, UserRole
from app.services.vaccination import ScheduledApplication, WalkInApplication, build_services
from app.services.vaccination.commands import SchedulingFilters
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
from app.services.vaccination.notifications import NotificationType


@pytest.fixture
def three_dose(make_vaccine):
    return make_vaccine(name="Hepatite B", doses_required=3, interval_days=30, is_obligatory=True)


class TestCreateScheduling:
    def test_creates_scheduled_booking(self, services, patient, nurse, three_dose, clock, sink):
        """A valid booking is stored as SCHEDULED and both parties are notified"""
        when = clock() + timedelta(days=1)
        scheduling = services.scheduling.create_scheduling(
            patient.id, three_dose.id, when, dose_number=1, nurse_id=nurse.id, notes="  first dose  "
        )

        assert scheduling.id is not None
        assert scheduling.status == SchedulingStatus.SCHEDULED
        assert scheduling.scheduled_date == when
        assert scheduling.notes == "first dose"
        created = sink.of_type(NotificationType.SCHEDULING_CREATED)
        assert {e.user_id for e in created} == {patient.id, nurse.id}
        assert created[0].payload["scheduling_id"] == scheduling.id

    def test_aware_datetime_is_stored_as_naive_utc(self, services, patient, three_dose, clock):
        """Timezone-aware input is normalized before comparison and storage"""
        brt = timezone(timedelta(hours=-3))
        local = (clock() + timedelta(days=2)).replace(hour=10, tzinfo=brt)
        scheduling = services.scheduling.create_scheduling(patient.id, three_dose.id, local, dose_number=1)

        assert scheduling.scheduled_date.tzinfo is None
        assert scheduling.scheduled_date.hour == 13

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(minutes=-1), timedelta(days=-3)])
    def test_rejects_non_future_date(self, services, patient, three_dose, clock, offset):
        with pytest.raises(InvalidSchedulingDateError):
            services.scheduling.create_scheduling(patient.id, three_dose.id, clock() + offset, dose_number=1)

    @pytest.mark.parametrize("dose", [0, 4])
    def test_rejects_dose_out_of_range(self, services, patient, three_dose, clock, dose):
        with pytest.raises(InvalidDoseNumberError) as exc:
            services.scheduling.create_scheduling(
                patient.id, three_dose.id, clock() + timedelta(days=1), dose_number=dose
            )
        assert exc.value.extra["doses_required"] == 3

    def test_unknown_patient_or_vaccine(self, services, patient, three_dose, clock):
        when = clock() + timedelta(days=1)
        with pytest.raises(NotFoundError):
            services.scheduling.create_scheduling(9999, three_dose.id, when, dose_number=1)
        with pytest.raises(NotFoundError):
            services.scheduling.create_scheduling(patient.id, 9999, when, dose_number=1)

    def test_assigned_user_must_be_active_nurse(self, services, patient, make_user, three_dose, clock):
        """Only active NURSE users can be assigned"""
        when = clock() + timedelta(days=1)
        employee = make_user(UserRole.EMPLOYEE)
        inactive = make_user(UserRole.NURSE, is_active=False)

        for nurse_id in (employee.id, inactive.id, 9999):
            with pytest.raises(ValidationError):
                services.scheduling.create_scheduling(
                    patient.id, three_dose.id, when, dose_number=1, nurse_id=nurse_id
                )

    def test_duplicate_live_scheduling(self, services, patient, three_dose, clock):
        """A dose can only have one live booking; cancelling frees the slot"""
        when = clock() + timedelta(days=1)
        first = services.scheduling.create_scheduling(patient.id, three_dose.id, when, dose_number=1)

        with pytest.raises(DuplicateSchedulingError):
            services.scheduling.create_scheduling(patient.id, three_dose.id, when + timedelta(hours=2), dose_number=1)

        services.scheduling.cancel_scheduling(first.id)
        again = services.scheduling.create_scheduling(patient.id, three_dose.id, when, dose_number=1)
        assert again.id != first.id

    def test_dose_requires_previous_dose(self, services, patient, three_dose, clock):
        """Dose 2 cannot be booked while dose 1 is neither applied nor booked"""
        with pytest.raises(MissingPreviousDoseError) as exc:
            services.scheduling.create_scheduling(
                patient.id, three_dose.id, clock() + timedelta(days=40), dose_number=2
            )
        assert exc.value.extra["missing_doses"] == [1]

    def test_dose_after_booked_previous_dose_respects_interval(self, services, patient, three_dose, clock):
        """With dose 1 only booked, dose 2 is measured from the booked date"""
        dose1_date = clock() + timedelta(days=1)
        services.scheduling.create_scheduling(patient.id, three_dose.id, dose1_date, dose_number=1)

        with pytest.raises(IntervalNotMetError) as exc:
            services.scheduling.create_scheduling(
                patient.id, three_dose.id, dose1_date + timedelta(days=29), dose_number=2
            )
        assert exc.value.extra["remaining_days"] == 1

        dose2 = services.scheduling.create_scheduling(
            patient.id, three_dose.id, dose1_date + timedelta(days=30), dose_number=2
        )
        assert dose2.dose_number == 2

    def test_dose_after_applied_previous_dose_respects_interval(
        self, services, patient, nurse, three_dose, make_batch, clock
    ):
        """With dose 1 applied, dose 2 is measured from the application date"""
        batch = make_batch(three_dose)
        applied = services.applications.create_application(
            WalkInApplication(patient.id, three_dose.id, 1, batch.id, "left deltoid"), requested_by_id=nurse.id
        )

        with pytest.raises(IntervalNotMetError):
            services.scheduling.create_scheduling(
                patient.id, three_dose.id, applied.application_date + timedelta(days=29, hours=23), dose_number=2
            )
        ok = services.scheduling.create_scheduling(
            patient.id, three_dose.id, applied.application_date + timedelta(days=30), dose_number=2
        )
        assert ok.status == SchedulingStatus.SCHEDULED


class TestUpdateScheduling:
    @pytest.fixture
    def scheduling(self, services, patient, nurse, three_dose, clock):
        return services.scheduling.create_scheduling(
            patient.id, three_dose.id, clock() + timedelta(days=1), dose_number=1, nurse_id=nurse.id
        )

    def test_confirm_notifies_patient_and_nurse(self, services, scheduling, patient, nurse, sink):
        updated = services.scheduling.update_scheduling(scheduling.id, {"status": SchedulingStatus.CONFIRMED})

        assert updated.status == SchedulingStatus.CONFIRMED
        confirmed = sink.of_type(NotificationType.SCHEDULING_CONFIRMED)
        assert {e.user_id for e in confirmed} == {patient.id, nurse.id}

    def test_confirmed_cannot_go_back_to_scheduled(self, services, scheduling):
        services.scheduling.update_scheduling(scheduling.id, {"status": "CONFIRMED"})
        with pytest.raises(InvalidStatusTransitionError):
            services.scheduling.update_scheduling(scheduling.id, {"status": "SCHEDULED"})

    def test_completed_is_not_reachable_by_update(self, services, scheduling):
        """COMPLETED is set only by recording the application"""
        with pytest.raises(InvalidStatusTransitionError) as exc:
            services.scheduling.update_scheduling(scheduling.id, {"status": SchedulingStatus.COMPLETED})
        assert exc.value.extra["target_status"] == "COMPLETED"

    def test_cancelled_is_terminal(self, services, scheduling, sink):
        cancelled = services.scheduling.cancel_scheduling(scheduling.id)
        assert cancelled.status == SchedulingStatus.CANCELLED
        assert sink.of_type(NotificationType.SCHEDULING_CANCELLED)

        with pytest.raises(InvalidStatusTransitionError):
            services.scheduling.update_scheduling(scheduling.id, {"notes": "too late"})

    def test_completed_is_immutable(self, services, scheduling, nurse, make_batch, three_dose):
        batch = make_batch(three_dose)
        services.applications.create_application(
            ScheduledApplication(scheduling.id, batch.id, "left deltoid"), requested_by_id=nurse.id
        )

        with pytest.raises(SchedulingAlreadyCompletedError):
            services.scheduling.update_scheduling(scheduling.id, {"notes": "edited"})
        with pytest.raises(SchedulingAlreadyCompletedError):
            services.scheduling.cancel_scheduling(scheduling.id)

    def test_reassign_nurse(self, services, scheduling, make_user, patient, nurse, sink):
        other = make_user(UserRole.NURSE)
        updated = services.scheduling.update_scheduling(scheduling.id, {"assigned_nurse_id": other.id})

        assert updated.assigned_nurse_id == other.id
        changed = sink.of_type(NotificationType.NURSE_CHANGED)
        assert {e.user_id for e in changed} == {patient.id, nurse.id, other.id}

    def test_reassign_to_non_nurse_leaves_row_untouched(self, services, scheduling, patient, nurse):
        """A rejected patch does not apply any of its fields"""
        with pytest.raises(ValidationError):
            services.scheduling.update_scheduling(
                scheduling.id, {"notes": "changed", "assigned_nurse_id": patient.id}
            )
        reloaded = services.scheduling.get_scheduling(scheduling.id)
        assert reloaded.notes is None
        assert reloaded.assigned_nurse_id == nurse.id

    def test_reschedule_to_past_rejected(self, services, scheduling, clock):
        with pytest.raises(InvalidSchedulingDateError):
            services.scheduling.update_scheduling(scheduling.id, {"scheduled_date": clock() - timedelta(hours=1)})

    def test_reschedule(self, services, scheduling, clock):
        new_date = clock() + timedelta(days=5)
        assert services.scheduling.update_scheduling(scheduling.id, {"scheduled_date": new_date}).scheduled_date == new_date

    def test_reschedule_keeps_interval_to_next_booked_dose(self, services, scheduling, patient, three_dose, clock):
        """Moving dose 1 closer to the booked dose 2 than the interval is refused"""
        dose2 = services.scheduling.create_scheduling(
            patient.id, three_dose.id, scheduling.scheduled_date + timedelta(days=30), dose_number=2
        )

        with pytest.raises(IntervalNotMetError) as exc:
            services.scheduling.update_scheduling(scheduling.id, {"scheduled_date": clock() + timedelta(days=25)})
        assert exc.value.extra["elapsed_days"] == 6
        assert services.scheduling.get_scheduling(scheduling.id).scheduled_date == clock() + timedelta(days=1)

        earlier = dose2.scheduled_date - timedelta(days=30)
        assert services.scheduling.update_scheduling(scheduling.id, {"scheduled_date": earlier}).scheduled_date == earlier

    def test_rebooking_cancelled_dose_respects_next_dose(self, services, scheduling, patient, three_dose, clock):
        dose2 = services.scheduling.create_scheduling(
            patient.id, three_dose.id, scheduling.scheduled_date + timedelta(days=30), dose_number=2
        )
        services.scheduling.cancel_scheduling(scheduling.id)

        with pytest.raises(IntervalNotMetError):
            services.scheduling.create_scheduling(
                patient.id, three_dose.id, dose2.scheduled_date - timedelta(days=10), dose_number=1
            )
        rebooked = services.scheduling.create_scheduling(
            patient.id, three_dose.id, dose2.scheduled_date - timedelta(days=30), dose_number=1
        )
        assert rebooked.status == SchedulingStatus.SCHEDULED

    def test_unknown_or_empty_patch(self, services, scheduling):
        with pytest.raises(ValidationError):
            services.scheduling.update_scheduling(scheduling.id, {})
        with pytest.raises(ValidationError):
            services.scheduling.update_scheduling(scheduling.id, {"dose_number": 2})


class TestQueries:
    def test_list_filters_by_status(self, services, patient, make_vaccine, clock):
        a = make_vaccine()
        b = make_vaccine()
        first = services.scheduling.create_scheduling(patient.id, a.id, clock() + timedelta(days=1), 1)
        services.scheduling.create_scheduling(patient.id, b.id, clock() + timedelta(days=2), 1)
        services.scheduling.cancel_scheduling(first.id)

        page = services.scheduling.list_schedulings(
            SchedulingFilters(status=SchedulingStatus.SCHEDULED), page=1, per_page=10
        )
        assert page.total == 1
        assert page.items[0].vaccine_id == b.id

    def test_list_rejects_inverted_range(self, services, clock):
        filters = SchedulingFilters(start_date=clock(), end_date=clock() - timedelta(days=1))
        with pytest.raises(ValidationError):
            services.scheduling.list_schedulings(filters, 1, 10)

    def test_by_date(self, services, patient, nurse, make_vaccine, clock):
        tomorrow = clock() + timedelta(days=1)
        services.scheduling.create_scheduling(patient.id, make_vaccine().id, tomorrow, 1, nurse_id=nurse.id)
        services.scheduling.create_scheduling(patient.id, make_vaccine().id, tomorrow + timedelta(days=1), 1)

        day = services.scheduling.get_schedulings_by_date(tomorrow.date())
        assert len(day) == 1
        assert services.scheduling.get_schedulings_by_date(tomorrow.date(), nurse_id=nurse.id)[0].id == day[0].id

    def test_monthly_has_every_day(self, services, patient, nurse, make_vaccine, clock):
        """Every day of the month is a key, empty days included"""
        when = clock() + timedelta(days=3)
        services.scheduling.create_scheduling(patient.id, make_vaccine().id, when, 1, nurse_id=nurse.id)

        monthly = services.scheduling.get_monthly(nurse.id, 2026, 3)
        assert len(monthly) == 31
        assert [s.scheduled_date for s in monthly[when.date().isoformat()]] == [when]
        assert monthly[date(2026, 3, 1).isoformat()] == []
        assert len(services.scheduling.get_monthly(nurse.id, 2026, 2)) == 28

    def test_monthly_validation(self, services, nurse, patient):
        with pytest.raises(ValidationError):
            services.scheduling.get_monthly(nurse.id, 2026, 13)
        with pytest.raises(ValidationError):
            services.scheduling.get_monthly(nurse.id, 2026, 0)
        with pytest.raises(NotFoundError):
            services.scheduling.get_monthly(9999, 2026, 3)
        with pytest.raises(ValidationError):
            services.scheduling.get_monthly(patient.id, 2026, 3)


class TestReminders:
    def test_only_open_schedulings_inside_window(self, services, patient, nurse, make_vaccine, clock, sink):
        soon = services.scheduling.create_scheduling(
            patient.id, make_vaccine().id, clock() + timedelta(hours=3), 1, nurse_id=nurse.id
        )
        services.scheduling.create_scheduling(patient.id, make_vaccine().id, clock() + timedelta(days=3), 1)
        cancelled = services.scheduling.create_scheduling(
            patient.id, make_vaccine().id, clock() + timedelta(hours=5), 1
        )
        services.scheduling.cancel_scheduling(cancelled.id)

        assert services.scheduling.send_reminders(within_hours=24) == 1
        reminders = sink.of_type(NotificationType.REMINDER)
        assert {e.user_id for e in reminders} == {patient.id, nurse.id}
        assert all(e.payload["scheduling_id"] == soon.id for e in reminders)

    def test_failing_sink_does_not_break_reminders(self, db, patient, make_vaccine, clock):
        class BrokenSink:
            def publish(self, event):
                raise RuntimeError("push gateway down")

        services = build_services(db, notifier=BrokenSink(), clock=clock)
        services.scheduling.create_scheduling(patient.id, make_vaccine().id, clock() + timedelta(hours=2), 1)
        assert services.scheduling.send_reminders(within_hours=24) == 1

    def test_window_must_be_positive(self, services):
        with pytest.raises(ValidationError):
            services.scheduling.send_reminders(within_hours=0)
