"""Tests for the application engine: dose rules, stock decrement and record edits"""
import threading
from datetime import timedelta

import pytest

from app.models.vaccination import BatchStatus, SchedulingStatus, UserRole, VaccineBatch
from app.schemas.vaccination import ApplicationCreate
from app.services.vaccination import ScheduledApplication, WalkInApplication, build_services
from app.services.vaccination.errors import (
    BatchNotAvailableError,
    ConflictingInputError,
    DuplicateApplicationError,
    ExceededDosesError,
    InsufficientStockError,
    IntervalNotMetError,
    InvalidStatusTransitionError,
    MissingPreviousDoseError,
    NotFoundError,
    SchedulingAlreadyCompletedError,
    UnauthorizedApplicationUpdateError,
    ValidationError,
)
from app.services.vaccination.notifications import NotificationType


@pytest.fixture
def hep_b(make_vaccine):
    return make_vaccine(name="Hepatite B", doses_required=3, interval_days=30, is_obligatory=True)


def walk_in(patient, vaccine, dose, batch, site="left deltoid"):
    return WalkInApplication(
        user_id=patient.id, vaccine_id=vaccine.id, dose_number=dose, batch_id=batch.id, application_site=site
    )


class TestScheduledApplication:
    def test_round_trip_completes_scheduling(self, services, patient, nurse, hep_b, make_batch, clock, db):
        """SCHEDULED -> COMPLETED through the application, then the scheduling is frozen"""
        batch = make_batch(hep_b, quantity=5)
        scheduling = services.scheduling.create_scheduling(
            patient.id, hep_b.id, clock() + timedelta(days=1), 1, nurse_id=nurse.id
        )

        application = services.applications.create_application(
            ScheduledApplication(scheduling.id, batch.id, " left deltoid ", observations="no reaction"),
            requested_by_id=nurse.id,
        )

        assert application.scheduling_id == scheduling.id
        assert application.dose_number == 1
        assert application.application_site == "left deltoid"
        assert application.application_date == clock()
        db.refresh(scheduling)
        assert scheduling.status == SchedulingStatus.COMPLETED
        assert db.get(VaccineBatch, batch.id).current_quantity == 4

        with pytest.raises(SchedulingAlreadyCompletedError):
            services.scheduling.update_scheduling(scheduling.id, {"status": SchedulingStatus.CONFIRMED})
        with pytest.raises(SchedulingAlreadyCompletedError):
            services.applications.create_application(
                ScheduledApplication(scheduling.id, batch.id, "right deltoid"), requested_by_id=nurse.id
            )

    def test_assigned_nurse_is_the_applier(self, services, patient, nurse, manager, hep_b, make_batch, clock):
        """The nurse on the booking is recorded even when someone else submits"""
        batch = make_batch(hep_b)
        scheduling = services.scheduling.create_scheduling(
            patient.id, hep_b.id, clock() + timedelta(days=1), 1, nurse_id=nurse.id
        )
        application = services.applications.create_application(
            ScheduledApplication(scheduling.id, batch.id, "left deltoid"), requested_by_id=manager.id
        )
        assert application.applied_by_id == nurse.id

    def test_cancelled_scheduling_cannot_be_applied(self, services, patient, nurse, hep_b, make_batch, clock):
        batch = make_batch(hep_b)
        scheduling = services.scheduling.create_scheduling(patient.id, hep_b.id, clock() + timedelta(days=1), 1)
        services.scheduling.cancel_scheduling(scheduling.id)

        with pytest.raises(InvalidStatusTransitionError):
            services.applications.create_application(
                ScheduledApplication(scheduling.id, batch.id, "left deltoid"), requested_by_id=nurse.id
            )

    def test_unknown_scheduling(self, services, nurse, hep_b, make_batch):
        batch = make_batch(hep_b)
        with pytest.raises(NotFoundError):
            services.applications.create_application(
                ScheduledApplication(9999, batch.id, "left deltoid"), requested_by_id=nurse.id
            )


class TestWalkInApplication:
    def test_walk_in_creates_completed_scheduling(self, services, patient, nurse, hep_b, make_batch, sink):
        batch = make_batch(hep_b)
        application = services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)

        scheduling = services.scheduling.get_scheduling(application.scheduling_id)
        assert scheduling.status == SchedulingStatus.COMPLETED
        assert scheduling.notes == "Walk-in application"
        assert application.applied_by_id == nurse.id

        applied = sink.of_type(NotificationType.VACCINE_APPLIED)
        assert len(applied) == 1
        assert applied[0].user_id == patient.id
        assert applied[0].payload["application_id"] == application.id

    def test_walk_in_completes_open_booking(self, services, patient, nurse, hep_b, make_batch, clock):
        """An open booking of the same dose is completed instead of creating a new one"""
        batch = make_batch(hep_b)
        booked = services.scheduling.create_scheduling(patient.id, hep_b.id, clock() + timedelta(days=3), 1)

        application = services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)

        assert application.scheduling_id == booked.id
        assert services.scheduling.get_scheduling(booked.id).status == SchedulingStatus.COMPLETED

    def test_applier_cannot_be_the_patient(self, services, nurse, hep_b, make_batch):
        batch = make_batch(hep_b)
        with pytest.raises(ValidationError) as exc:
            services.applications.create_application(walk_in(nurse, hep_b, 1, batch), nurse.id)
        assert "same person" in exc.value.message

    @pytest.mark.parametrize("role", [UserRole.EMPLOYEE, UserRole.MANAGER])
    def test_only_nurses_apply(self, services, patient, make_user, hep_b, make_batch, db, role):
        batch = make_batch(hep_b, quantity=3)
        requester = make_user(role)

        with pytest.raises(ValidationError) as exc:
            services.applications.create_application(walk_in(patient, hep_b, 1, batch), requester.id)
        assert exc.value.extra["applied_by_id"] == requester.id
        assert db.get(VaccineBatch, batch.id).current_quantity == 3

    def test_inactive_patient_or_nurse(self, services, patient, nurse, make_user, hep_b, make_batch, db):
        """Both sides of an application must be active users"""
        batch = make_batch(hep_b, quantity=3)
        inactive_patient = make_user(is_active=False)
        inactive_nurse = make_user(UserRole.NURSE, is_active=False)

        with pytest.raises(ValidationError):
            services.applications.create_application(walk_in(inactive_patient, hep_b, 1, batch), nurse.id)
        with pytest.raises(ValidationError):
            services.applications.create_application(walk_in(patient, hep_b, 1, batch), inactive_nurse.id)
        assert db.get(VaccineBatch, batch.id).current_quantity == 3

    def test_unknown_requester(self, services, patient, hep_b, make_batch):
        batch = make_batch(hep_b)
        with pytest.raises(NotFoundError):
            services.applications.create_application(walk_in(patient, hep_b, 1, batch), 9999)


class TestDoseRules:
    def test_dose_ordering(self, services, patient, nurse, hep_b, make_batch, clock):
        """Dose 2 without dose 1 fails, for bookings and applications alike"""
        batch = make_batch(hep_b)
        with pytest.raises(MissingPreviousDoseError) as exc:
            services.applications.create_application(walk_in(patient, hep_b, 2, batch), nurse.id)
        assert exc.value.extra["missing_doses"] == [1]

        with pytest.raises(MissingPreviousDoseError):
            services.scheduling.create_scheduling(patient.id, hep_b.id, clock() + timedelta(days=60), 3)

    def test_booked_previous_dose_is_not_enough_to_apply(self, services, patient, nurse, hep_b, make_batch, clock):
        """A booked dose 2 cannot be applied while dose 1 was only booked"""
        batch = make_batch(hep_b)
        dose1 = clock() + timedelta(days=1)
        services.scheduling.create_scheduling(patient.id, hep_b.id, dose1, 1)
        dose2 = services.scheduling.create_scheduling(patient.id, hep_b.id, dose1 + timedelta(days=30), 2)

        clock.advance(days=40)
        with pytest.raises(MissingPreviousDoseError):
            services.applications.create_application(
                ScheduledApplication(dose2.id, batch.id, "left deltoid"), requested_by_id=nurse.id
            )

    def test_interval_boundary(self, services, patient, nurse, hep_b, make_batch, clock):
        """N-1 days after the previous dose is rejected, exactly N days succeeds"""
        batch = make_batch(hep_b)
        services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)

        clock.advance(days=29)
        with pytest.raises(IntervalNotMetError) as exc:
            services.applications.create_application(walk_in(patient, hep_b, 2, batch), nurse.id)
        assert exc.value.extra == {"required_days": 30, "elapsed_days": 29, "remaining_days": 1}

        clock.advance(days=1)
        second = services.applications.create_application(walk_in(patient, hep_b, 2, batch), nurse.id)
        assert second.dose_number == 2

    def test_duplicate_dose_with_another_batch(self, services, patient, nurse, hep_b, make_batch, db):
        """The same dose cannot be applied twice, whatever batch is used"""
        first_batch = make_batch(hep_b)
        other_batch = make_batch(hep_b, quantity=3)
        services.applications.create_application(walk_in(patient, hep_b, 1, first_batch), nurse.id)

        with pytest.raises(DuplicateApplicationError):
            services.applications.create_application(walk_in(patient, hep_b, 1, other_batch), nurse.id)
        assert db.get(VaccineBatch, other_batch.id).current_quantity == 3

    def test_exceeded_doses(self, services, patient, nurse, make_vaccine, make_batch):
        single = make_vaccine(doses_required=1)
        batch = make_batch(single)
        services.applications.create_application(walk_in(patient, single, 1, batch), nurse.id)

        with pytest.raises(ExceededDosesError):
            services.applications.create_application(walk_in(patient, single, 2, batch), nurse.id)

    def test_repeated_dose_of_finished_course_is_a_duplicate(self, services, patient, nurse, make_vaccine, make_batch):
        single = make_vaccine(doses_required=1)
        batch = make_batch(single)
        services.applications.create_application(walk_in(patient, single, 1, batch), nurse.id)

        with pytest.raises(DuplicateApplicationError):
            services.applications.create_application(walk_in(patient, single, 1, batch), nurse.id)

    def test_hepatitis_b_course(self, services, patient, nurse, hep_b, make_batch, clock, db):
        """Book dose 1, apply it, then dose 2 is refused at day 10 and accepted at day 30"""
        batch_x = make_batch(hep_b, quantity=5, batch_number="HEPB-X")
        scheduling = services.scheduling.create_scheduling(patient.id, hep_b.id, clock() + timedelta(days=1), 1)

        services.applications.create_application(
            ScheduledApplication(scheduling.id, batch_x.id, "left deltoid"), requested_by_id=nurse.id
        )
        assert db.get(VaccineBatch, batch_x.id).current_quantity == 4

        clock.advance(days=10)
        with pytest.raises(IntervalNotMetError):
            services.applications.create_application(walk_in(patient, hep_b, 2, batch_x), nurse.id)
        assert db.get(VaccineBatch, batch_x.id).current_quantity == 4

        clock.advance(days=20)
        dose2 = services.applications.create_application(walk_in(patient, hep_b, 2, batch_x), nurse.id)
        assert db.get(VaccineBatch, batch_x.id).current_quantity == 3
        assert services.scheduling.get_scheduling(dose2.scheduling_id).status == SchedulingStatus.COMPLETED


class TestBatchChecks:
    def test_batch_of_another_vaccine(self, services, patient, nurse, hep_b, make_vaccine, make_batch):
        other = make_batch(make_vaccine())
        with pytest.raises(ValidationError):
            services.applications.create_application(walk_in(patient, hep_b, 1, other), nurse.id)

    def test_expired_batch_is_rejected(self, services, patient, nurse, hep_b, make_batch, clock):
        """A batch past its expiration date is unusable even before it is marked EXPIRED"""
        batch = make_batch(hep_b, expiration_date=clock.today() - timedelta(days=1))
        with pytest.raises(BatchNotAvailableError):
            services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)

    def test_batch_usable_on_expiration_day(self, services, patient, nurse, hep_b, make_batch, clock):
        batch = make_batch(hep_b, expiration_date=clock.today())
        assert services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id).id

    @pytest.mark.parametrize("status", [BatchStatus.DISCARDED, BatchStatus.EXPIRED])
    def test_unavailable_batch(self, services, patient, nurse, hep_b, make_batch, status):
        batch = make_batch(hep_b, status=status)
        with pytest.raises(InsufficientStockError):
            services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)

    def test_last_dose_depletes_batch(self, services, make_user, nurse, hep_b, make_batch, db):
        batch = make_batch(hep_b, quantity=1)
        first, second = make_user(), make_user()
        services.applications.create_application(walk_in(first, hep_b, 1, batch), nurse.id)

        refreshed = db.get(VaccineBatch, batch.id)
        assert refreshed.current_quantity == 0
        assert refreshed.status == BatchStatus.DEPLETED
        with pytest.raises(InsufficientStockError):
            services.applications.create_application(walk_in(second, hep_b, 1, batch), nurse.id)

    def test_no_oversell_under_concurrency(self, session_factory, make_user, nurse, hep_b, make_batch, clock):
        """Two concurrent applications on the last dose: exactly one wins"""
        batch = make_batch(hep_b, quantity=1)
        patients = [make_user(), make_user()]
        barrier = threading.Barrier(len(patients))
        outcomes = []
        lock = threading.Lock()

        def apply(patient):
            session = session_factory()
            try:
                services = build_services(session, clock=clock)
                barrier.wait()
                try:
                    services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)
                    result = "applied"
                except InsufficientStockError:
                    result = "no_stock"
                with lock:
                    outcomes.append(result)
            finally:
                session.close()

        threads = [threading.Thread(target=apply, args=(p,)) for p in patients]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["applied", "no_stock"]
        check = session_factory()
        try:
            final = check.get(VaccineBatch, batch.id)
            assert final.current_quantity == 0
            assert final.status == BatchStatus.DEPLETED
        finally:
            check.close()


class TestApplicationInput:
    def test_both_shapes_conflict(self):
        body = ApplicationCreate(scheduling_id=1, user_id=2, vaccine_id=3, dose_number=1, batch_id=4,
                                 application_site="arm")
        with pytest.raises(ConflictingInputError):
            body.to_command()

    def test_neither_shape_conflicts(self):
        with pytest.raises(ConflictingInputError):
            ApplicationCreate(batch_id=4, application_site="arm").to_command()

    def test_partial_walk_in(self):
        with pytest.raises(ValidationError):
            ApplicationCreate(user_id=2, vaccine_id=3, batch_id=4, application_site="arm").to_command()

    def test_builds_variants(self):
        scheduled = ApplicationCreate(scheduling_id=1, batch_id=4, application_site="arm").to_command()
        walk = ApplicationCreate(user_id=2, vaccine_id=3, dose_number=1, batch_id=4, application_site="arm")
        assert isinstance(scheduled, ScheduledApplication)
        assert isinstance(walk.to_command(), WalkInApplication)


class TestUpdateApplication:
    @pytest.fixture
    def application(self, services, patient, nurse, hep_b, make_batch):
        batch = make_batch(hep_b)
        return services.applications.create_application(walk_in(patient, hep_b, 1, batch), nurse.id)

    def test_applier_can_edit_site_and_observations(self, services, application, nurse):
        updated = services.applications.update_application(
            application.id, {"application_site": "right deltoid", "observations": "mild pain"}, nurse.id
        )
        assert updated.application_site == "right deltoid"
        assert updated.observations == "mild pain"

    def test_manager_can_edit(self, services, application, manager):
        updated = services.applications.update_application(application.id, {"observations": None}, manager.id)
        assert updated.observations is None

    def test_other_nurse_cannot_edit(self, services, application, make_user):
        other = make_user(UserRole.NURSE)
        with pytest.raises(UnauthorizedApplicationUpdateError):
            services.applications.update_application(application.id, {"observations": "x"}, other.id)

    def test_dose_identity_is_immutable(self, services, application, nurse):
        with pytest.raises(ValidationError):
            services.applications.update_application(application.id, {"dose_number": 2}, nurse.id)
        with pytest.raises(ValidationError):
            services.applications.update_application(application.id, {}, nurse.id)
        with pytest.raises(ValidationError):
            services.applications.update_application(application.id, {"application_site": "  "}, nurse.id)

    def test_missing_application(self, services, nurse):
        with pytest.raises(NotFoundError):
            services.applications.update_application(9999, {"observations": "x"}, nurse.id)
