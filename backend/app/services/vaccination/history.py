"""Vaccination history of a user, derived from applications and the catalog"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from app.models.vaccination import Vaccine, VaccineApplication


@dataclass
class VaccineDoses:
    vaccine: Vaccine
    doses: List[VaccineApplication]
    total_doses_required: int
    doses_applied: int
    is_complete: bool
    completion_percentage: float


@dataclass
class PendingDose:
    vaccine: Vaccine
    current_dose: int
    next_dose: int
    last_application_date: datetime
    expected_date: Optional[datetime]


@dataclass
class HistorySummary:
    total_vaccines_applied: int
    total_vaccines_completed: int
    total_doses_pending: int
    total_mandatory_pending: int
    compliance_percentage: float


@dataclass
class UserHistory:
    user_id: int
    issued_at: datetime
    summary: HistorySummary
    vaccines_by_type: List[VaccineDoses] = field(default_factory=list)
    applied: List[VaccineApplication] = field(default_factory=list)
    pending_doses: List[PendingDose] = field(default_factory=list)
    mandatory_not_taken: List[Vaccine] = field(default_factory=list)
    optional_not_taken: List[Vaccine] = field(default_factory=list)


def build_user_history(
    user_id: int,
    applications: Iterable[VaccineApplication],
    catalog: Iterable[Vaccine],
    issued_at: datetime,
) -> UserHistory:
    """Aggregate the applications of one user.

    Compliance only looks at obligatory vaccines: fully completed ones over
    all obligatory vaccines (completed, partial and never started). A user
    with no obligatory vaccine to take is 100% compliant.
    """
    applied = sorted(applications, key=lambda a: (a.application_date, a.id))

    grouped: Dict[int, List[VaccineApplication]] = OrderedDict()
    for application in applied:
        grouped.setdefault(application.vaccine_id, []).append(application)

    vaccines_by_type: List[VaccineDoses] = []
    pending: List[PendingDose] = []
    for doses in grouped.values():
        vaccine = doses[0].vaccine
        required = vaccine.doses_required
        count = len(doses)
        vaccines_by_type.append(VaccineDoses(
            vaccine=vaccine,
            doses=doses,
            total_doses_required=required,
            doses_applied=count,
            is_complete=count >= required,
            completion_percentage=min(round(count / required * 100, 2), 100.0),
        ))

        last = max(doses, key=lambda a: a.dose_number)
        if last.dose_number < required:
            expected = None
            if vaccine.interval_days:
                expected = last.application_date + timedelta(days=vaccine.interval_days)
            pending.append(PendingDose(
                vaccine=vaccine,
                current_dose=last.dose_number,
                next_dose=last.dose_number + 1,
                last_application_date=last.application_date,
                expected_date=expected,
            ))

    never_started = [v for v in catalog if v.id not in grouped]
    mandatory_not_taken = [v for v in never_started if v.is_obligatory]
    optional_not_taken = [v for v in never_started if not v.is_obligatory]

    mandatory_started = [v for v in vaccines_by_type if v.vaccine.is_obligatory]
    mandatory_completed = sum(1 for v in mandatory_started if v.is_complete)
    mandatory_total = len(mandatory_started) + len(mandatory_not_taken)
    compliance = mandatory_completed / mandatory_total * 100 if mandatory_total else 100.0

    summary = HistorySummary(
        total_vaccines_applied=len(vaccines_by_type),
        total_vaccines_completed=sum(1 for v in vaccines_by_type if v.is_complete),
        total_doses_pending=len(pending),
        total_mandatory_pending=len(mandatory_not_taken),
        compliance_percentage=round(compliance, 2),
    )
    return UserHistory(
        user_id=user_id,
        issued_at=issued_at,
        summary=summary,
        vaccines_by_type=vaccines_by_type,
        applied=applied,
        pending_doses=pending,
        mandatory_not_taken=mandatory_not_taken,
        optional_not_taken=optional_not_taken,
    )
