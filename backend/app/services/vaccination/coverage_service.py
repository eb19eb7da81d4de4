"""
Vaccination coverage report.

Coverage of a vaccine is the share of active users who received every
required dose. The report is computed on demand, restricted to managers and
never writes.

    critical      coverage <= target / 2
    below_target  target / 2 < coverage < target
    at_target     coverage == target
    above_target  coverage > target
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.core.config import settings
from app.models.vaccination import Vaccine
from app.services.vaccination.errors import ForbiddenError, NotFoundError
from app.services.vaccination.protocols import UserDirectory, UserSummary
from app.services.vaccination.stores import ApplicationStore, VaccineStore

logger = logging.getLogger(__name__)


class CoverageStatus(str, enum.Enum):
    CRITICAL = "critical"
    BELOW_TARGET = "below_target"
    AT_TARGET = "at_target"
    ABOVE_TARGET = "above_target"


@dataclass
class VaccineCoverage:
    vaccine_id: int
    vaccine_name: str
    is_obligatory: bool
    coverage_percentage: float
    status: CoverageStatus
    # Users with the full course / users who started but did not finish
    complete_doses: int
    partial_doses: int
    expected_doses: int


@dataclass
class CriticalVaccine:
    vaccine_id: int
    vaccine_name: str
    coverage_percentage: float
    gap_to_target: float


@dataclass
class CoverageSummary:
    average_coverage: float
    target_reached: int
    critical_vaccines: int
    target_percentage: float


@dataclass
class CoverageCompletion:
    fully_vaccinated_users: int = 0
    partially_vaccinated_users: int = 0
    not_started_users: int = 0
    completion_rate: float = 0.0


@dataclass
class VaccinationCoverage:
    summary: CoverageSummary
    details: List[VaccineCoverage] = field(default_factory=list)
    critical_vaccines: List[CriticalVaccine] = field(default_factory=list)
    completion: CoverageCompletion = field(default_factory=CoverageCompletion)


def coverage_status(percentage: float, target: float) -> CoverageStatus:
    if percentage <= target * 0.5:
        return CoverageStatus.CRITICAL
    if percentage > target:
        return CoverageStatus.ABOVE_TARGET
    if percentage == target:
        return CoverageStatus.AT_TARGET
    return CoverageStatus.BELOW_TARGET


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class CoverageService:
    def __init__(
        self,
        vaccines: VaccineStore,
        applications: ApplicationStore,
        users: UserDirectory,
        target: Optional[float] = None,
    ):
        self.vaccines = vaccines
        self.applications = applications
        self.users = users
        self.target = settings.COVERAGE_TARGET_PERCENT if target is None else target

    def get_coverage(self, requested_by_id: int) -> VaccinationCoverage:
        requester = self.users.get_user(requested_by_id)
        if not requester:
            raise NotFoundError.for_entity("User", requested_by_id)
        if not requester.is_manager:
            raise ForbiddenError("Only managers can access vaccination coverage data")

        vaccines = self.vaccines.list_all()
        if not vaccines:
            return VaccinationCoverage(summary=CoverageSummary(0.0, 0, 0, self.target))

        active = self.users.list_active()
        counts = self.applications.dose_counts([u.id for u in active])

        details = [self._vaccine_coverage(vaccine, active, counts) for vaccine in vaccines]
        critical = [
            CriticalVaccine(
                vaccine_id=d.vaccine_id,
                vaccine_name=d.vaccine_name,
                coverage_percentage=d.coverage_percentage,
                gap_to_target=round(self.target - d.coverage_percentage, 2),
            )
            for d in details if d.status == CoverageStatus.CRITICAL
        ]
        summary = CoverageSummary(
            average_coverage=round(sum(d.coverage_percentage for d in details) / len(details), 2),
            target_reached=sum(
                1 for d in details if d.status in (CoverageStatus.AT_TARGET, CoverageStatus.ABOVE_TARGET)
            ),
            critical_vaccines=len(critical),
            target_percentage=self.target,
        )
        completion = self._completion([v for v in vaccines if v.is_obligatory], active, counts)

        logger.info(
            f"Coverage computed for {len(details)} vaccine(s) over {len(active)} active user(s): "
            f"average {summary.average_coverage}%, {len(critical)} critical"
        )
        return VaccinationCoverage(summary=summary, details=details, critical_vaccines=critical, completion=completion)

    def _vaccine_coverage(
        self, vaccine: Vaccine, active: List[UserSummary], counts: Dict[Tuple[int, int], int]
    ) -> VaccineCoverage:
        complete = partial = 0
        for user in active:
            applied = counts.get((user.id, vaccine.id), 0)
            if applied >= vaccine.doses_required:
                complete += 1
            elif applied:
                partial += 1
        percentage = _percent(complete, len(active))
        return VaccineCoverage(
            vaccine_id=vaccine.id,
            vaccine_name=vaccine.name,
            is_obligatory=bool(vaccine.is_obligatory),
            coverage_percentage=percentage,
            status=coverage_status(percentage, self.target),
            complete_doses=complete,
            partial_doses=partial,
            expected_doses=vaccine.doses_required * len(active),
        )

    @staticmethod
    def _completion(
        obligatory: List[Vaccine], active: List[UserSummary], counts: Dict[Tuple[int, int], int]
    ) -> CoverageCompletion:
        """Classify each active user by their obligatory vaccines"""
        completion = CoverageCompletion()
        for user in active:
            started = [v for v in obligatory if counts.get((user.id, v.id), 0)]
            finished = [v for v in started if counts[(user.id, v.id)] >= v.doses_required]
            if len(finished) == len(obligatory):
                completion.fully_vaccinated_users += 1
            elif started:
                completion.partially_vaccinated_users += 1
            else:
                completion.not_started_users += 1
        completion.completion_rate = _percent(completion.fully_vaccinated_users, len(active))
        return completion
