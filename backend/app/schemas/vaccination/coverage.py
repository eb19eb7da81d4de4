"""Pydantic schemas for the vaccination coverage report"""
from typing import List

from pydantic import BaseModel

from app.services.vaccination.coverage_service import CoverageStatus


class VaccineCoverageResponse(BaseModel):
    vaccine_id: int
    vaccine_name: str
    is_obligatory: bool
    coverage_percentage: float
    status: CoverageStatus
    complete_doses: int
    partial_doses: int
    expected_doses: int

    class Config:
        from_attributes = True


class CriticalVaccineResponse(BaseModel):
    vaccine_id: int
    vaccine_name: str
    coverage_percentage: float
    gap_to_target: float

    class Config:
        from_attributes = True


class CoverageSummaryResponse(BaseModel):
    average_coverage: float
    target_reached: int
    critical_vaccines: int
    target_percentage: float

    class Config:
        from_attributes = True


class CoverageCompletionResponse(BaseModel):
    fully_vaccinated_users: int
    partially_vaccinated_users: int
    not_started_users: int
    completion_rate: float

    class Config:
        from_attributes = True


class VaccinationCoverageResponse(BaseModel):
    summary: CoverageSummaryResponse
    details: List[VaccineCoverageResponse]
    critical_vaccines: List[CriticalVaccineResponse]
    completion: CoverageCompletionResponse

    class Config:
        from_attributes = True
