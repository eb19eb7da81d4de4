"""Pydantic schemas for the vaccination history"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from app.schemas.vaccination.application import ApplicationResponse
from app.schemas.vaccination.vaccine import VaccineSummary


class VaccineDosesResponse(BaseModel):
    vaccine: VaccineSummary
    doses: List[ApplicationResponse]
    total_doses_required: int
    doses_applied: int
    is_complete: bool
    completion_percentage: float

    class Config:
        from_attributes = True


class PendingDoseResponse(BaseModel):
    vaccine: VaccineSummary
    current_dose: int
    next_dose: int
    last_application_date: datetime
    expected_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class HistorySummaryResponse(BaseModel):
    total_vaccines_applied: int
    total_vaccines_completed: int
    total_doses_pending: int
    total_mandatory_pending: int
    compliance_percentage: float

    class Config:
        from_attributes = True


class UserHistoryResponse(BaseModel):
    user_id: int
    issued_at: datetime
    summary: HistorySummaryResponse
    vaccines_by_type: List[VaccineDosesResponse]
    applied: List[ApplicationResponse]
    pending_doses: List[PendingDoseResponse]
    mandatory_not_taken: List[VaccineSummary]
    optional_not_taken: List[VaccineSummary]

    class Config:
        from_attributes = True
