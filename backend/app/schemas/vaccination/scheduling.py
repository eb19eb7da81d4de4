"""Pydantic schemas for VaccineScheduling"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.vaccination.types import SchedulingStatus
from app.schemas.vaccination.common import UserSummaryResponse
from app.schemas.vaccination.vaccine import VaccineSummary


class SchedulingCreate(BaseModel):
    user_id: int = Field(..., description="Patient")
    vaccine_id: int
    scheduled_date: datetime = Field(..., description="Must be in the future")
    dose_number: int = Field(1, ge=1)
    assigned_nurse_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=1000)


class SchedulingUpdate(BaseModel):
    status: Optional[SchedulingStatus] = None
    assigned_nurse_id: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)


class LinkedApplication(BaseModel):
    id: int
    batch_id: int
    applied_by_id: int
    application_date: datetime
    application_site: str

    class Config:
        from_attributes = True


class SchedulingResponse(BaseModel):
    id: int
    user_id: int
    vaccine_id: int
    assigned_nurse_id: Optional[int] = None
    scheduled_date: datetime
    dose_number: int
    status: SchedulingStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Nested relations (loaded with joinedload)
    patient: Optional[UserSummaryResponse] = None
    vaccine: Optional[VaccineSummary] = None
    nurse: Optional[UserSummaryResponse] = None
    application: Optional[LinkedApplication] = None

    class Config:
        from_attributes = True


class MonthlySchedulingResponse(BaseModel):
    nurse_id: int
    year: int
    month: int
    days: Dict[str, List[SchedulingResponse]]


class ReminderResponse(BaseModel):
    reminded: int
    within_hours: int
