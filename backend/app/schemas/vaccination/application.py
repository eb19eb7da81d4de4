"""Pydantic schemas for VaccineApplication"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.vaccination.batch import BatchSummary
from app.schemas.vaccination.common import UserSummaryResponse
from app.schemas.vaccination.vaccine import VaccineSummary
from app.services.vaccination.commands import ApplicationCommand, ScheduledApplication, WalkInApplication
from app.services.vaccination.errors import ConflictingInputError, ValidationError


class ApplicationCreate(BaseModel):
    """Body of POST /applications.

    Either ``scheduling_id`` (apply a booked dose) or the walk-in triple
    ``user_id``/``vaccine_id``/``dose_number``, never both.
    """
    scheduling_id: Optional[int] = None
    user_id: Optional[int] = None
    vaccine_id: Optional[int] = None
    dose_number: Optional[int] = Field(None, ge=1)
    batch_id: int
    application_site: str = Field(..., min_length=1, max_length=100)
    observations: Optional[str] = Field(None, max_length=2000)

    def to_command(self) -> ApplicationCommand:
        walk_in = (self.user_id, self.vaccine_id, self.dose_number)
        has_walk_in = any(v is not None for v in walk_in)
        if (self.scheduling_id is not None) == has_walk_in:
            raise ConflictingInputError()
        if self.scheduling_id is not None:
            return ScheduledApplication(
                scheduling_id=self.scheduling_id,
                batch_id=self.batch_id,
                application_site=self.application_site,
                observations=self.observations,
            )
        if any(v is None for v in walk_in):
            raise ValidationError("user_id, vaccine_id and dose_number are all required for a walk-in application")
        return WalkInApplication(
            user_id=self.user_id,
            vaccine_id=self.vaccine_id,
            dose_number=self.dose_number,
            batch_id=self.batch_id,
            application_site=self.application_site,
            observations=self.observations,
        )


class ApplicationUpdate(BaseModel):
    application_site: Optional[str] = Field(None, min_length=1, max_length=100)
    observations: Optional[str] = Field(None, max_length=2000)


class ApplicationResponse(BaseModel):
    id: int
    scheduling_id: int
    batch_id: int
    applied_by_id: int
    user_id: int
    vaccine_id: int
    dose_number: int
    application_date: datetime
    application_site: str
    observations: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Nested relations
    vaccine: Optional[VaccineSummary] = None
    batch: Optional[BatchSummary] = None
    patient: Optional[UserSummaryResponse] = None
    applied_by: Optional[UserSummaryResponse] = None

    class Config:
        from_attributes = True
