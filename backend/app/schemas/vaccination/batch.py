"""Pydantic schemas for VaccineBatch"""
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.models.vaccination.types import BatchStatus


class BatchCreate(BaseModel):
    vaccine_id: int = Field(..., description="Owning vaccine")
    batch_number: str = Field(..., min_length=1, max_length=100, description="Globally unique lot number")
    quantity: int = Field(..., ge=1, description="Doses received")
    expiration_date: date
    received_date: Optional[date] = Field(None, description="Defaults to today")


class BatchUpdate(BaseModel):
    batch_number: Optional[str] = Field(None, min_length=1, max_length=100)
    initial_quantity: Optional[int] = Field(None, ge=0)
    current_quantity: Optional[int] = Field(None, ge=0)
    expiration_date: Optional[date] = None
    received_date: Optional[date] = None
    # Only the administrative discard can be requested explicitly
    status: Optional[Literal["DISCARDED"]] = None


class BatchResponse(BaseModel):
    id: int
    vaccine_id: int
    batch_number: str
    initial_quantity: int
    current_quantity: int
    expiration_date: date
    received_date: date
    status: BatchStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchSummary(BaseModel):
    id: int
    batch_number: str
    expiration_date: date
    status: BatchStatus

    class Config:
        from_attributes = True
