"""Pydantic schemas for Vaccine"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VaccineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Vaccine name")
    manufacturer: str = Field(..., min_length=1, max_length=200, description="Manufacturer")
    description: Optional[str] = None
    doses_required: int = Field(1, ge=1, description="Doses in the full course")
    interval_days: Optional[int] = Field(None, gt=0, description="Minimum days between consecutive doses")
    is_obligatory: bool = False
    min_stock_level: Optional[int] = Field(None, ge=0, description="Doses below which LOW_STOCK is raised")


class VaccineCreate(VaccineBase):
    pass


class VaccineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    manufacturer: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    doses_required: Optional[int] = Field(None, ge=1)
    interval_days: Optional[int] = Field(None, gt=0)
    is_obligatory: Optional[bool] = None
    min_stock_level: Optional[int] = Field(None, ge=0)


class VaccineResponse(VaccineBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VaccineSummary(BaseModel):
    id: int
    name: str
    manufacturer: str
    doses_required: int
    interval_days: Optional[int] = None
    is_obligatory: bool

    class Config:
        from_attributes = True
