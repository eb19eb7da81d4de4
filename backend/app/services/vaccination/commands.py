"""Inputs and paged results passed between the API layer and the services"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, List, Optional, TypeVar, Union

from app.models.vaccination.types import BatchStatus, SchedulingStatus

T = TypeVar("T")


# ============ APPLICATION INPUT ============
@dataclass(frozen=True)
class ScheduledApplication:
    """Apply the dose booked by an existing scheduling"""
    scheduling_id: int
    batch_id: int
    application_site: str
    observations: Optional[str] = None


@dataclass(frozen=True)
class WalkInApplication:
    """Apply a dose without a prior booking"""
    user_id: int
    vaccine_id: int
    dose_number: int
    batch_id: int
    application_site: str
    observations: Optional[str] = None


ApplicationCommand = Union[ScheduledApplication, WalkInApplication]


# ============ FILTERS ============
@dataclass
class SchedulingFilters:
    status: Optional[SchedulingStatus] = None
    vaccine_id: Optional[int] = None
    user_id: Optional[int] = None
    nurse_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class ApplicationFilters:
    user_id: Optional[int] = None
    vaccine_id: Optional[int] = None
    applied_by_id: Optional[int] = None
    batch_id: Optional[int] = None
    dose_number: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class BatchFilters:
    vaccine_id: Optional[int] = None
    status: Optional[BatchStatus] = None


@dataclass
class VaccineFilters:
    search: Optional[str] = None
    is_obligatory: Optional[bool] = None


# ============ PAGINATION ============
@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    page: int = 1
    per_page: int = 20
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.per_page else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1
