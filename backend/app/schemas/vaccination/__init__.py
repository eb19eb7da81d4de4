"""Pydantic schemas for the vaccination module"""
from .alert import AlertResponse, StockNotificationResponse
from .application import ApplicationCreate, ApplicationResponse, ApplicationUpdate
from .batch import BatchCreate, BatchResponse, BatchSummary, BatchUpdate
from .common import PaginatedResponse, PaginationMeta, UserSummaryResponse
from .coverage import VaccinationCoverageResponse
from .history import UserHistoryResponse
from .scheduling import (
    MonthlySchedulingResponse,
    ReminderResponse,
    SchedulingCreate,
    SchedulingResponse,
    SchedulingUpdate,
)
from .vaccine import VaccineCreate, VaccineResponse, VaccineSummary, VaccineUpdate

__all__ = [
    "AlertResponse", "StockNotificationResponse",
    "VaccinationCoverageResponse",
    "ApplicationCreate", "ApplicationResponse", "ApplicationUpdate",
    "BatchCreate", "BatchResponse", "BatchSummary", "BatchUpdate",
    "PaginatedResponse", "PaginationMeta", "UserSummaryResponse",
    "UserHistoryResponse",
    "MonthlySchedulingResponse", "ReminderResponse",
    "SchedulingCreate", "SchedulingResponse", "SchedulingUpdate",
    "VaccineCreate", "VaccineResponse", "VaccineSummary", "VaccineUpdate",
]
