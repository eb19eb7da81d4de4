"""Vaccination models"""
from .types import BatchStatus, SchedulingStatus, UserRole
from .vaccine import Vaccine
from .vaccine_batch import VaccineBatch
from .vaccine_scheduling import VaccineScheduling
from .vaccine_application import VaccineApplication

__all__ = [
    "BatchStatus",
    "SchedulingStatus",
    "UserRole",
    "Vaccine",
    "VaccineBatch",
    "VaccineScheduling",
    "VaccineApplication",
]
