"""Vaccination scheduling and application engine"""
from .commands import ScheduledApplication, WalkInApplication
from .container import VaccinationServices, build_services, get_services
from .errors import DomainError

__all__ = [
    "DomainError",
    "ScheduledApplication",
    "VaccinationServices",
    "WalkInApplication",
    "build_services",
    "get_services",
]
