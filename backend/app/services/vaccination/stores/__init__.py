"""Persistence layer for the vaccination services"""
from .application_store import ApplicationStore
from .batch_store import BatchStore
from .scheduling_store import SchedulingStore
from .user_store import SqlUserDirectory
from .vaccine_store import VaccineStore

__all__ = [
    "ApplicationStore",
    "BatchStore",
    "SchedulingStore",
    "SqlUserDirectory",
    "VaccineStore",
]
