"""Enums and column types shared by the vaccination models"""
import enum

from sqlalchemy import String, TypeDecorator


class BatchStatus(str, enum.Enum):
    """Lifecycle of a vaccine batch"""
    AVAILABLE = "AVAILABLE"
    EXPIRED = "EXPIRED"
    DEPLETED = "DEPLETED"
    DISCARDED = "DISCARDED"


class SchedulingStatus(str, enum.Enum):
    """Lifecycle of a dose appointment"""
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class UserRole(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    NURSE = "NURSE"
    MANAGER = "MANAGER"


class StrEnumType(TypeDecorator):
    """Stores a str-enum as its plain value and returns enum members on load"""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, length=20, **kwargs):
        super().__init__(length=length, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, self.enum_class):
            return value.value
        return self.enum_class(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
