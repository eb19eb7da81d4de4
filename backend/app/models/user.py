"""User model - read-only directory of patients, nurses and managers"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.vaccination.types import StrEnumType, UserRole


class User(Base):
    """Directory entry owned by the identity system; the engine only reads it"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    cpf = Column(String(14), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(StrEnumType(UserRole), nullable=False, server_default=UserRole.EMPLOYEE.value)
    # Nursing council registration, only for NURSE users
    coren = Column(String(20), unique=True, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="1", default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.name}', role={self.role})>"
