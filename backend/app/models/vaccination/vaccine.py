"""Vaccine model - vaccine catalog"""
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Vaccine(Base):
    """Reference data for a vaccine: dose plan and stock threshold"""
    __tablename__ = "vaccines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    manufacturer = Column(String(200), nullable=False)
    description = Column(Text)

    # Dose plan
    doses_required = Column(Integer, nullable=False, server_default="1", default=1)
    interval_days = Column(Integer, nullable=True)  # Minimum days between consecutive doses
    is_obligatory = Column(Boolean, nullable=False, server_default="0", default=False)

    # Inventory threshold for LOW_STOCK alerts (no alert when NULL)
    min_stock_level = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    __table_args__ = (
        CheckConstraint("doses_required >= 1", name="check_doses_required_positive"),
        CheckConstraint("interval_days IS NULL OR interval_days > 0", name="check_interval_days_positive"),
        CheckConstraint("min_stock_level IS NULL OR min_stock_level >= 0", name="check_min_stock_level_positive"),
        # Soft-deleted vaccines do not block a new entry with the same name/manufacturer
        Index(
            "uq_vaccines_name_manufacturer_not_deleted",
            "name",
            "manufacturer",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    # Relationships
    batches = relationship("VaccineBatch", back_populates="vaccine", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Vaccine(id={self.id}, name='{self.name}', manufacturer='{self.manufacturer}')>"
