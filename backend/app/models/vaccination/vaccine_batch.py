"""VaccineBatch model - vaccine lot inventory"""
from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.vaccination.types import BatchStatus, StrEnumType


class VaccineBatch(Base):
    """Physical lot of a vaccine; the stock ledger lives in current_quantity"""
    __tablename__ = "vaccine_batches"

    id = Column(Integer, primary_key=True, index=True)
    vaccine_id = Column(Integer, ForeignKey("vaccines.id", ondelete="CASCADE"), nullable=False, index=True)

    # Batch data
    batch_number = Column(String(100), nullable=False, unique=True)
    expiration_date = Column(Date, nullable=False, index=True)
    received_date = Column(Date, nullable=False)

    # Quantities
    initial_quantity = Column(Integer, nullable=False)
    current_quantity = Column(Integer, nullable=False)

    status = Column(
        StrEnumType(BatchStatus),
        nullable=False,
        server_default=BatchStatus.AVAILABLE.value,
        default=BatchStatus.AVAILABLE,
        index=True,
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Constraints
    __table_args__ = (
        CheckConstraint("initial_quantity >= 0", name="check_initial_quantity_positive"),
        CheckConstraint("current_quantity >= 0", name="check_current_quantity_positive"),
        CheckConstraint("current_quantity <= initial_quantity", name="check_current_quantity_logic"),
    )

    # Relationships
    vaccine = relationship("Vaccine", back_populates="batches")
    applications = relationship("VaccineApplication", back_populates="batch", passive_deletes="all")

    def __repr__(self):
        return (
            f"<VaccineBatch(id={self.id}, vaccine_id={self.vaccine_id}, batch_number='{self.batch_number}', "
            f"current={self.current_quantity}, status={self.status})>"
        )
