"""VaccineApplication model - administered dose record"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class VaccineApplication(Base):
    """Append-only record of an administered dose"""
    __tablename__ = "vaccine_applications"

    id = Column(Integer, primary_key=True, index=True)

    # Foreign keys
    scheduling_id = Column(
        Integer,
        ForeignKey("vaccine_schedulings.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    batch_id = Column(Integer, ForeignKey("vaccine_batches.id", ondelete="RESTRICT"), nullable=False, index=True)
    applied_by_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    # Dose identity, copied from the scheduling and never updated
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    vaccine_id = Column(Integer, ForeignKey("vaccines.id", ondelete="RESTRICT"), nullable=False, index=True)
    dose_number = Column(Integer, nullable=False)

    # Administration details
    application_date = Column(DateTime, nullable=False, index=True)
    application_site = Column(String(100), nullable=False)
    observations = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "vaccine_id", "dose_number", name="uq_vaccine_applications_user_vaccine_dose"),
        Index("ix_vaccine_applications_user_vaccine", "user_id", "vaccine_id"),
    )

    # Relationships
    scheduling = relationship("VaccineScheduling", back_populates="application")
    batch = relationship("VaccineBatch", back_populates="applications")
    vaccine = relationship("Vaccine")
    patient = relationship("User", foreign_keys=[user_id])
    applied_by = relationship("User", foreign_keys=[applied_by_id])

    def __repr__(self):
        return (
            f"<VaccineApplication(id={self.id}, user_id={self.user_id}, vaccine_id={self.vaccine_id}, "
            f"dose={self.dose_number}, batch_id={self.batch_id})>"
        )
