"""VaccineScheduling model - dose appointment"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.models.vaccination.types import SchedulingStatus, StrEnumType


class VaccineScheduling(Base):
    """Planned dose appointment for a patient"""
    __tablename__ = "vaccine_schedulings"

    id = Column(Integer, primary_key=True, index=True)

    # Foreign keys
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    vaccine_id = Column(Integer, ForeignKey("vaccines.id", ondelete="RESTRICT"), nullable=False, index=True)
    assigned_nurse_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    scheduled_date = Column(DateTime, nullable=False, index=True)
    dose_number = Column(Integer, nullable=False, server_default="1", default=1)
    status = Column(
        StrEnumType(SchedulingStatus),
        nullable=False,
        server_default=SchedulingStatus.SCHEDULED.value,
        default=SchedulingStatus.SCHEDULED,
    )
    notes = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        # Only one live (non-cancelled) scheduling per patient/vaccine/dose
        Index(
            "uq_vaccine_schedulings_user_vaccine_dose_live",
            "user_id",
            "vaccine_id",
            "dose_number",
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
        Index("ix_vaccine_schedulings_scheduled_date_nurse", "scheduled_date", "assigned_nurse_id"),
    )

    # Relationships
    patient = relationship("User", foreign_keys=[user_id])
    nurse = relationship("User", foreign_keys=[assigned_nurse_id])
    vaccine = relationship("Vaccine")
    application = relationship("VaccineApplication", back_populates="scheduling", uselist=False)

    @property
    def is_live(self) -> bool:
        return self.status != SchedulingStatus.CANCELLED

    def __repr__(self):
        return (
            f"<VaccineScheduling(id={self.id}, user_id={self.user_id}, vaccine_id={self.vaccine_id}, "
            f"dose={self.dose_number}, status={self.status})>"
        )
