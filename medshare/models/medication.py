from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medshare.models.base import Base

if TYPE_CHECKING:
    from medshare.models.patient import Patient


class PatientMedication(Base):
    """Medication on a patient's chart, added by any organization with access."""

    __tablename__ = "patient_medications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        comment="Organization that added this medication",
    )

    medication_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    dosage: Mapped[str] = mapped_column(String(100), nullable=False)
    frequency: Mapped[str | None] = mapped_column(
        String(100), nullable=True, comment="e.g., twice daily, every 8 hours"
    )
    morning_dose: Mapped[str | None] = mapped_column(String(50), nullable=True)
    afternoon_dose: Mapped[str | None] = mapped_column(String(50), nullable=True)
    evening_dose: Mapped[str | None] = mapped_column(String(50), nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    prescribed_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    prescribed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    added_by: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    patient: Mapped["Patient"] = relationship(back_populates="medications")

    __table_args__ = (
        Index("ix_patient_medications_patient_active", "patient_id", "is_active"),
    )

    @property
    def is_current(self) -> bool:
        """Check if medication is currently active."""
        if not self.is_active:
            return False
        today = date.today()
        if self.end_date and self.end_date < today:
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"<PatientMedication(id={self.id}, name='{self.medication_name}', active={self.is_active})>"
        )
