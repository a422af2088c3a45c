from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medshare.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from medshare.models.access_grant import AccessGrant
    from medshare.models.comment import PatientComment
    from medshare.models.medication import PatientMedication
    from medshare.models.organization import Organization


class PreferredPack(StrEnum):
    blister = "blister"
    sachets = "sachets"


class Patient(Base, TimestampMixin):
    """Patient record owned by exactly one organization."""

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Owning organization",
    )
    share_token: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        index=True,
        nullable=False,
        comment="Immutable capability used to request cross-organization access",
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    street_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    suburb: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    preferred_pack: Mapped[str | None] = mapped_column(
        String(20), nullable=True, comment="blister or sachets"
    )

    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, comment="False once soft-deleted"
    )

    organization: Mapped["Organization"] = relationship(back_populates="patients")
    access_grants: Mapped[list["AccessGrant"]] = relationship(back_populates="patient")
    medications: Mapped[list["PatientMedication"]] = relationship(
        back_populates="patient"
    )
    comments: Mapped[list["PatientComment"]] = relationship(back_populates="patient")

    __table_args__ = (
        Index("ix_patients_org_last_first", "organization_id", "last_name", "first_name"),
    )

    @property
    def full_name(self) -> str:
        """Return the patient's full name."""
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.full_name}')>"
