"""Audit log of share token lookups (compliance)."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from medshare.models.base import Base


class ShareTokenAccess(Base):
    """Who opened which patient through a share token, and when."""

    __tablename__ = "share_token_access"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    accessed_by: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    accessed_by_org: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    patient_org: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    share_token: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    access_type: Mapped[str] = mapped_column(String(32), nullable=False)
    accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ShareTokenAccess(id={self.id}, patient_id={self.patient_id}, accessed_by={self.accessed_by})>"
