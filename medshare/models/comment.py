from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medshare.models.base import Base

if TYPE_CHECKING:
    from medshare.models.patient import Patient


class CommentType(StrEnum):
    note = "note"
    chat = "chat"
    system = "system"


class PatientComment(Base):
    """Comment thread entry on a patient.

    Private comments are only shown to the author's organization.
    """

    __tablename__ = "patient_comments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    author_org: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    comment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="note")
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reply_to_id: Mapped[int | None] = mapped_column(
        ForeignKey("patient_comments.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )

    patient: Mapped["Patient"] = relationship(back_populates="comments")

    def __repr__(self) -> str:
        return f"<PatientComment(id={self.id}, patient_id={self.patient_id}, type='{self.comment_type}')>"
