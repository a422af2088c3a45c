"""Organizations (tenants) and their member profiles.

Both tables are owned by the organization/member management service; the
access core only reads them.
"""

from enum import StrEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medshare.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from medshare.models.patient import Patient


class OrganizationType(StrEnum):
    pharmacy = "pharmacy"
    gp_clinic = "gp_clinic"
    hospital = "hospital"
    aged_care = "aged_care"


class MemberRole(StrEnum):
    owner = "owner"
    admin = "admin"
    member = "member"
    viewer = "viewer"


class Organization(Base, TimestampMixin):
    """A tenant: pharmacy, clinic, hospital or aged-care facility."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="pharmacy, gp_clinic, hospital, aged_care",
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    members: Mapped[list["UserProfile"]] = relationship(back_populates="organization")
    patients: Mapped[list["Patient"]] = relationship(back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name='{self.name}')>"


class UserProfile(Base, TimestampMixin):
    """Professional profile of a staff member."""

    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    organization_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    role: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="owner, admin, member, viewer",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    organization: Mapped[Optional["Organization"]] = relationship(back_populates="members")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, email='{self.email}')>"
