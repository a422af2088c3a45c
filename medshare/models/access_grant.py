"""Access grant: authorizes one user to work with another organization's patient."""

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medshare.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from medshare.models.patient import Patient


class GrantStatus(StrEnum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    revoked = "revoked"


class AccessType(StrEnum):
    same_organization = "same_organization"
    cross_organization = "cross_organization"


class Permission(StrEnum):
    view = "view"
    comment = "comment"
    view_medications = "view_medications"


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)

OPEN_GRANT_STATUSES = (GrantStatus.pending, GrantStatus.approved)


def parse_permissions(value: str | None) -> frozenset[Permission]:
    """Parse the stored comma-separated permission list."""
    if not value:
        return frozenset()
    return frozenset(Permission(p.strip()) for p in value.split(",") if p.strip())


def format_permissions(permissions) -> str:
    """Serialize permissions in a stable order for storage."""
    wanted = {Permission(p) for p in permissions}
    return ",".join(p.value for p in Permission if p in wanted)


class AccessGrant(Base, TimestampMixin):
    """Grants a user access to a patient owned by (usually) another organization.

    Rows are never deleted; denial, revocation and expiry are status
    transitions so the audit history is preserved.
    """

    __tablename__ = "access_grants"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    share_token: Mapped[str] = mapped_column(
        String(20),
        index=True,
        nullable=False,
        comment="Copy of the patient's share token at grant time",
    )

    granted_to: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    granted_to_org: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    granted_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="SET NULL"),
        nullable=True,
        comment="Approver; empty for share token requests until approved",
    )
    granted_by_org: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Patient's owning organization",
    )

    access_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GrantStatus.pending.value,
        server_default="pending",
    )
    permissions: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="view",
        comment="Comma-separated: view, comment, view_medications",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True, nullable=True
    )
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    granted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    denied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    denied_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True
    )

    patient: Mapped["Patient"] = relationship(back_populates="access_grants")

    __table_args__ = (
        # At most one pending/approved grant per (patient, grantee).
        Index(
            "uq_access_grants_open_pair",
            "patient_id",
            "granted_to",
            unique=True,
            postgresql_where=text("status IN ('pending', 'approved')"),
            sqlite_where=text("status IN ('pending', 'approved')"),
        ),
    )

    @property
    def permission_set(self) -> frozenset[Permission]:
        return parse_permissions(self.permissions)

    def has_permission(self, permission: str) -> bool:
        """Check if this grant includes the given permission."""
        return Permission(permission) in self.permission_set

    def __repr__(self) -> str:
        return (
            f"<AccessGrant(id={self.id}, patient_id={self.patient_id}, "
            f"granted_to={self.granted_to}, status={self.status})>"
        )
