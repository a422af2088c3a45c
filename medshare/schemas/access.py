"""Pydantic schemas for the access grant API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medshare.models import Permission, parse_permissions


class AccessRequestCreate(BaseModel):
    """Request access to another organization's patient by share token."""

    share_token: str = Field(..., min_length=1, max_length=20)
    permissions: list[Permission] | None = Field(
        None, min_length=1, description="Requested permissions (default: all)"
    )


class AccessRequestResult(BaseModel):
    grant_id: int
    status: str


class AccessGrantApprove(BaseModel):
    """Owning organization approves a pending grant."""

    permissions: list[Permission] | None = Field(
        None,
        min_length=1,
        description="Permissions to grant (default: the requested ones)",
    )
    expires_in_days: int | None = Field(
        None, ge=1, description="Access expiry in days; omit for no expiry"
    )


class AccessGrantCreate(BaseModel):
    """Owning organization pushes access directly to a user."""

    patient_id: int
    granted_to: int = Field(..., description="User profile receiving access")
    permissions: list[Permission] = Field(..., min_length=1)
    expires_in_days: int | None = Field(None, ge=1)


class AccessGrantResponse(BaseModel):
    """Single access grant."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    share_token: str
    granted_to: int
    granted_to_org: int
    granted_by: int | None = None
    granted_by_org: int
    access_type: str
    status: str
    permissions: list[Permission]
    is_active: bool
    expires_at: datetime | None = None
    requested_at: datetime
    granted_at: datetime | None = None
    denied_at: datetime | None = None
    denied_by: int | None = None
    revoked_at: datetime | None = None
    revoked_by: int | None = None

    @field_validator("permissions", mode="before")
    @classmethod
    def split_permissions(cls, value):
        """Grants store permissions as a comma-separated string."""
        if isinstance(value, str):
            return [p for p in Permission if p in parse_permissions(value)]
        return value


class AccessGrantDetail(AccessGrantResponse):
    """Grant enriched with the people and organizations involved."""

    patient_name: str | None = None
    grantee_name: str | None = None
    grantee_email: str | None = None
    grantee_org_name: str | None = None
    grantee_org_type: str | None = None
    owning_org_name: str | None = None
    granted_by_name: str | None = None


class SweepResult(BaseModel):
    revoked: int
    grant_ids: list[int]
