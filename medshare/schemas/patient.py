from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from medshare.models import AccessType, Permission, PreferredPack


class PatientBase(BaseModel):
    """Base schema for patient data."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    street_address: Optional[str] = Field(None, max_length=255)
    suburb: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    postcode: Optional[str] = Field(None, max_length=20)
    preferred_pack: Optional[PreferredPack] = None


class PatientCreate(PatientBase):
    """Schema for creating a new patient in the caller's organization."""
    pass


class PatientUpdate(BaseModel):
    """Schema for updating a patient (all fields optional)."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    street_address: Optional[str] = Field(None, max_length=255)
    suburb: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    postcode: Optional[str] = Field(None, max_length=20)
    preferred_pack: Optional[PreferredPack] = None


class PatientResponse(PatientBase):
    """Schema for patient response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    share_token: str
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    full_name: str


class VisiblePatientResponse(PatientResponse):
    """Patient as seen by the caller: own or shared, with effective permissions."""

    is_shared: bool
    access_type: AccessType
    permissions: list[Permission]
    expires_at: Optional[datetime] = None
    grant_id: Optional[int] = None


class SharedPatientPreview(BaseModel):
    """Minimal preview shown before requesting access by share token."""

    patient_id: int
    first_name: str
    last_name: str
    full_name: str
    share_token: str
    organization_id: int
    organization_name: Optional[str] = None
    organization_type: Optional[str] = None
    access_type: AccessType


class ShareTokenAccessResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    accessed_by: int
    accessed_by_org: int
    patient_org: int
    share_token: str
    access_type: str
    accessed_at: datetime
