"""Patient, profile and organization lookups used by the access core."""

from __future__ import annotations

import secrets
import string
from collections.abc import Iterable
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medshare.models import (
    MemberRole,
    Organization,
    Patient,
    ShareTokenAccess,
    UserProfile,
    utc_now,
)

SHARE_TOKEN_ALPHABET = string.ascii_uppercase + string.digits
CONTACT_ROLES = (MemberRole.owner.value, MemberRole.admin.value)


def generate_share_token() -> str:
    """Return a token shaped like ``PAT-AB12-CD34-EF56``."""
    chars = "".join(secrets.choice(SHARE_TOKEN_ALPHABET) for _ in range(12))
    return f"PAT-{chars[0:4]}-{chars[4:8]}-{chars[8:12]}"


class PatientDirectory(Protocol):
    async def get_patient(self, patient_id: int) -> Optional[Patient]:
        ...

    async def get_patient_by_share_token(self, share_token: str) -> Optional[Patient]:
        ...

    async def get_patients(self, patient_ids: Iterable[int]) -> dict[int, Patient]:
        ...

    async def list_org_patients(self, organization_id: int) -> list[Patient]:
        ...

    async def create_patient(self, patient: Patient) -> Patient:
        ...

    async def save_patient(self, patient: Patient) -> Patient:
        ...

    async def share_token_exists(self, share_token: str) -> bool:
        ...

    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        ...

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        ...

    async def get_organization(self, organization_id: int) -> Optional[Organization]:
        ...

    async def get_organizations(
        self, organization_ids: Iterable[int]
    ) -> dict[int, Organization]:
        ...

    async def list_org_contacts(self, organization_id: int) -> list[UserProfile]:
        ...

    async def log_share_token_access(self, entry: ShareTokenAccess) -> ShareTokenAccess:
        ...


async def new_unique_share_token(directory: PatientDirectory) -> str:
    token = generate_share_token()
    while await directory.share_token_exists(token):
        token = generate_share_token()
    return token


class SQLPatientDirectory:
    """Directory backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_patient(self, patient_id: int) -> Optional[Patient]:
        result = await self.db.execute(select(Patient).where(Patient.id == patient_id))
        return result.scalar_one_or_none()

    async def get_patient_by_share_token(self, share_token: str) -> Optional[Patient]:
        result = await self.db.execute(
            select(Patient).where(Patient.share_token == share_token)
        )
        return result.scalar_one_or_none()

    async def get_patients(self, patient_ids: Iterable[int]) -> dict[int, Patient]:
        ids = set(patient_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Patient).where(Patient.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    async def list_org_patients(self, organization_id: int) -> list[Patient]:
        result = await self.db.execute(
            select(Patient).where(
                Patient.organization_id == organization_id,
                Patient.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def create_patient(self, patient: Patient) -> Patient:
        self.db.add(patient)
        await self.db.flush()
        await self.db.refresh(patient)
        return patient

    async def save_patient(self, patient: Patient) -> Patient:
        await self.db.flush()
        return patient

    async def share_token_exists(self, share_token: str) -> bool:
        result = await self.db.execute(
            select(Patient.id).where(Patient.share_token == share_token)
        )
        return result.first() is not None

    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(UserProfile.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        ids = {i for i in user_ids if i is not None}
        if not ids:
            return {}
        result = await self.db.execute(select(UserProfile).where(UserProfile.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    async def get_organization(self, organization_id: int) -> Optional[Organization]:
        result = await self.db.execute(
            select(Organization).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()

    async def get_organizations(
        self, organization_ids: Iterable[int]
    ) -> dict[int, Organization]:
        ids = {i for i in organization_ids if i is not None}
        if not ids:
            return {}
        result = await self.db.execute(
            select(Organization).where(Organization.id.in_(ids))
        )
        return {o.id: o for o in result.scalars().all()}

    async def list_org_contacts(self, organization_id: int) -> list[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(
                UserProfile.organization_id == organization_id,
                UserProfile.role.in_(CONTACT_ROLES),
                UserProfile.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def log_share_token_access(self, entry: ShareTokenAccess) -> ShareTokenAccess:
        self.db.add(entry)
        await self.db.flush()
        return entry


class InMemoryPatientDirectory:
    """In-memory directory for tests and local demos."""

    def __init__(self):
        self.patients: dict[int, Patient] = {}
        self.profiles: dict[int, UserProfile] = {}
        self.organizations: dict[int, Organization] = {}
        self.access_log: list[ShareTokenAccess] = []
        self._next_patient_id = 1

    def add_organization(self, organization: Organization) -> Organization:
        self.organizations[organization.id] = organization
        return organization

    def add_profile(self, profile: UserProfile) -> UserProfile:
        if profile.is_active is None:
            profile.is_active = True
        self.profiles[profile.id] = profile
        return profile

    async def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.patients.get(patient_id)

    async def get_patient_by_share_token(self, share_token: str) -> Optional[Patient]:
        for patient in self.patients.values():
            if patient.share_token == share_token:
                return patient
        return None

    async def get_patients(self, patient_ids: Iterable[int]) -> dict[int, Patient]:
        return {i: self.patients[i] for i in set(patient_ids) if i in self.patients}

    async def list_org_patients(self, organization_id: int) -> list[Patient]:
        return [
            p
            for p in self.patients.values()
            if p.organization_id == organization_id and p.is_active
        ]

    async def create_patient(self, patient: Patient) -> Patient:
        if patient.id is None:
            patient.id = self._next_patient_id
        self._next_patient_id = max(self._next_patient_id, patient.id) + 1
        now = utc_now()
        patient.created_at = patient.created_at or now
        patient.updated_at = patient.updated_at or now
        if patient.is_active is None:
            patient.is_active = True
        self.patients[patient.id] = patient
        return patient

    async def save_patient(self, patient: Patient) -> Patient:
        patient.updated_at = utc_now()
        return patient

    async def share_token_exists(self, share_token: str) -> bool:
        return any(p.share_token == share_token for p in self.patients.values())

    async def get_profile(self, user_id: int) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def get_profiles(self, user_ids: Iterable[int]) -> dict[int, UserProfile]:
        return {i: self.profiles[i] for i in set(user_ids) if i in self.profiles}

    async def get_organization(self, organization_id: int) -> Optional[Organization]:
        return self.organizations.get(organization_id)

    async def get_organizations(
        self, organization_ids: Iterable[int]
    ) -> dict[int, Organization]:
        return {
            i: self.organizations[i]
            for i in set(organization_ids)
            if i in self.organizations
        }

    async def list_org_contacts(self, organization_id: int) -> list[UserProfile]:
        return [
            p
            for p in self.profiles.values()
            if p.organization_id == organization_id
            and p.role in CONTACT_ROLES
            and p.is_active
        ]

    async def log_share_token_access(self, entry: ShareTokenAccess) -> ShareTokenAccess:
        entry.id = len(self.access_log) + 1
        self.access_log.append(entry)
        return entry
