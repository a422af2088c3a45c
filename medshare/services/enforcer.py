"""The single access gate for patient sub-records."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from medshare.config import settings
from medshare.models import (
    ALL_PERMISSIONS,
    AccessGrant,
    AccessType,
    Patient,
    Permission,
    utc_now,
)
from medshare.services.actor import Actor
from medshare.services.directory import PatientDirectory
from medshare.services.errors import NotFound, Unauthorized
from medshare.services.grant_state import confers_access
from medshare.services.grant_store import GrantStore


@dataclass(frozen=True)
class AccessDecision:
    """Why the caller may touch a patient, and with which permissions."""

    patient: Patient
    access_type: AccessType
    permissions: frozenset[Permission]
    grant: Optional[AccessGrant] = None

    @property
    def is_shared(self) -> bool:
        return self.access_type == AccessType.cross_organization

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.grant.expires_at if self.grant is not None else None


class PermissionEnforcer:
    """Decides whether a user may work with a patient.

    The owning organization always has access with every permission. Anyone
    else needs an approved, active, unexpired grant. Nothing here writes: an
    expired grant simply confers no access until the sweep revokes it.
    """

    def __init__(
        self,
        grants: GrantStore,
        directory: PatientDirectory,
        clock: Callable[[], datetime] = utc_now,
        enforce_permissions: Optional[bool] = None,
    ):
        self.grants = grants
        self.directory = directory
        self.clock = clock
        if enforce_permissions is None:
            enforce_permissions = settings.enforce_grant_permissions
        self.enforce_permissions = enforce_permissions

    async def has_access(self, patient_id: int, user_id: int) -> bool:
        patient = await self.directory.get_patient(patient_id)
        if patient is None or not patient.is_active:
            return False
        profile = await self.directory.get_profile(user_id)
        if profile is None:
            return False
        if profile.organization_id == patient.organization_id:
            return True
        grant = await self.grants.find_active_grant(patient_id, user_id)
        return confers_access(grant, self.clock())

    async def require_access(
        self,
        patient_id: int,
        actor: Actor,
        permission: Optional[Permission] = None,
    ) -> AccessDecision:
        patient = await self.directory.get_patient(patient_id)
        if patient is None or not patient.is_active:
            raise NotFound("Patient not found")

        if patient.organization_id == actor.organization_id:
            return AccessDecision(
                patient=patient,
                access_type=AccessType.same_organization,
                permissions=ALL_PERMISSIONS,
            )

        grant = await self.grants.find_active_grant(patient_id, actor.user_id)
        if not confers_access(grant, self.clock()):
            raise Unauthorized("You do not have access to this patient")

        if (
            permission is not None
            and self.enforce_permissions
            and not grant.has_permission(permission)
        ):
            raise Unauthorized(f"Access grant does not include permission: {permission}")

        return AccessDecision(
            patient=patient,
            access_type=AccessType.cross_organization,
            permissions=grant.permission_set,
            grant=grant,
        )
