"""Which patients a caller can see: their organization's own plus those shared with them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from medshare.config import settings
from medshare.models import (
    ALL_PERMISSIONS,
    AccessType,
    GrantStatus,
    Patient,
    Permission,
    utc_now,
)
from medshare.services.actor import Actor
from medshare.services.directory import PatientDirectory
from medshare.services.enforcer import PermissionEnforcer
from medshare.services.grant_state import confers_access
from medshare.services.grant_store import GrantStore

logger = logging.getLogger("medshare.visibility")


@dataclass
class VisiblePatient:
    patient: Patient
    is_shared: bool
    access_type: AccessType
    permissions: frozenset[Permission]
    expires_at: Optional[datetime] = None
    grant_id: Optional[int] = None


class VisibilityResolver:
    def __init__(
        self,
        grants: GrantStore,
        directory: PatientDirectory,
        clock: Callable[[], datetime] = utc_now,
        enforcer: Optional[PermissionEnforcer] = None,
        warn_threshold: Optional[int] = None,
    ):
        self.grants = grants
        self.directory = directory
        self.clock = clock
        self.enforcer = enforcer or PermissionEnforcer(grants, directory, clock=clock)
        self.warn_threshold = warn_threshold or settings.visibility_scan_warn_threshold

    async def list_visible_patients(
        self,
        actor: Actor,
        limit: Optional[int] = None,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> list[VisiblePatient]:
        """Own patients plus patients shared through live grants that include `view`.

        ``search`` matches a case-insensitive substring of the full name, email
        or share token and is applied before paging.

        The whole set is merged and sorted before paging, so cost grows with
        the number of visible patients rather than the page size.
        """
        now = self.clock()
        merged: dict[int, VisiblePatient] = {}

        for patient in await self.directory.list_org_patients(actor.organization_id):
            merged[patient.id] = VisiblePatient(
                patient=patient,
                is_shared=False,
                access_type=AccessType.same_organization,
                permissions=ALL_PERMISSIONS,
            )

        held = await self.grants.list_for_grantee(
            actor.user_id, status=GrantStatus.approved.value
        )
        live = [g for g in held if confers_access(g, now) and g.patient_id not in merged]
        shared = await self.directory.get_patients({g.patient_id for g in live})
        for grant in live:
            patient = shared.get(grant.patient_id)
            if patient is None or not patient.is_active or patient.id in merged:
                continue
            # A grant on an own-org patient is covered by ownership above.
            if patient.organization_id == actor.organization_id:
                continue
            if self.enforcer.enforce_permissions and not grant.has_permission(
                Permission.view
            ):
                continue
            merged[patient.id] = VisiblePatient(
                patient=patient,
                is_shared=True,
                access_type=AccessType.cross_organization,
                permissions=grant.permission_set,
                expires_at=grant.expires_at,
                grant_id=grant.id,
            )

        if len(merged) > self.warn_threshold:
            logger.warning(
                "Visible patient set for user %s has %d entries (threshold %d); "
                "listing scans and pages in memory",
                actor.user_id,
                len(merged),
                self.warn_threshold,
            )

        candidates = merged.values()
        if search:
            term = search.strip().lower()
            candidates = [v for v in candidates if _matches(v.patient, term)]

        ordered = sorted(
            candidates,
            key=lambda v: (v.patient.created_at, v.patient.id),
            reverse=True,
        )
        if limit is None:
            return ordered[offset:]
        return ordered[offset : offset + limit]

    async def get_one_visible(self, actor: Actor, patient_id: int) -> VisiblePatient:
        decision = await self.enforcer.require_access(patient_id, actor, Permission.view)
        return VisiblePatient(
            patient=decision.patient,
            is_shared=decision.is_shared,
            access_type=decision.access_type,
            permissions=decision.permissions,
            expires_at=decision.expires_at,
            grant_id=decision.grant.id if decision.grant is not None else None,
        )


def _matches(patient: Patient, term: str) -> bool:
    return (
        term in patient.full_name.lower()
        or term in (patient.email or "").lower()
        or term in patient.share_token.lower()
    )
