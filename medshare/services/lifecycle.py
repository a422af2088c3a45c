"""Access grant lifecycle: request, approve, deny, revoke, direct grant, expiry sweep.

Each public method is one unit of work against the grant store. The caller's
session owns the transaction, so checks and writes made by one call commit or
roll back together.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from medshare.config import settings
from medshare.models import (
    ALL_PERMISSIONS,
    AccessGrant,
    AccessType,
    GrantStatus,
    format_permissions,
    utc_now,
)
from medshare.services.actor import Actor
from medshare.services.directory import PatientDirectory
from medshare.services.errors import Conflict, InvalidState, NotFound, Unauthorized
from medshare.services.grant_state import ensure_transition, is_expired
from medshare.services.grant_store import GrantStore
from medshare.services.notifications import GrantNotifier, NullGrantNotifier

logger = logging.getLogger("medshare.access")


@dataclass
class GrantDetails:
    """A grant plus the names a reviewer needs to act on it."""

    grant: AccessGrant
    patient_name: Optional[str] = None
    grantee_name: Optional[str] = None
    grantee_email: Optional[str] = None
    grantee_org_name: Optional[str] = None
    grantee_org_type: Optional[str] = None
    owning_org_name: Optional[str] = None
    granted_by_name: Optional[str] = None


class GrantLifecycleManager:
    def __init__(
        self,
        grants: GrantStore,
        directory: PatientDirectory,
        notifier: Optional[GrantNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
        max_expiry_days: Optional[int] = None,
    ):
        self.grants = grants
        self.directory = directory
        self.notifier = notifier or NullGrantNotifier()
        self.clock = clock
        self.max_expiry_days = max_expiry_days or settings.max_grant_expiry_days

    async def request_access(
        self,
        share_token: str,
        actor: Actor,
        permissions: Optional[Iterable[str]] = None,
    ) -> AccessGrant:
        """Request access to a patient by share token.

        Same-organization requests are approved on creation; cross-organization
        requests wait for the owning organization.
        """
        patient = await self.directory.get_patient_by_share_token(share_token)
        if patient is None or not patient.is_active:
            raise NotFound("Patient not found")

        stored_permissions = _stored_permissions(permissions, default=ALL_PERMISSIONS)
        now = self.clock()
        existing = await self.grants.find_open_grant(patient.id, actor.user_id)
        if existing is not None:
            if existing.status == GrantStatus.approved and is_expired(existing, now):
                self._expire(existing, now)
                await self.grants.save(existing)
                logger.info(
                    "Expired grant %s revoked before new request patient=%s user=%s",
                    existing.id,
                    patient.id,
                    actor.user_id,
                )
            elif existing.status == GrantStatus.pending:
                raise Conflict("An access request for this patient is already pending")
            else:
                raise Conflict("You already have access to this patient")

        same_org = patient.organization_id == actor.organization_id
        grant = AccessGrant(
            patient_id=patient.id,
            share_token=patient.share_token,
            granted_to=actor.user_id,
            granted_to_org=actor.organization_id,
            granted_by=None,
            granted_by_org=patient.organization_id,
            access_type=(
                AccessType.same_organization if same_org else AccessType.cross_organization
            ).value,
            status=(GrantStatus.approved if same_org else GrantStatus.pending).value,
            permissions=stored_permissions,
            is_active=same_org,
            expires_at=None,
            requested_at=now,
            granted_at=now if same_org else None,
        )
        await self.grants.add(grant)
        logger.info(
            "Access %s grant=%s patient=%s user=%s org=%s",
            "auto-approved" if same_org else "requested",
            grant.id,
            patient.id,
            actor.user_id,
            actor.organization_id,
        )
        if not same_org:
            await self.notifier.access_requested(grant)
        return grant

    async def approve_access(
        self,
        grant_id: int,
        actor: Actor,
        permissions: Optional[Iterable[str]] = None,
        expires_in_days: Optional[int] = None,
    ) -> AccessGrant:
        grant = await self._get_owned_grant(grant_id, actor)
        ensure_transition(grant, GrantStatus.approved)
        now = self.clock()
        expires_at = self._expiry(now, expires_in_days)
        stored_permissions = _stored_permissions(permissions, default=grant.permissions)
        grant.status = GrantStatus.approved.value
        grant.is_active = True
        grant.permissions = stored_permissions
        grant.expires_at = expires_at
        grant.granted_by = actor.user_id
        grant.granted_at = now
        await self.grants.save(grant)
        logger.info(
            "Access approved grant=%s patient=%s by user=%s expires_at=%s",
            grant.id,
            grant.patient_id,
            actor.user_id,
            grant.expires_at,
        )
        await self.notifier.access_approved(grant)
        return grant

    async def deny_access(self, grant_id: int, actor: Actor) -> AccessGrant:
        grant = await self._get_owned_grant(grant_id, actor)
        ensure_transition(grant, GrantStatus.denied)
        grant.status = GrantStatus.denied.value
        grant.is_active = False
        grant.denied_at = self.clock()
        grant.denied_by = actor.user_id
        await self.grants.save(grant)
        logger.info(
            "Access denied grant=%s patient=%s by user=%s",
            grant.id,
            grant.patient_id,
            actor.user_id,
        )
        return grant

    async def revoke_access(self, grant_id: int, actor: Actor) -> AccessGrant:
        grant = await self._get_owned_grant(grant_id, actor)
        ensure_transition(grant, GrantStatus.revoked)
        grant.status = GrantStatus.revoked.value
        grant.is_active = False
        grant.revoked_at = self.clock()
        grant.revoked_by = actor.user_id
        await self.grants.save(grant)
        logger.info(
            "Access revoked grant=%s patient=%s by user=%s",
            grant.id,
            grant.patient_id,
            actor.user_id,
        )
        return grant

    async def grant_access(
        self,
        patient_id: int,
        grantee_user_id: int,
        permissions: Iterable[str],
        actor: Actor,
        expires_in_days: Optional[int] = None,
    ) -> AccessGrant:
        """Push access to a user directly, skipping the request step.

        An open grant for the pair is updated in place (a pending one is
        approved) so the pair never has two open rows.
        """
        patient = await self.directory.get_patient(patient_id)
        if patient is None or not patient.is_active:
            raise NotFound("Patient not found")
        if patient.organization_id != actor.organization_id:
            raise Unauthorized("Patient is not in your organization")

        grantee = await self.directory.get_profile(grantee_user_id)
        if grantee is None or not grantee.is_active:
            raise NotFound("User to grant access not found")
        if grantee.organization_id is None:
            raise InvalidState("User to grant access does not belong to an organization")

        now = self.clock()
        expires_at = self._expiry(now, expires_in_days)
        stored_permissions = _stored_permissions(permissions)

        grant = await self.grants.find_open_grant(patient.id, grantee.id)
        if grant is not None:
            created = False
            if grant.status == GrantStatus.pending:
                ensure_transition(grant, GrantStatus.approved)
                grant.status = GrantStatus.approved.value
            grant.is_active = True
            grant.permissions = stored_permissions
            grant.expires_at = expires_at
            grant.granted_by = actor.user_id
            grant.granted_at = now
            await self.grants.save(grant)
        else:
            created = True
            same_org = grantee.organization_id == patient.organization_id
            grant = AccessGrant(
                patient_id=patient.id,
                share_token=patient.share_token,
                granted_to=grantee.id,
                granted_to_org=grantee.organization_id,
                granted_by=actor.user_id,
                granted_by_org=patient.organization_id,
                access_type=(
                    AccessType.same_organization
                    if same_org
                    else AccessType.cross_organization
                ).value,
                status=GrantStatus.approved.value,
                permissions=stored_permissions,
                is_active=True,
                expires_at=expires_at,
                requested_at=now,
                granted_at=now,
            )
            await self.grants.add(grant)

        logger.info(
            "Access %s grant=%s patient=%s to user=%s by user=%s",
            "granted" if created else "updated",
            grant.id,
            patient.id,
            grantee.id,
            actor.user_id,
        )
        await self.notifier.access_granted(grant)
        return grant

    async def get_patient_access_grants(
        self,
        patient_id: int,
        actor: Actor,
        status: Optional[str] = None,
    ) -> list[GrantDetails]:
        """All grants for a patient, newest request first. Owning organization only."""
        patient = await self.directory.get_patient(patient_id)
        if patient is None:
            raise NotFound("Patient not found")
        if patient.organization_id != actor.organization_id:
            raise Unauthorized("Patient is not in your organization")
        grants = await self.grants.list_for_patient(patient_id, status=status)
        return await self._enrich(grants)

    async def list_incoming_requests(
        self, actor: Actor, status: Optional[str] = None
    ) -> list[GrantDetails]:
        """Grants on patients owned by the caller's organization."""
        grants = await self.grants.list_for_owning_org(actor.organization_id, status=status)
        return await self._enrich(grants)

    async def list_my_grants(
        self, actor: Actor, status: Optional[str] = None
    ) -> list[GrantDetails]:
        """Grants held by the caller."""
        grants = await self.grants.list_for_grantee(actor.user_id, status=status)
        return await self._enrich(grants)

    async def sweep_expired(
        self,
        organization_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[AccessGrant]:
        """Move approved grants past their expiry to revoked."""
        now = self.clock()
        expired = await self.grants.list_expired(
            now, organization_id=organization_id, limit=limit
        )
        for grant in expired:
            self._expire(grant, now)
            await self.grants.save(grant)
            logger.info(
                "Expired grant revoked grant=%s patient=%s user=%s expires_at=%s",
                grant.id,
                grant.patient_id,
                grant.granted_to,
                grant.expires_at,
            )
        return expired

    async def _get_owned_grant(self, grant_id: int, actor: Actor) -> AccessGrant:
        grant = await self.grants.get(grant_id)
        if grant is None:
            raise NotFound("Access grant not found")
        if grant.granted_by_org != actor.organization_id:
            raise Unauthorized("Only the patient's organization can manage this grant")
        return grant

    def _expiry(self, now: datetime, expires_in_days: Optional[int]) -> Optional[datetime]:
        if expires_in_days is None:
            return None
        if expires_in_days < 1 or expires_in_days > self.max_expiry_days:
            raise InvalidState(
                f"expires_in_days must be between 1 and {self.max_expiry_days}"
            )
        return now + timedelta(days=expires_in_days)

    @staticmethod
    def _expire(grant: AccessGrant, now: datetime) -> None:
        ensure_transition(grant, GrantStatus.revoked)
        grant.status = GrantStatus.revoked.value
        grant.is_active = False
        grant.revoked_at = now
        grant.revoked_by = None

    async def _enrich(self, grants: list[AccessGrant]) -> list[GrantDetails]:
        if not grants:
            return []
        profile_ids = {g.granted_to for g in grants} | {
            g.granted_by for g in grants if g.granted_by is not None
        }
        org_ids = {g.granted_to_org for g in grants} | {g.granted_by_org for g in grants}
        profiles = await self.directory.get_profiles(profile_ids)
        organizations = await self.directory.get_organizations(org_ids)
        patients = await self.directory.get_patients({g.patient_id for g in grants})

        details = []
        for grant in grants:
            grantee = profiles.get(grant.granted_to)
            grantee_org = organizations.get(grant.granted_to_org)
            owning_org = organizations.get(grant.granted_by_org)
            approver = profiles.get(grant.granted_by) if grant.granted_by else None
            patient = patients.get(grant.patient_id)
            details.append(
                GrantDetails(
                    grant=grant,
                    patient_name=patient.full_name if patient else None,
                    grantee_name=grantee.full_name if grantee else None,
                    grantee_email=grantee.email if grantee else None,
                    grantee_org_name=grantee_org.name if grantee_org else None,
                    grantee_org_type=grantee_org.type if grantee_org else None,
                    owning_org_name=owning_org.name if owning_org else None,
                    granted_by_name=approver.full_name if approver else None,
                )
            )
        return details


def _stored_permissions(permissions, default=None) -> str:
    """Storage form of an explicit permission set; ``None`` falls back to ``default``."""
    if permissions is None:
        if default is None:
            raise InvalidState("At least one permission is required")
        return default if isinstance(default, str) else format_permissions(default)
    stored = format_permissions(permissions)
    if not stored:
        raise InvalidState("At least one permission is required")
    return stored
