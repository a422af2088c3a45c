"""Grant store implementations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medshare.models import OPEN_GRANT_STATUSES, AccessGrant, GrantStatus, utc_now
from medshare.services.errors import Conflict

_DUPLICATE_MESSAGE = "An open access grant already exists for this patient and user"


class GrantStore(Protocol):
    async def add(self, grant: AccessGrant) -> AccessGrant:
        ...

    async def get(self, grant_id: int) -> Optional[AccessGrant]:
        ...

    async def save(self, grant: AccessGrant) -> AccessGrant:
        ...

    async def find_open_grant(self, patient_id: int, user_id: int) -> Optional[AccessGrant]:
        ...

    async def find_active_grant(self, patient_id: int, user_id: int) -> Optional[AccessGrant]:
        ...

    async def list_for_patient(
        self, patient_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        ...

    async def list_for_grantee(
        self, user_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        ...

    async def list_for_owning_org(
        self, organization_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        ...

    async def list_expired(
        self,
        now: datetime,
        organization_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[AccessGrant]:
        ...


class SQLGrantStore:
    """Grant store backed by SQLAlchemy.

    Writes are flushed, not committed; the caller's session owns the
    transaction. The partial unique index on open (patient, grantee) pairs
    turns a lost race into ``Conflict``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, grant: AccessGrant) -> AccessGrant:
        self.db.add(grant)
        await self._flush()
        return grant

    async def get(self, grant_id: int) -> Optional[AccessGrant]:
        result = await self.db.execute(
            select(AccessGrant).where(AccessGrant.id == grant_id)
        )
        return result.scalar_one_or_none()

    async def save(self, grant: AccessGrant) -> AccessGrant:
        await self._flush()
        return grant

    async def find_open_grant(self, patient_id: int, user_id: int) -> Optional[AccessGrant]:
        result = await self.db.execute(
            select(AccessGrant)
            .where(
                AccessGrant.patient_id == patient_id,
                AccessGrant.granted_to == user_id,
                AccessGrant.status.in_([s.value for s in OPEN_GRANT_STATUSES]),
            )
            .order_by(AccessGrant.requested_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def find_active_grant(self, patient_id: int, user_id: int) -> Optional[AccessGrant]:
        result = await self.db.execute(
            select(AccessGrant)
            .where(
                AccessGrant.patient_id == patient_id,
                AccessGrant.granted_to == user_id,
                AccessGrant.status == GrantStatus.approved.value,
                AccessGrant.is_active.is_(True),
            )
            .limit(1)
        )
        return result.scalars().first()

    async def list_for_patient(
        self, patient_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        query = select(AccessGrant).where(AccessGrant.patient_id == patient_id)
        if status:
            query = query.where(AccessGrant.status == status)
        query = query.order_by(AccessGrant.requested_at.desc(), AccessGrant.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_grantee(
        self, user_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        query = select(AccessGrant).where(AccessGrant.granted_to == user_id)
        if status:
            query = query.where(AccessGrant.status == status)
        query = query.order_by(AccessGrant.requested_at.desc(), AccessGrant.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_owning_org(
        self, organization_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        query = select(AccessGrant).where(AccessGrant.granted_by_org == organization_id)
        if status:
            query = query.where(AccessGrant.status == status)
        query = query.order_by(AccessGrant.requested_at.desc(), AccessGrant.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_expired(
        self,
        now: datetime,
        organization_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[AccessGrant]:
        query = select(AccessGrant).where(
            AccessGrant.status == GrantStatus.approved.value,
            AccessGrant.is_active.is_(True),
            AccessGrant.expires_at.is_not(None),
            AccessGrant.expires_at < now,
        )
        if organization_id is not None:
            query = query.where(AccessGrant.granted_by_org == organization_id)
        query = query.order_by(AccessGrant.expires_at.asc(), AccessGrant.id.asc())
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise Conflict(_DUPLICATE_MESSAGE) from exc


class InMemoryGrantStore:
    """In-memory grant store for tests and local demos.

    Enforces the same open-pair uniqueness as the database index.
    """

    def __init__(self):
        self._grants: list[AccessGrant] = []
        self._next_id = 1

    async def add(self, grant: AccessGrant) -> AccessGrant:
        self._check_unique(grant)
        now = utc_now()
        grant.id = self._next_id
        grant.created_at = grant.created_at or now
        grant.updated_at = grant.updated_at or now
        self._grants.append(grant)
        self._next_id += 1
        return grant

    async def get(self, grant_id: int) -> Optional[AccessGrant]:
        for grant in self._grants:
            if grant.id == grant_id:
                return grant
        return None

    async def save(self, grant: AccessGrant) -> AccessGrant:
        self._check_unique(grant)
        grant.updated_at = utc_now()
        return grant

    async def find_open_grant(self, patient_id: int, user_id: int) -> Optional[AccessGrant]:
        matches = [
            g
            for g in self._grants
            if g.patient_id == patient_id
            and g.granted_to == user_id
            and g.status in OPEN_GRANT_STATUSES
        ]
        return _newest_first(matches)[0] if matches else None

    async def find_active_grant(self, patient_id: int, user_id: int) -> Optional[AccessGrant]:
        for grant in self._grants:
            if (
                grant.patient_id == patient_id
                and grant.granted_to == user_id
                and grant.status == GrantStatus.approved
                and grant.is_active
            ):
                return grant
        return None

    async def list_for_patient(
        self, patient_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        grants = [g for g in self._grants if g.patient_id == patient_id]
        return _newest_first(_with_status(grants, status))

    async def list_for_grantee(
        self, user_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        grants = [g for g in self._grants if g.granted_to == user_id]
        return _newest_first(_with_status(grants, status))

    async def list_for_owning_org(
        self, organization_id: int, status: Optional[str] = None
    ) -> list[AccessGrant]:
        grants = [g for g in self._grants if g.granted_by_org == organization_id]
        return _newest_first(_with_status(grants, status))

    async def list_expired(
        self,
        now: datetime,
        organization_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[AccessGrant]:
        grants = [
            g
            for g in self._grants
            if g.status == GrantStatus.approved
            and g.is_active
            and g.expires_at is not None
            and g.expires_at < now
            and (organization_id is None or g.granted_by_org == organization_id)
        ]
        grants.sort(key=lambda g: (g.expires_at, g.id))
        return grants[:limit] if limit else grants

    def clear(self) -> None:
        self._grants.clear()
        self._next_id = 1

    def _check_unique(self, grant: AccessGrant) -> None:
        if grant.status not in OPEN_GRANT_STATUSES:
            return
        for other in self._grants:
            if (
                other is not grant
                and other.patient_id == grant.patient_id
                and other.granted_to == grant.granted_to
                and other.status in OPEN_GRANT_STATUSES
            ):
                raise Conflict(_DUPLICATE_MESSAGE)


def _with_status(grants: list[AccessGrant], status: Optional[str]) -> list[AccessGrant]:
    if not status:
        return grants
    return [g for g in grants if g.status == status]


def _newest_first(grants: list[AccessGrant]) -> list[AccessGrant]:
    return sorted(grants, key=lambda g: (g.requested_at, g.id), reverse=True)
