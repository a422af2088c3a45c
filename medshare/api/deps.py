"""Shared API dependencies.

Stores, services and the caller are all provided through dependencies so
tests can swap in-memory stores, a fake actor and a fixed clock via
``app.dependency_overrides``.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Annotated, Optional

from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from medshare.config import settings
from medshare.database import get_db
from medshare.models import utc_now
from medshare.services.actor import Actor
from medshare.services.directory import PatientDirectory, SQLPatientDirectory
from medshare.services.enforcer import PermissionEnforcer
from medshare.services.errors import AuthenticationRequired, Unauthorized
from medshare.services.grant_store import GrantStore, SQLGrantStore
from medshare.services.lifecycle import GrantLifecycleManager
from medshare.services.notifications import EmailGrantNotifier, GrantNotifier
from medshare.services.patient_records import (
    ClinicalRecordStore,
    PatientRecordsService,
    SQLClinicalRecordStore,
)
from medshare.services.patients import PatientService
from medshare.services.visibility import VisibilityResolver

security = HTTPBearer(auto_error=False)


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_grant_store(db: Annotated[AsyncSession, Depends(get_db)]) -> GrantStore:
    return SQLGrantStore(db)


def get_patient_directory(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PatientDirectory:
    return SQLPatientDirectory(db)


def get_record_store(db: Annotated[AsyncSession, Depends(get_db)]) -> ClinicalRecordStore:
    return SQLClinicalRecordStore(db)


class JWTActorResolver:
    """Resolves a bearer access token to the caller's profile and organization."""

    def __init__(self, directory: PatientDirectory):
        self.directory = directory

    async def resolve(self, session: Optional[str]) -> Actor:
        if not session:
            raise AuthenticationRequired("Authentication required")
        try:
            payload = jwt.decode(
                session, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
            )
            subject = payload.get("sub")
            token_type = payload.get("type")
            if subject is None or (token_type and token_type != "access"):
                raise AuthenticationRequired("Could not validate credentials")
            user_id = int(subject)
        except (JWTError, ValueError) as exc:
            raise AuthenticationRequired("Could not validate credentials") from exc

        profile = await self.directory.get_profile(user_id)
        if profile is None:
            raise AuthenticationRequired("Could not validate credentials")
        if not profile.is_active:
            raise Unauthorized("User account is inactive")
        if profile.organization_id is None:
            raise Unauthorized("User does not belong to an organization")
        return Actor(
            user_id=profile.id,
            organization_id=profile.organization_id,
            role=profile.role,
        )


async def get_current_actor(
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(security)
    ],
) -> Actor:
    """The one place the caller is resolved for every API operation."""
    token = credentials.credentials if credentials else None
    return await JWTActorResolver(directory).resolve(token)


def get_notifier(
    background_tasks: BackgroundTasks,
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
) -> GrantNotifier:
    return EmailGrantNotifier(directory, background_tasks)


def get_enforcer(
    grants: Annotated[GrantStore, Depends(get_grant_store)],
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> PermissionEnforcer:
    return PermissionEnforcer(grants, directory, clock=clock)


def get_lifecycle_manager(
    grants: Annotated[GrantStore, Depends(get_grant_store)],
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
    notifier: Annotated[GrantNotifier, Depends(get_notifier)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> GrantLifecycleManager:
    return GrantLifecycleManager(grants, directory, notifier=notifier, clock=clock)


def get_visibility_resolver(
    grants: Annotated[GrantStore, Depends(get_grant_store)],
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
    enforcer: Annotated[PermissionEnforcer, Depends(get_enforcer)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> VisibilityResolver:
    return VisibilityResolver(grants, directory, clock=clock, enforcer=enforcer)


def get_patient_service(
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
    enforcer: Annotated[PermissionEnforcer, Depends(get_enforcer)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> PatientService:
    return PatientService(directory, enforcer, clock=clock)


def get_records_service(
    records: Annotated[ClinicalRecordStore, Depends(get_record_store)],
    enforcer: Annotated[PermissionEnforcer, Depends(get_enforcer)],
    directory: Annotated[PatientDirectory, Depends(get_patient_directory)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> PatientRecordsService:
    return PatientRecordsService(records, enforcer, directory, clock=clock)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
