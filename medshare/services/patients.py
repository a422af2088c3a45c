"""Patient creation, update, soft delete and share token entry points."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from medshare.models import AccessType, Patient, Permission, ShareTokenAccess, utc_now
from medshare.schemas.patient import PatientCreate, PatientUpdate
from medshare.services.actor import Actor
from medshare.services.directory import PatientDirectory, new_unique_share_token
from medshare.services.enforcer import PermissionEnforcer
from medshare.services.errors import InvalidState, NotFound, Unauthorized

logger = logging.getLogger("medshare.patients")


@dataclass
class SharedPatient:
    patient: Patient
    organization_name: Optional[str]
    organization_type: Optional[str]
    access_type: AccessType


class PatientService:
    def __init__(
        self,
        directory: PatientDirectory,
        enforcer: PermissionEnforcer,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.directory = directory
        self.enforcer = enforcer
        self.clock = clock

    async def create_patient(self, data: PatientCreate, actor: Actor) -> Patient:
        token = await new_unique_share_token(self.directory)
        now = self.clock()
        patient = Patient(
            organization_id=actor.organization_id,
            share_token=token,
            **data.model_dump(),
            created_by=actor.user_id,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        patient = await self.directory.create_patient(patient)
        logger.info(
            "Patient created patient=%s org=%s by user=%s",
            patient.id,
            actor.organization_id,
            actor.user_id,
        )
        return patient

    async def update_patient(
        self, patient_id: int, data: PatientUpdate, actor: Actor
    ) -> Patient:
        """Apply the provided fields.

        Owning-organization staff may always update; anyone else needs a live
        grant that includes `view`.
        """
        decision = await self.enforcer.require_access(patient_id, actor, Permission.view)
        patient = decision.patient
        changes = data.model_dump(exclude_unset=True)
        for field in ("first_name", "last_name"):
            if field in changes and changes[field] is None:
                raise InvalidState(f"{field} cannot be cleared")
        for field, value in changes.items():
            setattr(patient, field, value)
        patient.updated_at = self.clock()
        await self.directory.save_patient(patient)
        logger.info(
            "Patient updated patient=%s by user=%s fields=%s shared=%s",
            patient.id,
            actor.user_id,
            ",".join(sorted(changes)),
            decision.is_shared,
        )
        return patient

    async def delete_patient(self, patient_id: int, actor: Actor) -> Patient:
        """Soft delete; only the owning organization may do it."""
        patient = await self.directory.get_patient(patient_id)
        if patient is None or not patient.is_active:
            raise NotFound("Patient not found")
        if patient.organization_id != actor.organization_id:
            raise Unauthorized("Only the patient's organization can delete this patient")
        patient.is_active = False
        await self.directory.save_patient(patient)
        logger.info("Patient deactivated patient=%s by user=%s", patient.id, actor.user_id)
        return patient

    async def preview_shared_patient(self, share_token: str, actor: Actor) -> SharedPatient:
        patient = await self.directory.get_patient_by_share_token(share_token)
        if patient is None or not patient.is_active:
            raise NotFound("Patient not found")
        organization = await self.directory.get_organization(patient.organization_id)
        return SharedPatient(
            patient=patient,
            organization_name=organization.name if organization else None,
            organization_type=organization.type if organization else None,
            access_type=_access_type(patient, actor),
        )

    async def log_share_token_access(
        self, share_token: str, actor: Actor
    ) -> ShareTokenAccess:
        patient = await self.directory.get_patient_by_share_token(share_token)
        if patient is None:
            raise NotFound("Patient not found")
        entry = ShareTokenAccess(
            patient_id=patient.id,
            accessed_by=actor.user_id,
            accessed_by_org=actor.organization_id,
            patient_org=patient.organization_id,
            share_token=share_token,
            access_type=_access_type(patient, actor).value,
            accessed_at=self.clock(),
        )
        return await self.directory.log_share_token_access(entry)


def _access_type(patient: Patient, actor: Actor) -> AccessType:
    if patient.organization_id == actor.organization_id:
        return AccessType.same_organization
    return AccessType.cross_organization
