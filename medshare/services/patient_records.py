"""Medications and comments on a patient, behind the access gate."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medshare.models import Permission, PatientComment, PatientMedication, utc_now
from medshare.schemas.comment import CommentCreate
from medshare.schemas.medication import MedicationCreate, MedicationUpdate
from medshare.services.actor import Actor
from medshare.services.directory import PatientDirectory
from medshare.services.enforcer import PermissionEnforcer
from medshare.services.errors import NotFound


class ClinicalRecordStore(Protocol):
    async def add_medication(self, medication: PatientMedication) -> PatientMedication:
        ...

    async def get_medication(self, medication_id: int) -> Optional[PatientMedication]:
        ...

    async def save_medication(self, medication: PatientMedication) -> PatientMedication:
        ...

    async def list_medications(
        self, patient_id: int, active_only: bool = True
    ) -> list[PatientMedication]:
        ...

    async def add_comment(self, comment: PatientComment) -> PatientComment:
        ...

    async def get_comment(self, comment_id: int) -> Optional[PatientComment]:
        ...

    async def list_comments(self, patient_id: int) -> list[PatientComment]:
        ...


class SQLClinicalRecordStore:
    """Clinical record store backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_medication(self, medication: PatientMedication) -> PatientMedication:
        self.db.add(medication)
        await self.db.flush()
        await self.db.refresh(medication)
        return medication

    async def get_medication(self, medication_id: int) -> Optional[PatientMedication]:
        result = await self.db.execute(
            select(PatientMedication).where(PatientMedication.id == medication_id)
        )
        return result.scalar_one_or_none()

    async def save_medication(self, medication: PatientMedication) -> PatientMedication:
        await self.db.flush()
        return medication

    async def list_medications(
        self, patient_id: int, active_only: bool = True
    ) -> list[PatientMedication]:
        query = select(PatientMedication).where(PatientMedication.patient_id == patient_id)
        if active_only:
            query = query.where(PatientMedication.is_active.is_(True))
        query = query.order_by(PatientMedication.added_at.desc(), PatientMedication.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def add_comment(self, comment: PatientComment) -> PatientComment:
        self.db.add(comment)
        await self.db.flush()
        await self.db.refresh(comment)
        return comment

    async def get_comment(self, comment_id: int) -> Optional[PatientComment]:
        result = await self.db.execute(
            select(PatientComment).where(PatientComment.id == comment_id)
        )
        return result.scalar_one_or_none()

    async def list_comments(self, patient_id: int) -> list[PatientComment]:
        result = await self.db.execute(
            select(PatientComment)
            .where(
                PatientComment.patient_id == patient_id,
                PatientComment.is_active.is_(True),
            )
            .order_by(PatientComment.created_at.desc(), PatientComment.id.desc())
        )
        return list(result.scalars().all())


class InMemoryClinicalRecordStore:
    """In-memory store for tests and local demos."""

    def __init__(self):
        self.medications: list[PatientMedication] = []
        self.comments: list[PatientComment] = []

    async def add_medication(self, medication: PatientMedication) -> PatientMedication:
        medication.id = len(self.medications) + 1
        self.medications.append(medication)
        return medication

    async def get_medication(self, medication_id: int) -> Optional[PatientMedication]:
        for medication in self.medications:
            if medication.id == medication_id:
                return medication
        return None

    async def save_medication(self, medication: PatientMedication) -> PatientMedication:
        return medication

    async def list_medications(
        self, patient_id: int, active_only: bool = True
    ) -> list[PatientMedication]:
        meds = [
            m
            for m in self.medications
            if m.patient_id == patient_id and (m.is_active or not active_only)
        ]
        return sorted(meds, key=lambda m: (m.added_at, m.id), reverse=True)

    async def add_comment(self, comment: PatientComment) -> PatientComment:
        comment.id = len(self.comments) + 1
        self.comments.append(comment)
        return comment

    async def get_comment(self, comment_id: int) -> Optional[PatientComment]:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None

    async def list_comments(self, patient_id: int) -> list[PatientComment]:
        comments = [c for c in self.comments if c.patient_id == patient_id and c.is_active]
        return sorted(comments, key=lambda c: (c.created_at, c.id), reverse=True)


@dataclass
class MedicationEntry:
    medication: PatientMedication
    added_by_name: Optional[str] = None
    organization_name: Optional[str] = None


@dataclass
class CommentEntry:
    comment: PatientComment
    author_name: Optional[str] = None
    author_org_name: Optional[str] = None


class PatientRecordsService:
    """Every operation goes through ``PermissionEnforcer.require_access`` first."""

    def __init__(
        self,
        records: ClinicalRecordStore,
        enforcer: PermissionEnforcer,
        directory: PatientDirectory,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.records = records
        self.enforcer = enforcer
        self.directory = directory
        self.clock = clock

    async def add_medication(
        self, patient_id: int, data: MedicationCreate, actor: Actor
    ) -> PatientMedication:
        await self.enforcer.require_access(patient_id, actor, Permission.view_medications)
        medication = PatientMedication(
            patient_id=patient_id,
            organization_id=actor.organization_id,
            **data.model_dump(),
            is_active=True,
            added_by=actor.user_id,
            added_at=self.clock(),
        )
        return await self.records.add_medication(medication)

    async def update_medication(
        self, medication_id: int, data: MedicationUpdate, actor: Actor
    ) -> PatientMedication:
        medication = await self.records.get_medication(medication_id)
        if medication is None:
            raise NotFound("Medication not found")
        await self.enforcer.require_access(
            medication.patient_id, actor, Permission.view_medications
        )
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(medication, field, value)
        medication.updated_by = actor.user_id
        medication.updated_at = self.clock()
        return await self.records.save_medication(medication)

    async def list_medications(
        self, patient_id: int, actor: Actor, active_only: bool = True
    ) -> list[MedicationEntry]:
        await self.enforcer.require_access(patient_id, actor, Permission.view_medications)
        medications = await self.records.list_medications(patient_id, active_only=active_only)
        profiles = await self.directory.get_profiles({m.added_by for m in medications})
        organizations = await self.directory.get_organizations(
            {m.organization_id for m in medications}
        )
        entries = []
        for medication in medications:
            adder = profiles.get(medication.added_by)
            org = organizations.get(medication.organization_id)
            entries.append(
                MedicationEntry(
                    medication=medication,
                    added_by_name=adder.full_name if adder else None,
                    organization_name=org.name if org else None,
                )
            )
        return entries

    async def add_comment(
        self, patient_id: int, data: CommentCreate, actor: Actor
    ) -> PatientComment:
        await self.enforcer.require_access(patient_id, actor, Permission.comment)
        if data.reply_to_id is not None:
            parent = await self.records.get_comment(data.reply_to_id)
            if parent is None or parent.patient_id != patient_id:
                raise NotFound("Comment to reply to not found")
        comment = PatientComment(
            patient_id=patient_id,
            author_id=actor.user_id,
            author_org=actor.organization_id,
            content=data.content,
            comment_type=data.comment_type.value,
            is_private=data.is_private,
            reply_to_id=data.reply_to_id,
            is_active=True,
            created_at=self.clock(),
        )
        return await self.records.add_comment(comment)

    async def list_comments(self, patient_id: int, actor: Actor) -> list[CommentEntry]:
        """Newest first; private comments only reach the author's organization."""
        await self.enforcer.require_access(patient_id, actor, Permission.view)
        comments = [
            c
            for c in await self.records.list_comments(patient_id)
            if not c.is_private or c.author_org == actor.organization_id
        ]
        profiles = await self.directory.get_profiles({c.author_id for c in comments})
        organizations = await self.directory.get_organizations(
            {c.author_org for c in comments}
        )
        entries = []
        for comment in comments:
            author = profiles.get(comment.author_id)
            org = organizations.get(comment.author_org)
            entries.append(
                CommentEntry(
                    comment=comment,
                    author_name=author.full_name if author else None,
                    author_org_name=org.name if org else None,
                )
            )
        return entries
