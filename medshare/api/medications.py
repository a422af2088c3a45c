from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from medshare.api.deps import CurrentActor, get_records_service
from medshare.schemas.medication import (
    MedicationCreate,
    MedicationResponse,
    MedicationUpdate,
)
from medshare.services.patient_records import MedicationEntry, PatientRecordsService

router = APIRouter(tags=["Medications"])

Records = Annotated[PatientRecordsService, Depends(get_records_service)]


def to_response(entry: MedicationEntry) -> MedicationResponse:
    base = MedicationResponse.model_validate(entry.medication).model_dump()
    base.update(
        added_by_name=entry.added_by_name,
        organization_name=entry.organization_name,
    )
    return MedicationResponse(**base)


@router.get("/patients/{patient_id}/medications", response_model=list[MedicationResponse])
async def list_medications(
    patient_id: int,
    actor: CurrentActor,
    records: Records,
    active_only: bool = Query(True),
):
    """Medications on a patient's chart, with who added them."""
    entries = await records.list_medications(patient_id, actor, active_only=active_only)
    return [to_response(e) for e in entries]


@router.post(
    "/patients/{patient_id}/medications",
    response_model=MedicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_medication(
    patient_id: int, data: MedicationCreate, actor: CurrentActor, records: Records
):
    medication = await records.add_medication(patient_id, data, actor)
    return MedicationResponse.model_validate(medication)


@router.patch("/medications/{medication_id}", response_model=MedicationResponse)
async def update_medication(
    medication_id: int, data: MedicationUpdate, actor: CurrentActor, records: Records
):
    medication = await records.update_medication(medication_id, data, actor)
    return MedicationResponse.model_validate(medication)
