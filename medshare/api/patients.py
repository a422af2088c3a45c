from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from medshare.api.access import Manager, to_detail
from medshare.api.deps import (
    CurrentActor,
    get_patient_service,
    get_visibility_resolver,
)
from medshare.models import GrantStatus
from medshare.schemas.access import AccessGrantDetail
from medshare.schemas.patient import (
    PatientCreate,
    PatientResponse,
    PatientUpdate,
    SharedPatientPreview,
    ShareTokenAccessResponse,
    VisiblePatientResponse,
)
from medshare.services.patients import PatientService
from medshare.services.visibility import VisibilityResolver, VisiblePatient

router = APIRouter(prefix="/patients", tags=["Patients"])

Resolver = Annotated[VisibilityResolver, Depends(get_visibility_resolver)]
Patients = Annotated[PatientService, Depends(get_patient_service)]


def to_visible_response(visible: VisiblePatient) -> VisiblePatientResponse:
    base = PatientResponse.model_validate(visible.patient).model_dump()
    return VisiblePatientResponse(
        **base,
        is_shared=visible.is_shared,
        access_type=visible.access_type,
        permissions=sorted(visible.permissions),
        expires_at=visible.expires_at,
        grant_id=visible.grant_id,
    )


@router.get("", response_model=list[VisiblePatientResponse])
async def list_visible_patients(
    actor: CurrentActor,
    resolver: Resolver,
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, max_length=100),
):
    """Own organization's patients plus patients shared with the caller."""
    visible = await resolver.list_visible_patients(
        actor, limit=limit, offset=offset, search=search
    )
    return [to_visible_response(v) for v in visible]


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(data: PatientCreate, actor: CurrentActor, patients: Patients):
    """Create a patient in the caller's organization with a fresh share token."""
    patient = await patients.create_patient(data, actor)
    return PatientResponse.model_validate(patient)


@router.get("/shared/{share_token}", response_model=SharedPatientPreview)
async def preview_shared_patient(share_token: str, actor: CurrentActor, patients: Patients):
    """Minimal preview of a patient before requesting access by share token."""
    shared = await patients.preview_shared_patient(share_token, actor)
    return SharedPatientPreview(
        patient_id=shared.patient.id,
        first_name=shared.patient.first_name,
        last_name=shared.patient.last_name,
        full_name=shared.patient.full_name,
        share_token=shared.patient.share_token,
        organization_id=shared.patient.organization_id,
        organization_name=shared.organization_name,
        organization_type=shared.organization_type,
        access_type=shared.access_type,
    )


@router.post(
    "/shared/{share_token}/access-log",
    response_model=ShareTokenAccessResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_share_token_access(share_token: str, actor: CurrentActor, patients: Patients):
    entry = await patients.log_share_token_access(share_token, actor)
    return ShareTokenAccessResponse.model_validate(entry)


@router.get("/{patient_id}", response_model=VisiblePatientResponse)
async def get_patient(patient_id: int, actor: CurrentActor, resolver: Resolver):
    visible = await resolver.get_one_visible(actor, patient_id)
    return to_visible_response(visible)


@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int, data: PatientUpdate, actor: CurrentActor, patients: Patients
):
    """Update a patient's information. Only provided fields change."""
    patient = await patients.update_patient(patient_id, data, actor)
    return PatientResponse.model_validate(patient)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(patient_id: int, actor: CurrentActor, patients: Patients):
    """Soft delete; only the owning organization may do it."""
    await patients.delete_patient(patient_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{patient_id}/access-grants", response_model=list[AccessGrantDetail])
async def get_patient_access_grants(
    patient_id: int,
    actor: CurrentActor,
    manager: Manager,
    status_filter: Optional[GrantStatus] = Query(None, alias="status"),
):
    """All grants on a patient, newest request first. Owning organization only."""
    details = await manager.get_patient_access_grants(
        patient_id, actor, status=status_filter.value if status_filter else None
    )
    return [to_detail(d) for d in details]
