"""Access grant API: request, review and push access to patients across organizations."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from medshare.api.deps import CurrentActor, get_lifecycle_manager
from medshare.models import GrantStatus
from medshare.schemas.access import (
    AccessGrantApprove,
    AccessGrantCreate,
    AccessGrantDetail,
    AccessGrantResponse,
    AccessRequestCreate,
    AccessRequestResult,
    SweepResult,
)
from medshare.services.lifecycle import GrantDetails, GrantLifecycleManager

router = APIRouter(prefix="/access", tags=["Access Grants"])

Manager = Annotated[GrantLifecycleManager, Depends(get_lifecycle_manager)]


def to_detail(details: GrantDetails) -> AccessGrantDetail:
    base = AccessGrantResponse.model_validate(details.grant).model_dump()
    return AccessGrantDetail(
        **base,
        patient_name=details.patient_name,
        grantee_name=details.grantee_name,
        grantee_email=details.grantee_email,
        grantee_org_name=details.grantee_org_name,
        grantee_org_type=details.grantee_org_type,
        owning_org_name=details.owning_org_name,
        granted_by_name=details.granted_by_name,
    )


@router.post(
    "/requests",
    response_model=AccessRequestResult,
    status_code=status.HTTP_201_CREATED,
)
async def request_access(data: AccessRequestCreate, actor: CurrentActor, manager: Manager):
    """Request access to a patient using its share token."""
    grant = await manager.request_access(data.share_token, actor, data.permissions)
    return AccessRequestResult(grant_id=grant.id, status=grant.status)


@router.get("/requests", response_model=list[AccessGrantDetail])
async def list_incoming_requests(
    actor: CurrentActor,
    manager: Manager,
    status_filter: Optional[GrantStatus] = Query(
        None, alias="status", description="Filter: pending, approved, denied, revoked"
    ),
):
    """Grants on patients owned by the caller's organization."""
    details = await manager.list_incoming_requests(
        actor, status=status_filter.value if status_filter else None
    )
    return [to_detail(d) for d in details]


@router.get("/mine", response_model=list[AccessGrantDetail])
async def list_my_grants(
    actor: CurrentActor,
    manager: Manager,
    status_filter: Optional[GrantStatus] = Query(None, alias="status"),
):
    """Grants held by the caller."""
    details = await manager.list_my_grants(
        actor, status=status_filter.value if status_filter else None
    )
    return [to_detail(d) for d in details]


@router.post("/grants/{grant_id}/approve", response_model=AccessGrantResponse)
async def approve_access(
    grant_id: int,
    actor: CurrentActor,
    manager: Manager,
    data: Optional[AccessGrantApprove] = None,
):
    data = data or AccessGrantApprove()
    grant = await manager.approve_access(
        grant_id, actor, data.permissions, data.expires_in_days
    )
    return AccessGrantResponse.model_validate(grant)


@router.post("/grants/{grant_id}/deny", response_model=AccessGrantResponse)
async def deny_access(grant_id: int, actor: CurrentActor, manager: Manager):
    grant = await manager.deny_access(grant_id, actor)
    return AccessGrantResponse.model_validate(grant)


@router.post("/grants/{grant_id}/revoke", response_model=AccessGrantResponse)
async def revoke_access(grant_id: int, actor: CurrentActor, manager: Manager):
    grant = await manager.revoke_access(grant_id, actor)
    return AccessGrantResponse.model_validate(grant)


@router.post(
    "/grants",
    response_model=AccessGrantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_access(data: AccessGrantCreate, actor: CurrentActor, manager: Manager):
    """Push access to a user directly; an open grant for the pair is updated instead."""
    grant = await manager.grant_access(
        data.patient_id,
        data.granted_to,
        data.permissions,
        actor,
        expires_in_days=data.expires_in_days,
    )
    return AccessGrantResponse.model_validate(grant)


@router.post("/grants/sweep", response_model=SweepResult)
async def sweep_expired_grants(actor: CurrentActor, manager: Manager):
    """Revoke expired grants on the caller's organization's patients."""
    revoked = await manager.sweep_expired(organization_id=actor.organization_id)
    return SweepResult(revoked=len(revoked), grant_ids=[g.id for g in revoked])
