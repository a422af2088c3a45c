from typing import Annotated

from fastapi import APIRouter, Depends, status

from medshare.api.deps import CurrentActor, get_records_service
from medshare.schemas.comment import CommentCreate, CommentResponse
from medshare.services.patient_records import PatientRecordsService

router = APIRouter(prefix="/patients/{patient_id}/comments", tags=["Comments"])

Records = Annotated[PatientRecordsService, Depends(get_records_service)]


@router.get("", response_model=list[CommentResponse])
async def list_comments(patient_id: int, actor: CurrentActor, records: Records):
    """Comment thread, newest first. Private comments stay within the author's organization."""
    entries = await records.list_comments(patient_id, actor)
    response = []
    for entry in entries:
        item = CommentResponse.model_validate(entry.comment)
        item.author_name = entry.author_name
        item.author_org_name = entry.author_org_name
        response.append(item)
    return response


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    patient_id: int, data: CommentCreate, actor: CurrentActor, records: Records
):
    comment = await records.add_comment(patient_id, data, actor)
    return CommentResponse.model_validate(comment)
