from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from medshare.models import CommentType


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    comment_type: CommentType = CommentType.note
    is_private: bool = Field(
        False, description="Only visible to the author's organization"
    )
    reply_to_id: Optional[int] = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    author_id: int
    author_org: int
    content: str
    comment_type: str
    is_private: bool
    reply_to_id: Optional[int] = None
    created_at: datetime

    author_name: Optional[str] = None
    author_org_name: Optional[str] = None
