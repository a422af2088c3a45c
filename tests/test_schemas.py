from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from medshare.models import AccessGrant, Permission
from medshare.schemas.access import (
    AccessGrantApprove,
    AccessGrantCreate,
    AccessGrantResponse,
    AccessRequestCreate,
)
from medshare.schemas.comment import CommentCreate
from medshare.schemas.medication import MedicationUpdate
from medshare.schemas.patient import PatientCreate


def test_grant_response_splits_stored_permissions():
    now = datetime(2026, 3, 2, tzinfo=UTC)
    grant = AccessGrant(
        id=4,
        patient_id=1,
        share_token="PAT-AAAA-BBBB-CCCC",
        granted_to=22,
        granted_to_org=2,
        granted_by=None,
        granted_by_org=1,
        access_type="cross_organization",
        status="pending",
        permissions="view_medications,view",
        is_active=False,
        requested_at=now,
    )

    response = AccessGrantResponse.model_validate(grant)

    assert response.permissions == [Permission.view, Permission.view_medications]
    assert response.granted_at is None


def test_request_permissions_default_to_none():
    assert AccessRequestCreate(share_token="PAT-AAAA-BBBB-CCCC").permissions is None

    with pytest.raises(ValidationError):
        AccessRequestCreate(share_token="")


def test_request_rejects_explicit_empty_permissions():
    with pytest.raises(ValidationError):
        AccessRequestCreate(share_token="PAT-AAAA-BBBB-CCCC", permissions=[])


def test_approve_rejects_empty_permissions_and_zero_days():
    assert AccessGrantApprove().model_dump() == {"permissions": None, "expires_in_days": None}

    with pytest.raises(ValidationError):
        AccessGrantApprove(permissions=[])
    with pytest.raises(ValidationError):
        AccessGrantApprove(expires_in_days=0)


def test_direct_grant_requires_permissions():
    with pytest.raises(ValidationError):
        AccessGrantCreate(patient_id=1, granted_to=22)

    payload = AccessGrantCreate(patient_id=1, granted_to=22, permissions=["comment"])
    assert payload.permissions == [Permission.comment]


def test_comment_defaults():
    comment = CommentCreate(content="Refill due")

    assert comment.comment_type == "note"
    assert comment.is_private is False
    assert comment.reply_to_id is None


def test_patient_create_rejects_unknown_pack():
    with pytest.raises(ValidationError):
        PatientCreate(first_name="Ada", last_name="Lovelace", preferred_pack="box")


def test_medication_update_allows_empty_payload():
    payload = MedicationUpdate()

    assert payload.model_dump(exclude_unset=True) == {}
