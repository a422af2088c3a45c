import re

import pytest

from medshare.models import Patient
from medshare.services import directory as directory_module
from medshare.services.directory import generate_share_token, new_unique_share_token
from tests.conftest import PHARMACY, PHARMACY_TOKEN


def test_share_token_shape():
    tokens = {generate_share_token() for _ in range(50)}

    assert all(re.fullmatch(r"PAT-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}", t) for t in tokens)
    assert len(tokens) > 1


@pytest.mark.anyio
async def test_new_token_skips_taken_values(directory, monkeypatch):
    candidates = iter([PHARMACY_TOKEN, "PAT-FREE-0000-0001"])
    monkeypatch.setattr(directory_module, "generate_share_token", lambda: next(candidates))

    assert await new_unique_share_token(directory) == "PAT-FREE-0000-0001"


@pytest.mark.anyio
async def test_in_memory_directory_assigns_ids(directory):
    patient = await directory.create_patient(
        Patient(
            organization_id=PHARMACY,
            share_token="PAT-NEW0-0000-0001",
            first_name="New",
            last_name="Patient",
        )
    )

    assert patient.id == 3
    assert patient.is_active is True
    assert await directory.get_patient_by_share_token("PAT-NEW0-0000-0001") is patient
    assert [p.id for p in await directory.list_org_patients(PHARMACY)] == [1, 3]


@pytest.mark.anyio
async def test_org_contacts_are_owners_and_admins(directory):
    assert [p.id for p in await directory.list_org_contacts(PHARMACY)] == [11]
    assert [p.id for p in await directory.list_org_contacts(2)] == [21]

