import logging
from datetime import timedelta

import pytest

from medshare.models import AccessType, GrantStatus, Permission
from medshare.services.enforcer import PermissionEnforcer
from medshare.services.errors import NotFound, Unauthorized
from medshare.services.visibility import VisibilityResolver
from tests.conftest import (
    CLINIC_OWNER,
    HOSPITAL_STAFF,
    PHARMACY,
    PHARMACY_OWNER,
    PHARMACY_STAFF,
    PHARMACY_TOKEN,
    add_patient,
)


@pytest.mark.anyio
async def test_lists_own_patients_with_full_permissions(resolver, directory, clock):
    add_patient(directory, 3, PHARMACY, "PAT-NEWR-0000-0003", clock(), first_name="Cara")

    visible = await resolver.list_visible_patients(PHARMACY_STAFF)

    assert [v.patient.id for v in visible] == [3, 1]
    assert all(not v.is_shared for v in visible)
    assert all(v.access_type == AccessType.same_organization for v in visible)
    assert all(v.permissions == frozenset(Permission) for v in visible)


@pytest.mark.anyio
async def test_merges_shared_patients_sorted_newest_first(resolver, lifecycle):
    grant = await lifecycle.request_access(PHARMACY_TOKEN, HOSPITAL_STAFF)
    await lifecycle.approve_access(grant.id, PHARMACY_OWNER, ["view"], expires_in_days=7)

    visible = await resolver.list_visible_patients(HOSPITAL_STAFF)

    assert [v.patient.id for v in visible] == [2, 1]
    own, shared = visible
    assert own.is_shared is False
    assert shared.is_shared is True
    assert shared.access_type == AccessType.cross_organization
    assert shared.permissions == {Permission.view}
    assert shared.expires_at == grant.expires_at
    assert shared.grant_id == grant.id


@pytest.mark.anyio
async def test_pending_denied_and_revoked_grants_are_not_visible(resolver, lifecycle):
    grant = await lifecycle.request_access(PHARMACY_TOKEN, HOSPITAL_STAFF)
    assert [v.patient.id for v in await resolver.list_visible_patients(HOSPITAL_STAFF)] == [2]

    await lifecycle.approve_access(grant.id, PHARMACY_OWNER, ["view"])
    await lifecycle.revoke_access(grant.id, PHARMACY_OWNER)

    assert [v.patient.id for v in await resolver.list_visible_patients(HOSPITAL_STAFF)] == [2]


@pytest.mark.anyio
async def test_expired_grant_is_filtered_without_mutation(resolver, lifecycle, clock):
    grant = await lifecycle.request_access(PHARMACY_TOKEN, HOSPITAL_STAFF)
    await lifecycle.approve_access(grant.id, PHARMACY_OWNER, ["view"], expires_in_days=1)
    clock.advance(days=1, seconds=1)

    visible = await resolver.list_visible_patients(HOSPITAL_STAFF)

    assert [v.patient.id for v in visible] == [2]
    assert grant.status == GrantStatus.approved
    assert grant.is_active is True


@pytest.mark.anyio
async def test_inactive_shared_patient_is_hidden(resolver, lifecycle, directory):
    await lifecycle.grant_access(1, HOSPITAL_STAFF.user_id, ["view"], PHARMACY_OWNER)
    directory.patients[1].is_active = False

    assert [v.patient.id for v in await resolver.list_visible_patients(HOSPITAL_STAFF)] == [2]


@pytest.mark.anyio
async def test_ownership_wins_over_own_org_grant(resolver, lifecycle):
    await lifecycle.grant_access(1, PHARMACY_STAFF.user_id, ["view"], PHARMACY_OWNER)

    visible = await resolver.list_visible_patients(PHARMACY_STAFF)

    assert [v.patient.id for v in visible] == [1]
    assert visible[0].is_shared is False
    assert visible[0].permissions == frozenset(Permission)


@pytest.mark.anyio
async def test_pagination_is_applied_after_merge(resolver, directory, lifecycle, clock):
    for offset in range(3):
        add_patient(
            directory,
            10 + offset,
            PHARMACY,
            f"PAT-PAGE-0000-{offset:04d}",
            clock() - timedelta(days=20 - offset),
        )
    for patient_id in (1, 10, 11, 12):
        await lifecycle.grant_access(
            patient_id, HOSPITAL_STAFF.user_id, ["view"], PHARMACY_OWNER
        )

    everything = await resolver.list_visible_patients(HOSPITAL_STAFF)
    page = await resolver.list_visible_patients(HOSPITAL_STAFF, limit=2, offset=1)

    assert [v.patient.id for v in everything] == [2, 12, 11, 10, 1]
    assert [v.patient.id for v in page] == [12, 11]
    assert len({v.patient.id for v in everything}) == len(everything)


@pytest.mark.anyio
async def test_large_visible_set_logs_warning(grant_store, directory, clock, caplog):
    resolver = VisibilityResolver(grant_store, directory, clock=clock, warn_threshold=1)
    add_patient(directory, 3, PHARMACY, "PAT-WARN-0000-0003", clock())

    with caplog.at_level(logging.WARNING, logger="medshare.visibility"):
        await resolver.list_visible_patients(PHARMACY_OWNER)

    assert "Visible patient set" in caplog.text


@pytest.mark.anyio
async def test_get_one_visible_for_owner_and_grantee(resolver, lifecycle):
    own = await resolver.get_one_visible(PHARMACY_STAFF, 1)
    assert own.is_shared is False
    assert own.expires_at is None

    grant = await lifecycle.request_access(PHARMACY_TOKEN, HOSPITAL_STAFF)
    await lifecycle.approve_access(
        grant.id, PHARMACY_OWNER, ["view", "comment"], expires_in_days=7
    )

    shared = await resolver.get_one_visible(HOSPITAL_STAFF, 1)
    assert shared.is_shared is True
    assert shared.access_type == AccessType.cross_organization
    assert shared.permissions == {Permission.view, Permission.comment}
    assert shared.expires_at == grant.expires_at


@pytest.mark.anyio
async def test_get_one_visible_errors(resolver, directory):
    with pytest.raises(NotFound):
        await resolver.get_one_visible(PHARMACY_OWNER, 999)
    with pytest.raises(Unauthorized):
        await resolver.get_one_visible(PHARMACY_OWNER, 2)

    directory.patients[1].is_active = False
    with pytest.raises(NotFound):
        await resolver.get_one_visible(PHARMACY_OWNER, 1)


@pytest.mark.anyio
async def test_seven_day_share_scenario(resolver, lifecycle, clock):
    grant = await lifecycle.request_access("PAT-AAAA-BBBB-CCCC", HOSPITAL_STAFF)
    assert grant.status == GrantStatus.pending

    await lifecycle.approve_access(
        grant.id, PHARMACY_OWNER, ["view", "comment"], expires_in_days=7
    )
    visible = await resolver.get_one_visible(HOSPITAL_STAFF, 1)
    assert visible.permissions == {Permission.view, Permission.comment}

    clock.advance(days=7, seconds=1)
    with pytest.raises(Unauthorized):
        await resolver.get_one_visible(HOSPITAL_STAFF, 1)
    assert grant.status == GrantStatus.approved

    await lifecycle.sweep_expired()
    assert grant.status == GrantStatus.revoked
    assert grant.is_active is False


@pytest.mark.anyio
async def test_unrelated_org_sees_nothing_shared(resolver, lifecycle):
    await lifecycle.grant_access(1, HOSPITAL_STAFF.user_id, ["view"], PHARMACY_OWNER)
    assert await resolver.list_visible_patients(CLINIC_OWNER) == []


@pytest.mark.anyio
async def test_grant_without_view_does_not_expose_patient(resolver, lifecycle):
    await lifecycle.grant_access(1, HOSPITAL_STAFF.user_id, ["comment"], PHARMACY_OWNER)

    assert [v.patient.id for v in await resolver.list_visible_patients(HOSPITAL_STAFF)] == [2]
    with pytest.raises(Unauthorized, match="view"):
        await resolver.get_one_visible(HOSPITAL_STAFF, 1)


@pytest.mark.anyio
async def test_grant_without_view_is_listed_when_enforcement_is_off(
    grant_store, directory, clock, lifecycle
):
    enforcer = PermissionEnforcer(
        grant_store, directory, clock=clock, enforce_permissions=False
    )
    resolver = VisibilityResolver(grant_store, directory, clock=clock, enforcer=enforcer)
    await lifecycle.grant_access(1, HOSPITAL_STAFF.user_id, ["comment"], PHARMACY_OWNER)

    assert [v.patient.id for v in await resolver.list_visible_patients(HOSPITAL_STAFF)] == [2, 1]
    assert (await resolver.get_one_visible(HOSPITAL_STAFF, 1)).permissions == {
        Permission.comment
    }


@pytest.mark.anyio
async def test_search_filters_before_paging(resolver, directory, lifecycle, clock):
    add_patient(
        directory, 3, PHARMACY, "PAT-SRCH-0000-0003", clock(), first_name="Alina", last_name="Park"
    )
    await lifecycle.grant_access(1, HOSPITAL_STAFF.user_id, ["view"], PHARMACY_OWNER)
    await lifecycle.grant_access(3, HOSPITAL_STAFF.user_id, ["view"], PHARMACY_OWNER)

    by_name = await resolver.list_visible_patients(HOSPITAL_STAFF, search="ALI")
    assert [v.patient.id for v in by_name] == [3, 1]

    paged = await resolver.list_visible_patients(HOSPITAL_STAFF, search="ali", limit=1, offset=1)
    assert [v.patient.id for v in paged] == [1]

    by_email = await resolver.list_visible_patients(HOSPITAL_STAFF, search="bob.stone@")
    assert [v.patient.id for v in by_email] == [2]

    by_token = await resolver.list_visible_patients(HOSPITAL_STAFF, search="pat-srch")
    assert [v.patient.id for v in by_token] == [3]

    assert await resolver.list_visible_patients(HOSPITAL_STAFF, search="nobody") == []
