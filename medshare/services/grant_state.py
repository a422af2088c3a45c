"""Access grant state machine.

    pending  -> approved | denied
    approved -> revoked
    denied, revoked: terminal

Expiry is not a state. An approved grant past its ``expires_at`` confers no
access and is moved to ``revoked`` by an explicit sweep.
"""

from __future__ import annotations

from datetime import datetime

from medshare.models import AccessGrant, GrantStatus
from medshare.services.errors import InvalidState

GRANT_TRANSITIONS: dict[GrantStatus, frozenset[GrantStatus]] = {
    GrantStatus.pending: frozenset({GrantStatus.approved, GrantStatus.denied}),
    GrantStatus.approved: frozenset({GrantStatus.revoked}),
    GrantStatus.denied: frozenset(),
    GrantStatus.revoked: frozenset(),
}

assert set(GRANT_TRANSITIONS) == set(GrantStatus), "transition table must cover every status"

TERMINAL_STATUSES = frozenset(s for s, targets in GRANT_TRANSITIONS.items() if not targets)


def can_transition(source: str, target: str) -> bool:
    return GrantStatus(target) in GRANT_TRANSITIONS[GrantStatus(source)]


def ensure_transition(grant: AccessGrant, target: GrantStatus) -> None:
    """Raise InvalidState unless ``grant`` may move to ``target``."""
    if not can_transition(grant.status, target):
        raise InvalidState(
            f"Cannot move grant {grant.id} from {grant.status} to {target.value}"
        )


def is_expired(grant: AccessGrant, now: datetime) -> bool:
    return grant.expires_at is not None and grant.expires_at < now


def confers_access(grant: AccessGrant | None, now: datetime) -> bool:
    """The only condition under which a grant authorizes anything."""
    if grant is None:
        return False
    return (
        grant.status == GrantStatus.approved
        and grant.is_active
        and not is_expired(grant, now)
    )
