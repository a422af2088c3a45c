"""The calling user, as resolved from the session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Actor:
    user_id: int
    organization_id: int
    role: str | None = None


class ActorResolver(Protocol):
    async def resolve(self, session: str | None) -> Actor:
        ...
