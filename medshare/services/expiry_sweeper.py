"""Background sweeper that revokes approved grants past their expiry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from medshare.config import settings
from medshare.database import get_db_context
from medshare.services.directory import SQLPatientDirectory
from medshare.services.grant_store import SQLGrantStore
from medshare.services.lifecycle import GrantLifecycleManager

logger = logging.getLogger("medshare.expiry_sweeper")


@dataclass
class ExpirySweepStats:
    """Telemetry emitted for one sweep cycle."""

    scanned: int = 0
    revoked: int = 0


class GrantExpirySweeper:
    """Polling loop that moves expired grants to revoked in batches."""

    def __init__(
        self,
        session_factory: Callable[
            [], AbstractAsyncContextManager[AsyncSession]
        ] = get_db_context,
        manager_factory: Callable[[AsyncSession], GrantLifecycleManager] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._manager_factory = manager_factory or _default_manager
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start the background loop if enabled."""
        if not settings.grant_expiry_sweep_enabled:
            logger.info("Grant expiry sweeper disabled by configuration")
            return
        if self._task and not self._task.done():
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name="grant-expiry-sweeper")
        logger.info(
            "Grant expiry sweeper started (interval=%ss batch=%s)",
            settings.grant_expiry_sweep_interval_seconds,
            settings.grant_expiry_sweep_batch_size,
        )

    async def stop(self) -> None:
        """Stop the background loop."""
        self._stop_event.set()
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        logger.info("Grant expiry sweeper stopped")

    async def run_once(self) -> ExpirySweepStats:
        """Run one sweep (used by the background loop and tests)."""
        stats = ExpirySweepStats()
        async with self._session_factory() as db:
            manager = self._manager_factory(db)
            revoked = await manager.sweep_expired(
                limit=settings.grant_expiry_sweep_batch_size
            )
            stats.scanned = len(revoked)
            stats.revoked = sum(1 for g in revoked if not g.is_active)
        return stats

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            started_at = asyncio.get_running_loop().time()
            try:
                stats = await self.run_once()
                if stats.revoked:
                    logger.info(
                        "Grant expiry sweep: scanned=%s revoked=%s",
                        stats.scanned,
                        stats.revoked,
                    )
            except Exception:
                logger.exception("Grant expiry sweep cycle failed")

            elapsed = asyncio.get_running_loop().time() - started_at
            sleep_seconds = max(
                1,
                settings.grant_expiry_sweep_interval_seconds - int(elapsed),
            )
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_seconds)
            except TimeoutError:
                continue


def _default_manager(db: AsyncSession) -> GrantLifecycleManager:
    return GrantLifecycleManager(SQLGrantStore(db), SQLPatientDirectory(db))


_sweeper_instance: GrantExpirySweeper | None = None


def get_grant_expiry_sweeper() -> GrantExpirySweeper:
    """Get singleton grant expiry sweeper instance."""
    global _sweeper_instance
    if _sweeper_instance is None:
        _sweeper_instance = GrantExpirySweeper()
    return _sweeper_instance
