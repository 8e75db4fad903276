"""Session expiry sweeps and statistics."""

import asyncio
from datetime import datetime
from typing import Optional
from safetriage.models.session import SessionStats, SweepResult
from safetriage.services.session_store import SessionStore, StoreUnavailable
import logging

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """Runs store sweeps, on demand or on a timer, and reports counts."""

    def __init__(self, store: SessionStore):
        self.store = store

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Delete expired sessions.

        Args:
            now: Cut-off time (defaults to the store's clock)

        Returns:
            SweepResult with the number of deleted sessions
        """
        deleted = await self.store.sweep_expired(now or self.store.clock())
        if deleted:
            logger.info(f"Swept {deleted} expired sessions")
        return SweepResult(deleted_count=deleted)

    async def stats(self, now: Optional[datetime] = None) -> SessionStats:
        return await self.store.stats(now or self.store.clock())

    async def run_periodic(self, interval_seconds: float):
        """Sweep every ``interval_seconds`` until cancelled.

        A failed sweep is logged and retried on the next tick.
        """
        logger.info(f"Session sweep task started (every {interval_seconds}s)")
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                try:
                    await self.sweep()
                except StoreUnavailable as e:
                    logger.warning(f"Periodic session sweep skipped: {e}")
        except asyncio.CancelledError:
            logger.info("Session sweep task stopped")
            raise
