"""
Store Resync Task

Best-effort periodic re-read of the listing store. Change notifications are
the primary convergence mechanism; this loop catches writes whose
notification never arrived (a process that crashed between write and
publish, a dropped pub/sub connection, a file edited by hand).
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from .listing_store import ListingStore

logger = structlog.get_logger(__name__)


@dataclass
class ResyncStats:
    """Counters for the resync loop."""

    started_at: datetime | None = None
    runs: int = 0
    changes_detected: int = 0
    errors: int = 0
    last_error: str | None = None


class StoreResyncTask:
    """Periodically compares the persisted listing set with the last one seen."""

    def __init__(self, store: ListingStore, interval_seconds: float = 2.0) -> None:
        self._store = store
        self._interval = interval_seconds
        self._shutdown_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._stats = ResyncStats()
        self._logger = logger.bind(service="store_resync")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop."""
        if self.is_running:
            self._logger.warning("resync_already_running")
            return

        self._shutdown_event.clear()
        self._stats.started_at = datetime.now(UTC)
        self._task = asyncio.create_task(self._loop(), name="artmint_store_resync")
        self._logger.info("resync_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop the background loop gracefully."""
        if self._task is None:
            return

        self._shutdown_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._logger.info("resync_stopped", runs=self._stats.runs)

    async def resync_once(self) -> bool:
        """
        Run a single comparison.

        Returns:
            True if subscribers were notified of a missed change
        """
        changed = await self._store.resync()
        self._stats.runs += 1
        if changed:
            self._stats.changes_detected += 1
        return changed

    async def _loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await self.resync_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:  # Intentional broad catch: prevents background task death
                self._stats.errors += 1
                self._stats.last_error = str(e)
                self._logger.error("resync_error", error=str(e), errors=self._stats.errors)

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self._interval)
                break
            except TimeoutError:
                pass

    def get_stats(self) -> dict[str, Any]:
        """Get resync statistics."""
        return {
            "is_running": self.is_running,
            "started_at": self._stats.started_at.isoformat() if self._stats.started_at else None,
            "interval_seconds": self._interval,
            "runs": self._stats.runs,
            "changes_detected": self._stats.changes_detected,
            "errors": self._stats.errors,
            "last_error": self._stats.last_error,
        }
