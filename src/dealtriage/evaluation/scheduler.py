"""Background evaluation runs, cancellable per lead and tier."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from ..models.lead import EvaluationTier

logger = logging.getLogger(__name__)

RunKey = tuple[str, EvaluationTier]


class EvaluationScheduler:
    """Track evaluation re-runs as asyncio tasks.

    Each (lead, tier) pair has at most one running task. Quick and full runs
    of the same lead are independent and can be cancelled separately.
    Callers never block on a run: they poll status() or await the task
    returned by schedule().
    """

    def __init__(self):
        self._tasks: dict[RunKey, asyncio.Task] = {}
        self._status: dict[RunKey, dict] = {}

    def schedule(
        self,
        lead_id: str,
        tier: EvaluationTier,
        run: Callable[[], Awaitable[Any]],
    ) -> asyncio.Task:
        """Start a run unless one is already in flight for this lead and tier.

        Must be called from within a running event loop.

        Returns:
            The task executing the run (the existing one if still running)
        """
        key = (lead_id, tier)
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            logger.debug(f"{tier.value} evaluation already running for {lead_id}")
            return existing

        task = asyncio.create_task(run(), name=f"evaluate-{lead_id}-{tier.value}")
        self._tasks[key] = task
        self._status[key] = {
            "state": "running",
            "started_at": datetime.now(timezone.utc).isoformat(),
            "finished_at": None,
            "error": None,
        }
        task.add_done_callback(lambda t: self._on_done(key, t))
        logger.info(f"Scheduled {tier.value} evaluation for {lead_id}")
        return task

    def _on_done(self, key: RunKey, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        status = self._status.get(key)
        if status is None:
            # Forgotten while running
            return
        status["finished_at"] = datetime.now(timezone.utc).isoformat()
        if task.cancelled():
            status["state"] = "cancelled"
            logger.info(f"{key[1].value} evaluation for {key[0]} cancelled")
            return
        error = task.exception()
        if error is not None:
            status["state"] = "failed"
            status["error"] = str(error)
            logger.error(f"{key[1].value} evaluation for {key[0]} failed: {error}")
            return
        status["state"] = "completed"

    def cancel(self, lead_id: str, tier: EvaluationTier) -> bool:
        """Cancel a running evaluation. Returns False if none was running."""
        task = self._tasks.get((lead_id, tier))
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def forget(self, lead_id: str) -> None:
        """Cancel any runs of a lead and drop everything tracked for it."""
        for tier in EvaluationTier:
            self.cancel(lead_id, tier)
            self._tasks.pop((lead_id, tier), None)
            self._status.pop((lead_id, tier), None)

    def tracked_count(self) -> int:
        return len(self._tasks.keys() | self._status.keys())

    def status(self, lead_id: str, tier: EvaluationTier) -> dict:
        """Return the latest run status for a lead and tier."""
        status = self._status.get((lead_id, tier))
        if status is None:
            return {"state": "idle", "started_at": None, "finished_at": None, "error": None}
        return {**status}

    def is_running(self, lead_id: str, tier: EvaluationTier) -> bool:
        task = self._tasks.get((lead_id, tier))
        return task is not None and not task.done()

    async def wait(self, lead_id: str, tier: EvaluationTier) -> Optional[Any]:
        """Await the in-flight run for a lead and tier, if any."""
        task = self._tasks.get((lead_id, tier))
        if task is None:
            return None
        return await task

    async def shutdown(self) -> None:
        """Cancel every running evaluation and wait for them to finish."""
        running = [t for t in self._tasks.values() if not t.done()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
            logger.info(f"Cancelled {len(running)} evaluation(s) on shutdown")
