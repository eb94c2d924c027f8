"""Background polling of unread-message counts.

Counts are advisory: a failed or slow poll keeps the previous counts and
never touches lead ordering.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

UnreadFetcher = Callable[[], Awaitable[dict[str, int]]]


class UnreadCountPoller:
    """Periodic task that refreshes unread counts per lead."""

    def __init__(self, fetch: UnreadFetcher, interval_seconds: float = 30.0):
        self._fetch = fetch
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._counts: dict[str, int] = {}
        self._status: dict = {
            "is_running": False,
            "last_success": None,
            "last_error": None,
            "consecutive_failures": 0,
        }

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    def unread_for(self, lead_id: str) -> int:
        return self._counts.get(lead_id, 0)

    def get_status(self) -> dict:
        """Return current poller status."""
        return {**self._status}

    async def start(self) -> None:
        """Launch the polling loop."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())
        self._status["is_running"] = True
        logger.info(f"Unread poller started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Cancel the polling loop."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Unread poller stopped")
        self._status["is_running"] = False

    async def poll_once(self) -> bool:
        """Fetch counts once. Returns False if the fetch failed."""
        try:
            counts = await self._fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._status["last_error"] = str(e)
            self._status["consecutive_failures"] += 1
            logger.warning(f"Unread count poll failed: {e}")
            return False
        self._counts = dict(counts)
        self._status["last_success"] = datetime.now(timezone.utc).isoformat()
        self._status["consecutive_failures"] = 0
        return True

    async def _loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)
