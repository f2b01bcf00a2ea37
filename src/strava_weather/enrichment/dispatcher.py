"""Fire-and-forget dispatch of webhook events.

The webhook route must answer Strava within two seconds, far less than a
weather lookup can take, so events are handed to ``EventDispatcher.submit``
and processed on background tasks after the response has gone out.

Concurrency is bounded by a semaphore, and runs for the same activity are
serialized by a per-activity lock: a duplicate delivery waits for the first
run to finish and then sees the already-enriched description.
"""

from __future__ import annotations

import asyncio
import logging

from strava_weather.enrichment.processor import EventProcessor
from strava_weather.models.event import InboundEvent
from strava_weather.models.outcome import ProcessingResult

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Runs ``EventProcessor.handle`` on background tasks."""

    def __init__(self, processor: EventProcessor, max_concurrency: int = 4):
        self.processor = processor
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_refs: dict[str, int] = {}
        self._tasks: set[asyncio.Task[ProcessingResult]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of submitted events that have not finished."""
        return len(self._tasks)

    def submit(self, event: InboundEvent) -> asyncio.Task[ProcessingResult] | None:
        """Schedule an event and return immediately.

        Must be called from a running event loop. Returns None once the
        dispatcher is draining for shutdown.
        """
        if self._closed:
            logger.warning(f"Dispatcher closed; dropping event for activity {event.activity_id}")
            return None

        task = asyncio.create_task(
            self._process(event), name=f"enrich-activity-{event.activity_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Queued activity {event.activity_id} ({self.pending} pending)")
        return task

    async def _process(self, event: InboundEvent) -> ProcessingResult:
        key = event.activity_id
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_refs[key] = self._lock_refs.get(key, 0) + 1
        try:
            async with lock:
                async with self._semaphore:
                    return await self.processor.handle(event)
        finally:
            self._lock_refs[key] -= 1
            if not self._lock_refs[key]:
                del self._lock_refs[key]
                del self._locks[key]

    async def drain(self, timeout: float | None = None) -> None:
        """Stop accepting events and wait for in-flight ones to finish."""
        self._closed = True
        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} enrichment task(s) to finish")
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning(
                f"{len(still_running)} enrichment task(s) still running at shutdown; "
                "their events will be lost"
            )
