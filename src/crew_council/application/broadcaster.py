"""Event broadcaster: fan-out of lifecycle events to subscribed observers.

Each subscriber owns a bounded ``asyncio.Queue``.  ``publish`` never blocks
and never raises: a subscriber whose queue is full (or that has been closed)
simply misses the event, so slow observers cannot backpressure task
execution or agent mutation.

A new subscriber is primed with ``agents`` and ``tasks`` snapshots before any
incremental event.  Taking the snapshot and registering the queue happen with
no ``await`` in between, so on a single event loop the snapshot is exactly
the state every existing subscriber has already been told about.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from crew_council.config.constants import SUBSCRIBER_QUEUE_SIZE
from crew_council.domain.models import Event, utc_now_iso

logger = logging.getLogger(__name__)

AGENTS = "agents"
TASKS = "tasks"
AGENT_UPDATED = "agent-updated"
TASK_UPDATED = "task-updated"
COUNCIL_CONTRIBUTION = "council-contribution"
LOG = "log"

SnapshotProvider = Callable[[], List[Dict[str, Any]]]


class Subscription:
    """A live observer stream.  Iterate with ``async for`` or call ``get()``."""

    def __init__(self, maxsize: int):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    def offer(self, event: Event) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("subscriber queue full; dropping event kind=%s", event.kind)
            return False
        return True

    async def get(self) -> Event:
        return await self.queue.get()

    def get_nowait(self) -> Event:
        return self.queue.get_nowait()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Event:
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        return await self.queue.get()


class EventBroadcaster:
    """Explicit subscriber registry; the core has no dependency on a transport."""

    def __init__(
        self,
        *,
        agents_snapshot: Optional[SnapshotProvider] = None,
        tasks_snapshot: Optional[SnapshotProvider] = None,
        queue_size: int = SUBSCRIBER_QUEUE_SIZE,
    ):
        self._subscribers: Set[Subscription] = set()
        self._agents_snapshot = agents_snapshot
        self._tasks_snapshot = tasks_snapshot
        self._queue_size = queue_size

    def bind_snapshots(self, agents: SnapshotProvider, tasks: SnapshotProvider) -> None:
        """Attach the priming snapshot sources (the registry and task manager)."""
        self._agents_snapshot = agents
        self._tasks_snapshot = tasks

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        # Queue must hold the two priming events even at the smallest size.
        sub = Subscription(maxsize=max(self._queue_size, 2))
        agents = self._agents_snapshot() if self._agents_snapshot else []
        tasks = self._tasks_snapshot() if self._tasks_snapshot else []
        sub.offer(Event(AGENTS, agents))
        sub.offer(Event(TASKS, tasks))
        self._subscribers.add(sub)
        logger.debug("observer subscribed (total=%d)", len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.closed = True
        self._subscribers.discard(sub)
        logger.debug("observer unsubscribed (total=%d)", len(self._subscribers))

    def publish(self, kind: str, data: Any) -> None:
        """Fire-and-forget delivery to every current subscriber."""
        event = Event(kind, data)
        for sub in list(self._subscribers):
            try:
                sub.offer(event)
            except Exception:  # noqa: BLE001
                logger.warning("dropping broken subscriber", exc_info=True)
                self._subscribers.discard(sub)

    def log(self, message: str) -> None:
        """Publish a human-readable ``log`` event and mirror it to the module logger."""
        logger.info(message)
        self.publish(LOG, {"message": message, "time": utc_now_iso()})
