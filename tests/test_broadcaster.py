"""Tests for the event broadcaster: priming, fan-out and the non-blocking drop policy."""
from __future__ import annotations

import asyncio

import pytest

from crew_council.application.broadcaster import (
    AGENTS,
    LOG,
    TASK_UPDATED,
    TASKS,
    EventBroadcaster,
)
from helpers import drain_events


@pytest.mark.asyncio
async def test_subscriber_is_primed_with_agents_then_tasks():
    b = EventBroadcaster(
        agents_snapshot=lambda: [{"name": "Nova"}],
        tasks_snapshot=lambda: [{"id": "task_1"}],
    )
    sub = b.subscribe()
    events = drain_events(sub)
    assert [e.kind for e in events] == [AGENTS, TASKS]
    assert events[0].data == [{"name": "Nova"}]
    assert events[1].data == [{"id": "task_1"}]


@pytest.mark.asyncio
async def test_unbound_snapshots_prime_with_empty_lists():
    sub = EventBroadcaster().subscribe()
    assert [e.data for e in drain_events(sub)] == [[], []]


@pytest.mark.asyncio
async def test_publish_reaches_every_subscriber():
    b = EventBroadcaster()
    subs = [b.subscribe() for _ in range(3)]
    for s in subs:
        drain_events(s)

    b.publish(TASK_UPDATED, {"id": "task_1", "status": "queued"})

    for s in subs:
        (event,) = drain_events(s)
        assert event.kind == TASK_UPDATED
        assert event.data["status"] == "queued"


@pytest.mark.asyncio
async def test_full_queue_drops_without_blocking_others():
    b = EventBroadcaster(queue_size=3)
    slow = b.subscribe()  # two priming events already queued
    fast = b.subscribe()
    drain_events(fast)

    for i in range(5):
        b.publish(LOG, {"message": str(i)})
        drain_events(fast)

    assert slow.queue.qsize() == 3
    assert slow.dropped == 4
    # Events that fit are the earliest ones, in order.
    kinds = [e.kind for e in drain_events(slow)]
    assert kinds == [AGENTS, TASKS, LOG]


@pytest.mark.asyncio
async def test_unsubscribed_receives_nothing():
    b = EventBroadcaster()
    sub = b.subscribe()
    drain_events(sub)
    b.unsubscribe(sub)

    b.publish(LOG, {"message": "after"})

    assert sub.queue.empty()
    assert b.subscriber_count == 0


@pytest.mark.asyncio
async def test_async_iteration_stops_after_close():
    b = EventBroadcaster()
    sub = b.subscribe()
    b.unsubscribe(sub)
    kinds = [e.kind async for e in sub]
    assert kinds == [AGENTS, TASKS]


@pytest.mark.asyncio
async def test_log_event_carries_message_and_time():
    b = EventBroadcaster()
    sub = b.subscribe()
    drain_events(sub)
    b.log("hello")
    (event,) = drain_events(sub)
    assert event.kind == LOG
    assert event.data["message"] == "hello"
    assert event.data["time"]


@pytest.mark.asyncio
async def test_get_waits_for_next_event():
    b = EventBroadcaster()
    sub = b.subscribe()
    drain_events(sub)

    waiter = asyncio.ensure_future(sub.get())
    await asyncio.sleep(0)
    assert not waiter.done()
    b.publish(LOG, {"message": "wake"})
    event = await asyncio.wait_for(waiter, timeout=1)
    assert event.data["message"] == "wake"
