# src/deskboard/tasks/deadline_sweeper.py

from __future__ import annotations

"""
Linked-deadline sweeper.

A small polling loop that:
- looks up each open task's linked calendar event,
- marks the task done (with the usual completion cascade) once the event's
  deadline has passed.

A sweep only ever moves tasks from open to done, so running it twice, late,
or not at all for a while never corrupts anything.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timezone

from ..events.event_book import EventBook
from .task_tree import TaskEngine

logger = logging.getLogger(__name__)


def sweep_linked_deadlines(engine: TaskEngine, events: EventBook, now: datetime | None = None) -> list[str]:
    """Return ids of tasks completed by this sweep."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    completed: list[str] = []
    for task in engine.all():
        if task.done or not task.linked_event_id:
            continue
        event = events.get(task.linked_event_id)
        if event is None:
            logger.debug("Task %s links to unknown event %s", task.id, task.linked_event_id)
            continue
        deadline = event.deadline()
        if deadline is None or deadline > now:
            continue
        # An earlier cascade in this sweep may already have closed it.
        current = engine.get(task.id)
        if current is None or current.done:
            continue
        engine.set_done(task.id, True)
        completed.append(task.id)
        logger.info("Task %s -> done (event %s deadline %s passed)", task.id, event.id, deadline.isoformat())
    return completed


async def run_deadline_sweeper(
    state,
    *,
    interval_seconds: float = 60.0,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Every interval_seconds run sweep_linked_deadlines() under state.lock.

    To stop the sweeper, set stop_event or cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while stop_event is None or not stop_event.is_set():
        try:
            lock = getattr(state, "lock", None)
            if lock is not None:
                with lock:
                    sweep_linked_deadlines(state.tasks, state.events)
            else:
                sweep_linked_deadlines(state.tasks, state.events)
        except Exception:
            logger.exception("deadline sweep failed")

        if stop_event is None:
            await asyncio.sleep(sleep_s)
        else:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)
