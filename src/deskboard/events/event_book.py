# src/deskboard/events/event_book.py

from __future__ import annotations

import logging
import uuid

from ..core.ports import BlobStore, HolidaySource
from ..storage.kv_store import EVENTS_KEY
from .event_models import CalendarEvent

logger = logging.getLogger(__name__)


class EventBook:
    """
    User calendar events (persisted under the "events" key) plus a read-only
    holiday list merged in front of them. Holidays are never written back.
    """

    def __init__(self, store: BlobStore | None = None) -> None:
        self._store = store
        self._events: list[CalendarEvent] = []
        self._holidays: list[CalendarEvent] = []
        if store is not None:
            for raw in store.get_list(EVENTS_KEY):
                ev = CalendarEvent.from_dict(raw)
                if ev is None:
                    logger.warning("Dropping malformed event record: %r", raw)
                    continue
                self._events.append(ev)

    def load_holidays(self, source: HolidaySource) -> int:
        try:
            fetched = list(source.fetch())
        except Exception:
            logger.exception("Holiday source failed; continuing without holidays.")
            fetched = []
        self._holidays = [e for e in fetched if isinstance(e, CalendarEvent)]
        return len(self._holidays)

    def user_events(self) -> list[CalendarEvent]:
        return list(self._events)

    def all_events(self) -> list[CalendarEvent]:
        return [*self._holidays, *self._events]

    def get(self, event_id: str) -> CalendarEvent | None:
        for ev in self.all_events():
            if ev.id == event_id:
                return ev
        return None

    def save_event(self, event: CalendarEvent) -> CalendarEvent:
        """Insert or replace by id. A blank id gets a fresh uuid."""
        if not event.title.strip() or not event.date:
            raise ValueError("title and date are required")
        if not event.id:
            event.id = uuid.uuid4().hex
        for i, ev in enumerate(self._events):
            if ev.id == event.id:
                self._events[i] = event
                break
        else:
            self._events.append(event)
        self._save()
        return event

    def toggle_notify(self, event_id: str) -> bool:
        for ev in self._events:
            if ev.id == event_id:
                ev.notify = not ev.notify
                self._save()
                return True
        logger.warning("toggle_notify: event not found id=%s", event_id)
        return False

    def delete_event(self, event_id: str) -> bool:
        before = len(self._events)
        self._events = [e for e in self._events if e.id != event_id]
        if len(self._events) == before:
            logger.warning("delete_event: event not found id=%s", event_id)
            return False
        self._save()
        return True

    def _save(self) -> None:
        if self._store is None:
            return
        try:
            self._store.set_json(EVENTS_KEY, [e.to_dict() for e in self._events])
        except Exception:
            logger.exception("Failed to persist %d events", len(self._events))
