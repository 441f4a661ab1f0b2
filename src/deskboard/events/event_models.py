# src/deskboard/events/event_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any


@dataclass(slots=True)
class CalendarEvent:
    id: str
    title: str
    date: str  # ISO string
    start_time: str | None = None  # "HH:MM"
    end_time: str | None = None
    location: str | None = None
    notify: bool = False
    color: str = "#007bff"
    is_all_day: bool = False
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "notify": self.notify,
            "color": self.color,
            "isAllDay": self.is_all_day,
        }
        for key, val in (
            ("startTime", self.start_time),
            ("endTime", self.end_time),
            ("location", self.location),
            ("category", self.category),
        ):
            if val is not None:
                out[key] = val
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> CalendarEvent | None:
        if not isinstance(raw, dict):
            return None
        ev_id, title, date = raw.get("id"), raw.get("title"), raw.get("date")
        if not isinstance(ev_id, (str, int)) or not isinstance(title, str) or not isinstance(date, str):
            return None

        def opt(key: str) -> str | None:
            v = raw.get(key)
            return v if isinstance(v, str) and v else None

        return cls(
            id=str(ev_id),
            title=title,
            date=date,
            start_time=opt("startTime"),
            end_time=opt("endTime"),
            location=opt("location"),
            notify=bool(raw.get("notify", False)),
            color=opt("color") or "#007bff",
            is_all_day=bool(raw.get("isAllDay", False)),
            category=opt("category"),
        )

    def deadline(self) -> datetime | None:
        """
        Moment after which a linked task counts as overdue.

        end_time, else start_time, else the end of the event's day.
        Naive dates are read as UTC. Returns None for unparseable dates.
        """
        try:
            day = datetime.fromisoformat(self.date.replace("Z", "+00:00"))
        except ValueError:
            return None
        if day.tzinfo is None:
            day = day.replace(tzinfo=timezone.utc)

        clock = None if self.is_all_day else (self.end_time or self.start_time)
        if clock:
            try:
                hh, mm = (int(p) for p in clock.split(":", 1))
                return datetime.combine(day.date(), time(hh, mm), tzinfo=day.tzinfo)
            except ValueError:
                pass
        return datetime.combine(day.date(), time(0, 0), tzinfo=day.tzinfo) + timedelta(days=1)
