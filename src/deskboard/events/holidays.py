# src/deskboard/events/holidays.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

import httpx

from .event_models import CalendarEvent

logger = logging.getLogger(__name__)

HOLIDAY_COLOR = "#28a745"
HOLIDAY_CATEGORY = "Public Holiday"


def _to_events(raw: Iterable[tuple[str, str]], country_code: str) -> list[CalendarEvent]:
    return [
        CalendarEvent(
            id=f"holiday-{i}",
            title=name,
            date=day,
            is_all_day=True,
            notify=False,
            color=HOLIDAY_COLOR,
            category=HOLIDAY_CATEGORY,
            location=country_code,
        )
        for i, (name, day) in enumerate(raw)
    ]


class StaticHolidaySource:
    """Fixed holiday list (offline runs and tests)."""

    def __init__(self, holidays: Iterable[tuple[str, str]] = (), country_code: str = "US") -> None:
        self._events = _to_events(holidays, country_code)

    def fetch(self) -> list[CalendarEvent]:
        return list(self._events)


class NagerHolidaySource:
    """
    Public holidays from the Nager.Date API for last, current and next year.

    Best-effort: any HTTP or payload error is logged and yields what was
    fetched so far (possibly nothing). Holidays never block startup.
    """

    def __init__(
        self,
        country_code: str,
        *,
        base_url: str = "https://date.nager.at/api/v3",
        timeout_seconds: float = 5.0,
        client: httpx.Client | None = None,
        today: date | None = None,
    ) -> None:
        self.country_code = (country_code or "US").upper()
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))
        self._owns_client = client is None
        self._today = today

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _fetch_year(self, year: int) -> list[tuple[str, str]]:
        url = f"{self._base_url}/PublicHolidays/{year}/{self.country_code}"
        resp = self._client.get(url)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"unexpected holiday payload type {type(data).__name__}")
        out: list[tuple[str, str]] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            name = item.get("localName") or item.get("name")
            day = item.get("date")
            if isinstance(name, str) and isinstance(day, str):
                out.append((name, day))
        return out

    def fetch(self) -> list[CalendarEvent]:
        year = (self._today or date.today()).year
        collected: list[tuple[str, str]] = []
        for y in (year - 1, year, year + 1):
            try:
                collected.extend(self._fetch_year(y))
            except (httpx.HTTPError, ValueError):
                logger.warning("Holiday fetch failed year=%s country=%s", y, self.country_code, exc_info=True)
        logger.info("Fetched %d holidays for %s", len(collected), self.country_code)
        return _to_events(collected, self.country_code)
