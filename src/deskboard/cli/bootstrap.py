# src/deskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into WorkspaceState (store/tasks/modules/events),
- optionally merges public holidays into the event book.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..attachments.image_store import FileImageStore
from ..config import get_settings
from ..core.state import WorkspaceState
from ..events.event_book import EventBook
from ..events.holidays import NagerHolidaySource
from ..modules.layout import LayoutRules
from ..modules.registry import ModuleRegistry
from ..storage.kv_store import KeyValueStore
from ..tasks.task_tree import TaskEngine

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
    Path(settings.images_dir).mkdir(parents=True, exist_ok=True)


def load_holidays(state: WorkspaceState) -> int:
    """Fetch public holidays into the event book. Never raises."""
    settings = state.settings
    source = NagerHolidaySource(
        country_code=str(getattr(settings, "holiday_country", "US")),
        base_url=str(getattr(settings, "holiday_api_url", "https://date.nager.at/api/v3")),
        timeout_seconds=float(getattr(settings, "holiday_timeout_seconds", 5.0)),
    )
    try:
        return state.events.load_holidays(source)
    except Exception:
        logger.exception("Failed to load holidays.")
        return 0
    finally:
        source.close()


def create_workspace_state(*, settings=None) -> WorkspaceState:
    """
    Create WorkspaceState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = KeyValueStore(settings.db_path)
    images = FileImageStore(settings.images_dir)
    tasks = TaskEngine(store, images)
    modules = ModuleRegistry(store, tasks, rules=LayoutRules.from_settings(settings))

    state = WorkspaceState(
        settings=settings,
        store=store,
        tasks=tasks,
        modules=modules,
        events=EventBook(store),
        images=images,
    )

    if getattr(settings, "holidays_enabled", False):
        n = load_holidays(state)
        logger.info("Loaded %d public holidays.", n)

    return state
