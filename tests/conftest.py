# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from deskboard.attachments.image_store import FileImageStore
from deskboard.core.state import WorkspaceState
from deskboard.events.event_book import EventBook
from deskboard.modules.layout import LayoutRules
from deskboard.modules.registry import ModuleRegistry
from deskboard.storage.kv_store import KeyValueStore
from deskboard.tasks.task_tree import TaskEngine


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with WorkspaceState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="deskboard-test",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "workspace.sqlite3",
        images_dir=tmp_path / "images",
        # Layout
        free_slot_columns=10,
        free_slot_width=16,
        free_slot_height=12,
        structured_column_width=16.0,
        # Features
        deadline_sweep_seconds=0.01,
        holidays_enabled=False,
        holiday_country="US",
        holiday_api_url="https://holidays.invalid/api/v3",
        holiday_timeout_seconds=1.0,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> KeyValueStore:
    return KeyValueStore(settings.db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: KeyValueStore) -> WorkspaceState:
    """
    WorkspaceState over a real SQLite store and a real image directory.

    The store's correctness is part of what we want to test, so it is not faked.
    """
    images = FileImageStore(settings.images_dir)
    tasks = TaskEngine(store, images)
    return WorkspaceState(
        settings=settings,
        store=store,
        tasks=tasks,
        modules=ModuleRegistry(store, tasks, rules=LayoutRules.from_settings(settings)),
        events=EventBook(store),
        images=images,
    )
