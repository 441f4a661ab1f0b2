# src/deskboard/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from ..events.event_book import EventBook
from ..modules.module_models import ViewMode
from ..modules.registry import ModuleRegistry
from ..storage.kv_store import KeyValueStore
from ..tasks.task_tree import TaskEngine
from .ports import ImageStore


@dataclass
class WorkspaceState:
    # Settings object (or a SimpleNamespace in tests).
    settings: object

    store: KeyValueStore
    tasks: TaskEngine
    modules: ModuleRegistry
    events: EventBook
    images: ImageStore | None = None

    # Serializes the console REPL and the background deadline sweeper.
    lock: threading.RLock = field(default_factory=threading.RLock)

    @property
    def view_mode(self) -> ViewMode:
        return self.modules.mode
