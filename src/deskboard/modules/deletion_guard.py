# src/deskboard/modules/deletion_guard.py

from __future__ import annotations

from collections.abc import Iterable

from ..tasks.task_models import Task
from .module_models import Module, ModuleKind

# Minimum payload length (after the per-kind normalization) that counts as content.
# Drawing/planner payloads are serialized structures whose empty form is not "".
CONTENT_THRESHOLDS: dict[ModuleKind, int] = {
    ModuleKind.NOTE: 0,
    ModuleKind.STICKY_NOTE: 0,
    ModuleKind.WHITEBOARD: 50,
    ModuleKind.PLANNER: 50,
}


def has_content(module: Module, tasks: Iterable[Task]) -> bool:
    """True when deleting the module would lose user data and needs confirmation."""
    kind = module.kind
    if kind is ModuleKind.TASK_LIST:
        return any(t.origin_module_id == module.id for t in tasks)

    threshold = CONTENT_THRESHOLDS.get(kind)
    if threshold is None:
        # clock / calendar / event list hold nothing of their own
        return False

    payload = module.content or ""
    if kind in (ModuleKind.NOTE, ModuleKind.STICKY_NOTE):
        payload = payload.strip()
    return len(payload) > threshold
