# tests/test_deletion_guard.py

from __future__ import annotations

import pytest

from deskboard.modules.deletion_guard import has_content
from deskboard.modules.module_models import Module, ModuleKind, Rect
from deskboard.tasks.task_models import Task


def _mod(kind: ModuleKind, content: str = "") -> Module:
    return Module(id="m1", kind=kind, free_layout=Rect(0, 0, 16, 12), content=content)


@pytest.mark.parametrize(
    ("kind", "content", "expected"),
    [
        (ModuleKind.NOTE, "", False),
        (ModuleKind.NOTE, "  \n ", False),
        (ModuleKind.NOTE, "x", True),
        (ModuleKind.STICKY_NOTE, " buy milk ", True),
        (ModuleKind.WHITEBOARD, "s" * 50, False),
        (ModuleKind.WHITEBOARD, "s" * 51, True),
        (ModuleKind.PLANNER, "p" * 51, True),
        (ModuleKind.CLOCK, "anything at all", False),
        (ModuleKind.CALENDAR, "", False),
        (ModuleKind.EVENT_LIST, "x" * 100, False),
    ],
)
def test_content_thresholds(kind: ModuleKind, content: str, expected: bool) -> None:
    assert has_content(_mod(kind, content), []) is expected


def test_task_list_content_is_its_tasks() -> None:
    todo = _mod(ModuleKind.TASK_LIST)
    assert not has_content(todo, [Task(id="t", text="x", origin_module_id="other")])
    assert has_content(todo, [Task(id="t", text="x", origin_module_id="m1")])
