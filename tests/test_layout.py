# tests/test_layout.py

from __future__ import annotations

import pytest

from deskboard.modules.layout import (
    LayoutRules,
    default_free_slot,
    drag_order,
    insertion_index,
    is_contiguous,
    merge_for_switch,
    normalize_order,
)
from deskboard.modules.module_models import Module, ModuleKind, Rect, ViewMode


def _mod(mid: str, kind: ModuleKind = ModuleKind.NOTE, order: int | None = None, **kw) -> Module:
    return Module(id=mid, kind=kind, free_layout=kw.pop("free_layout", Rect(0, 0, 16, 12)), order_index=order, **kw)


def test_default_free_slot_wraps_rows() -> None:
    rules = LayoutRules()
    note = _mod("n")
    assert default_free_slot(0, note, rules) == Rect(0, 0, 16, 12)
    assert default_free_slot(3, note, rules) == Rect(48, 0, 16, 12)
    assert default_free_slot(10, note, rules) == Rect(0, 12, 16, 12)

    clock = _mod("c", ModuleKind.CLOCK)
    assert default_free_slot(1, clock, rules) == Rect(16, 0, 8, 8)


@pytest.mark.parametrize(
    ("offset", "expected"),
    [(-50.0, 0), (0.0, 0), (7.9, 0), (8.0, 1), (23.9, 1), (24.0, 2), (1000.0, 3)],
)
def test_insertion_index_rounds_and_clamps(offset: float, expected: int) -> None:
    assert insertion_index(offset, 16.0, 3) == expected


def test_normalize_order_sorts_and_compacts() -> None:
    mods = [_mod("a", order=5), _mod("b"), _mod("c", order=2)]
    out = normalize_order(mods)
    assert [m.id for m in out] == ["c", "a", "b"]
    assert [m.order_index for m in out] == [0, 1, 2]
    assert is_contiguous(out)


def test_normalize_order_groups_by_kind_when_unordered() -> None:
    mods = [_mod("clock", ModuleKind.CLOCK), _mod("todo", ModuleKind.TASK_LIST), _mod("note")]
    out = normalize_order(mods)
    assert [m.id for m in out] == ["note", "todo", "clock"]


def test_drag_order_inserts_at_pointer_column() -> None:
    mods = [_mod("a", order=0), _mod("b", order=1), _mod("c", order=2)]

    out = drag_order(mods, "a", 32.0, 16.0)
    assert [m.id for m in out] == ["b", "c", "a"]
    assert [m.order_index for m in out] == [0, 1, 2]
    # originals untouched (preview only)
    assert [m.order_index for m in mods] == [0, 1, 2]

    out = drag_order(mods, "c", -10.0, 16.0)
    assert [m.id for m in out] == ["c", "a", "b"]


def test_merge_takes_shared_from_source_and_position_from_target() -> None:
    rules = LayoutRules()
    src_active = [_mod("a", title="new title", theme_index=4), _mod("b")]
    src_min = [_mod("c", minimized=True)]
    tgt_active = [
        _mod("a", free_layout=Rect(40, 40, 20, 20), title="old"),
        _mod("c", free_layout=Rect(80, 0, 16, 12)),
        _mod("ghost"),
    ]

    active, minimized = merge_for_switch(src_active, src_min, tgt_active, [], ViewMode.FREE, rules)

    by_id = {m.id: m for m in active}
    assert set(by_id) == {"a", "b"}
    assert by_id["a"].free_layout == Rect(40, 40, 20, 20)
    assert by_id["a"].title == "new title"
    assert by_id["a"].theme_index == 4
    # source-only module appended at the next grid slot
    assert by_id["b"].free_layout == Rect(16, 0, 16, 12)

    assert [m.id for m in minimized] == ["c"]
    assert minimized[0].minimized
    assert minimized[0].snapshot_layout == Rect(80, 0, 16, 12)


def test_merge_into_structured_keeps_target_order() -> None:
    rules = LayoutRules()
    src_active = [_mod("a"), _mod("b"), _mod("new")]
    tgt_active = [_mod("a", order=1), _mod("b", order=0)]

    active, _ = merge_for_switch(src_active, [], tgt_active, [], ViewMode.STRUCTURED, rules)
    assert [m.id for m in active] == ["b", "a", "new"]
    assert is_contiguous(active)
