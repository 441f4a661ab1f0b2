# src/deskboard/modules/layout.py

from __future__ import annotations

"""
Layout reconciler.

Pure placement/order functions shared by the registry and the mirror:
- default placement per view (grid slot for free, append for structured)
- order normalization (contiguous 0..n-1)
- drag insertion points for the structured row
- the merge applied when switching view mode

Nothing here touches storage.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from .module_models import KIND_ORDER, MODULE_SPECS, GridPoint, Module, Rect, ViewMode

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class LayoutRules:
    slot_columns: int = 10
    slot_width: int = 16
    slot_height: int = 12
    column_width: float = 16.0

    @classmethod
    def from_settings(cls, settings) -> LayoutRules:
        return cls(
            slot_columns=int(getattr(settings, "free_slot_columns", 10)),
            slot_width=int(getattr(settings, "free_slot_width", 16)),
            slot_height=int(getattr(settings, "free_slot_height", 12)),
            column_width=float(getattr(settings, "structured_column_width", 16.0)),
        )


# ---- placement ----


def default_free_slot(index: int, module: Module, rules: LayoutRules) -> Rect:
    """Grid slot for the index-th module appended to a free view."""
    spec = MODULE_SPECS[module.kind]
    return Rect(
        x=(index % rules.slot_columns) * rules.slot_width,
        y=(index // rules.slot_columns) * rules.slot_height,
        w=spec.w,
        h=spec.h,
    )


def next_order_index(modules: Iterable[Module]) -> int:
    indices = [m.order_index for m in modules if m.order_index is not None]
    return max(indices) + 1 if indices else 0


def place_appended(module: Module, mode: ViewMode, active: Sequence[Module], rules: LayoutRules) -> Module:
    """Position a module being added to `active` with that view's default rule."""
    if mode is ViewMode.FREE:
        module.free_layout = default_free_slot(len(active), module, rules)
    else:
        module.order_index = next_order_index(active)
    return module


def restore_placement(
    module: Module,
    mode: ViewMode,
    active: Sequence[Module],
    drop: GridPoint | None = None,
) -> Module:
    """
    Position a module coming back from the minimized registry.

    Free view: drop point if given, else the snapshot; size always from the snapshot.
    Structured view: appended after the current maximum.
    """
    if mode is ViewMode.STRUCTURED:
        module.order_index = next_order_index(active)
        return module

    snap = module.snapshot_layout or module.free_layout
    if drop is not None:
        module.free_layout = Rect(max(0, drop.x), max(0, drop.y), snap.w, snap.h)
    else:
        module.free_layout = snap
    return module


def snapshot(module: Module) -> Module:
    module.snapshot_layout = module.free_layout
    return module


# ---- structured order ----


def _kind_rank(module: Module) -> int:
    return KIND_ORDER.index(module.kind)


def normalize_order(modules: Sequence[Module]) -> list[Module]:
    """
    Sort by order_index (missing last, stable) and reassign 0..n-1 in place.

    When no module has an order yet (first structured layout), modules are
    grouped by kind in toolbar order instead.
    """
    if not modules:
        return []
    if all(m.order_index is None for m in modules):
        ordered = sorted(modules, key=_kind_rank)
    else:
        ordered = sorted(modules, key=lambda m: m.order_index if m.order_index is not None else math.inf)
    for i, m in enumerate(ordered):
        m.order_index = i
    return ordered


def is_contiguous(modules: Iterable[Module]) -> bool:
    mods = list(modules)
    indices = sorted(m.order_index for m in mods if m.order_index is not None)
    return len(indices) == len(mods) and indices == list(range(len(mods)))


def insertion_index(offset: float, column_width: float, count: int) -> int:
    """clamp(round(offset / column_width), 0, count), rounding halves up."""
    if column_width <= 0:
        raise ValueError("column_width must be positive")
    raw = math.floor(offset / column_width + 0.5)
    return max(0, min(raw, count))


def drag_order(active: Sequence[Module], dragged_id: str, offset: float, column_width: float) -> list[Module]:
    """
    New structured order with dragged_id inserted at the pointer's column.

    Returns copies with order indices 0..n-1; callers decide whether the
    result is a live preview or the committed order.
    """
    current = sorted(active, key=lambda m: m.order_index if m.order_index is not None else math.inf)
    dragged = next((m for m in current if m.id == dragged_id), None)
    if dragged is None:
        return [replace(m) for m in current]

    others = [m for m in current if m.id != dragged_id]
    idx = insertion_index(offset, column_width, len(others))
    ordered = [*others[:idx], dragged, *others[idx:]]
    return [replace(m, order_index=i) for i, m in enumerate(ordered)]


# ---- view switch merge ----


def merge_for_switch(
    source_active: Sequence[Module],
    source_minimized: Sequence[Module],
    target_active: Sequence[Module],
    target_minimized: Sequence[Module],
    target_mode: ViewMode,
    rules: LayoutRules,
) -> tuple[list[Module], list[Module]]:
    """
    Merge the view being left (source) into the view being entered (target).

    - shared properties (title, content, theme) and active/minimized
      membership come from the source, which holds the latest edits
    - positional fields come from the target's own record
    - source-only modules are appended with the target's default placement
    - target-only modules were deleted in the source and are dropped
    """
    target_by_id = {m.id: m for m in [*target_active, *target_minimized]}
    source_ids = {m.id for m in [*source_active, *source_minimized]}

    dropped = [mid for mid in target_by_id if mid not in source_ids]
    if dropped:
        logger.info("View merge drops %d modules deleted in the other view: %s", len(dropped), dropped)

    def merged(src: Module, rec: Module | None) -> Module:
        if rec is None:
            return replace(src)
        return replace(
            rec,
            title=src.title,
            content=src.content,
            theme_index=src.theme_index,
        )

    active: list[Module] = []
    appended: list[Module] = []
    for src in source_active:
        rec = target_by_id.get(src.id)
        m = merged(src, rec)
        m.minimized = False
        if rec is None:
            appended.append(m)
        elif rec.minimized:
            # Minimized in target but active in source: bring it back.
            restore_placement(m, target_mode, active)
            active.append(m)
        else:
            active.append(m)

    if target_mode is ViewMode.STRUCTURED:
        # Keep target order, source-only modules go after it. With no order
        # at all yet, normalize_order() groups everything by kind instead.
        unordered = all(m.order_index is None for m in active)
        active = sorted(active, key=lambda m: m.order_index if m.order_index is not None else math.inf)
        for m in appended:
            m.order_index = None if unordered else next_order_index(active)
            active.append(m)
    else:
        for m in appended:
            place_appended(m, target_mode, active, rules)
            active.append(m)

    minimized: list[Module] = []
    for src in source_minimized:
        rec = target_by_id.get(src.id)
        m = merged(src, rec)
        if rec is None:
            m.snapshot_layout = m.snapshot_layout or default_free_slot(len(minimized), m, rules)
        elif not rec.minimized:
            snapshot(m)
        m.minimized = True
        m.order_index = None
        minimized.append(m)

    if target_mode is ViewMode.STRUCTURED:
        active = normalize_order(active)
    return active, minimized
