# src/deskboard/modules/mirror.py

from __future__ import annotations

"""
Mirroring into the inactive view.

Every lifecycle transition and shared-property edit in the active view is
replayed here against the other view's persisted lists, so a restore or a
view switch finds the module where it expects it.

Each replay is one read-modify-write whose two keys (items:<mode>,
minimized:<mode>) are committed together. A failure leaves the other view
untouched and is returned as MirrorWriteFailure; it never undoes the
primary mutation. The next view switch merge reconciles the two views.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..core.errors import MirrorWriteFailure
from ..core.ports import BlobStore
from ..storage.kv_store import LEGACY_ITEMS_KEY, LEGACY_MINIMIZED_KEY, items_key, minimized_key
from .layout import LayoutRules, normalize_order, place_appended, restore_placement, snapshot
from .module_models import Module, ViewMode, modules_from_blob, modules_to_blob

logger = logging.getLogger(__name__)

ViewLists = tuple[list[Module], list[Module]]


def load_view(store: BlobStore, mode: ViewMode) -> ViewLists:
    """Read a view's (active, minimized) lists; falls back to pre-dual-view keys when absent."""
    raw_items = store.get_json(items_key(mode), None)
    if raw_items is None:
        raw_items = store.get_json(LEGACY_ITEMS_KEY, [])
    raw_min = store.get_json(minimized_key(mode), None)
    if raw_min is None:
        raw_min = store.get_json(LEGACY_MINIMIZED_KEY, [])

    active = modules_from_blob(raw_items, minimized=False)
    minimized = modules_from_blob(raw_min, minimized=True)

    # A module listed in both is treated as minimized.
    min_ids = {m.id for m in minimized}
    both = [m.id for m in active if m.id in min_ids]
    if both:
        logger.warning("View %s lists modules as both active and minimized: %s", mode.value, both)
        active = [m for m in active if m.id not in min_ids]
    return active, minimized


def save_view(store: BlobStore, mode: ViewMode, active: list[Module], minimized: list[Module]) -> None:
    store.set_many_json(
        {
            items_key(mode): modules_to_blob(active),
            minimized_key(mode): modules_to_blob(minimized),
        }
    )


class ViewMirror:
    def __init__(self, store: BlobStore, rules: LayoutRules) -> None:
        self._store = store
        self._rules = rules

    def _replay(
        self,
        op: str,
        module_id: str,
        mode: ViewMode,
        fn: Callable[[list[Module], list[Module]], ViewLists],
    ) -> MirrorWriteFailure | None:
        try:
            active, minimized = load_view(self._store, mode)
            active, minimized = fn(active, minimized)
            if mode is ViewMode.STRUCTURED:
                active = normalize_order(active)
            save_view(self._store, mode, active, minimized)
        except Exception as e:
            logger.exception("Mirror %s failed for module=%s into view=%s", op, module_id, mode.value)
            return MirrorWriteFailure(op, module_id, e)
        logger.debug("Mirrored %s module=%s into view=%s", op, module_id, mode.value)
        return None

    # ---- transitions ----

    def add(self, module: Module, mode: ViewMode) -> MirrorWriteFailure | None:
        def fn(active: list[Module], minimized: list[Module]) -> ViewLists:
            if any(m.id == module.id for m in [*active, *minimized]):
                return active, minimized
            copy = replace(module, minimized=False, snapshot_layout=None, order_index=None)
            place_appended(copy, mode, active, self._rules)
            return [*active, copy], minimized

        return self._replay("add", module.id, mode, fn)

    def patch_shared(self, module_id: str, patch: dict[str, Any], mode: ViewMode) -> MirrorWriteFailure | None:
        def fn(active: list[Module], minimized: list[Module]) -> ViewLists:
            for m in [*active, *minimized]:
                if m.id == module_id:
                    for key, value in patch.items():
                        setattr(m, key, value)
            return active, minimized

        return self._replay("patch", module_id, mode, fn)

    def minimize(self, module_id: str, mode: ViewMode) -> MirrorWriteFailure | None:
        def fn(active: list[Module], minimized: list[Module]) -> ViewLists:
            target = next((m for m in active if m.id == module_id), None)
            if target is None:
                return active, minimized
            snapshot(target)
            target.minimized = True
            target.order_index = None
            return [m for m in active if m.id != module_id], [*minimized, target]

        return self._replay("minimize", module_id, mode, fn)

    def restore(self, module: Module, mode: ViewMode) -> MirrorWriteFailure | None:
        """Move module_id back to active; a module missing from both lists is re-added."""

        def fn(active: list[Module], minimized: list[Module]) -> ViewLists:
            if any(m.id == module.id for m in active):
                return active, minimized
            target = next((m for m in minimized if m.id == module.id), None)
            rest = [m for m in minimized if m.id != module.id]
            if target is None:
                target = replace(module, minimized=False, snapshot_layout=None, order_index=None)
                place_appended(target, mode, active, self._rules)
            else:
                target.minimized = False
                restore_placement(target, mode, active)
            return [*active, target], rest

        return self._replay("restore", module.id, mode, fn)

    def remove(self, module_id: str, mode: ViewMode) -> MirrorWriteFailure | None:
        def fn(active: list[Module], minimized: list[Module]) -> ViewLists:
            return [m for m in active if m.id != module_id], [m for m in minimized if m.id != module_id]

        return self._replay("remove", module_id, mode, fn)
