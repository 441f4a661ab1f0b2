# src/deskboard/modules/registry.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.errors import MirrorWriteFailure, ReferenceNotFound
from ..core.ports import BlobStore
from ..storage.kv_store import VIEW_MODE_KEY, items_key, minimized_key
from ..tasks.task_tree import TaskEngine, TaskRemoval
from .deletion_guard import has_content
from .layout import (
    LayoutRules,
    default_free_slot,
    drag_order,
    is_contiguous,
    merge_for_switch,
    normalize_order,
    restore_placement,
    snapshot,
)
from .mirror import ViewMirror, load_view
from .module_models import (
    MODULE_SPECS,
    THEME_COUNT,
    GridPoint,
    Module,
    ModuleKind,
    Rect,
    ViewMode,
    default_title,
    modules_to_blob,
)

logger = logging.getLogger(__name__)

SHARED_FIELDS = frozenset({"title", "content", "theme_index"})


@dataclass(slots=True)
class Mutation:
    """
    Outcome of a registry operation.

    applied=False means a logged no-op (unknown id, duplicate restore, ...);
    missing names the unknown id when that was the reason.
    mirror_error is set when the primary change committed but the inactive
    view could not be updated.
    """

    applied: bool
    module: Module | None = None
    mirror_error: MirrorWriteFailure | None = None
    removal: TaskRemoval | None = None
    missing: ReferenceNotFound | None = None


class DeleteOutcome(StrEnum):
    DELETED = "deleted"
    NEEDS_CONFIRMATION = "needs_confirmation"
    NOT_FOUND = "not_found"


class ModuleRegistry:
    """
    Modules of the active view plus their lifecycle.

    In-memory lists are authoritative for the active view and written through
    to the store after every mutation. The inactive view is only touched via
    ViewMirror. In structured view the active order is always 0..n-1 once an
    operation returns.
    """

    def __init__(
        self,
        store: BlobStore,
        tasks: TaskEngine,
        *,
        rules: LayoutRules | None = None,
        mode: ViewMode | str | None = None,
    ) -> None:
        self._store = store
        self._tasks = tasks
        self._rules = rules or LayoutRules()
        self._mirror = ViewMirror(store, self._rules)

        if mode is None:
            mode = ViewMode.from_db(store.get_json(VIEW_MODE_KEY, ViewMode.FREE.value))
        self._mode = ViewMode(mode)
        self._active, self._minimized = load_view(store, self._mode)
        if self._mode is ViewMode.STRUCTURED:
            self._active = normalize_order(self._active)
        logger.info(
            "ModuleRegistry ready mode=%s active=%d minimized=%d",
            self._mode.value,
            len(self._active),
            len(self._minimized),
        )

    # ---- read API ----

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def rules(self) -> LayoutRules:
        return self._rules

    def active(self) -> list[Module]:
        if self._mode is ViewMode.STRUCTURED:
            return sorted(self._active, key=lambda m: m.order_index or 0)
        return list(self._active)

    def minimized(self) -> list[Module]:
        return list(self._minimized)

    def get(self, module_id: str) -> Module | None:
        for m in (*self._active, *self._minimized):
            if m.id == module_id:
                return m
        return None

    def _find_active(self, module_id: str) -> Module | None:
        return next((m for m in self._active if m.id == module_id), None)

    def _find_minimized(self, module_id: str) -> Module | None:
        return next((m for m in self._minimized if m.id == module_id), None)

    # ---- persistence ----

    def _reconcile_order(self) -> None:
        if self._mode is ViewMode.STRUCTURED:
            self._active = normalize_order(self._active)

    def _persist(self) -> None:
        try:
            self._store.set_many_json(
                {
                    items_key(self._mode): modules_to_blob(self._active),
                    minimized_key(self._mode): modules_to_blob(self._minimized),
                    VIEW_MODE_KEY: self._mode.value,
                }
            )
        except Exception:
            # In-memory state stays authoritative; the next mutation writes again.
            logger.exception("Failed to persist view=%s", self._mode.value)

    def _missing(self, op: str, module_id: str) -> Mutation:
        logger.warning("%s: module not found id=%s", op, module_id)
        return Mutation(applied=False, missing=ReferenceNotFound("module", module_id))

    # ---- lifecycle ----

    def create_module(self, kind: ModuleKind | str, drop: GridPoint | None = None) -> Mutation:
        kind = ModuleKind(kind)
        if kind is ModuleKind.CLOCK and any(m.kind is ModuleKind.CLOCK for m in (*self._active, *self._minimized)):
            logger.warning("create_module: only one clock allowed")
            return Mutation(applied=False)

        spec = MODULE_SPECS[kind]
        module = Module(
            id=uuid.uuid4().hex,
            kind=kind,
            free_layout=Rect(0, 0, spec.w, spec.h),
            title=default_title(kind),
        )
        if self._mode is ViewMode.FREE:
            if drop is not None:
                module.free_layout = Rect(max(0, drop.x), max(0, drop.y), spec.w, spec.h)
            else:
                module.free_layout = default_free_slot(len(self._active), module, self._rules)
        else:
            module.order_index = len(self._active)

        self._active.append(module)
        self._reconcile_order()
        self._persist()
        logger.info("Module created id=%s kind=%s mode=%s", module.id, kind.value, self._mode.value)

        err = self._mirror.add(module, self._mode.other)
        return Mutation(applied=True, module=module, mirror_error=err)

    def update_shared_property(self, module_id: str, **patch: Any) -> Mutation:
        positional = set(patch) - SHARED_FIELDS
        if positional:
            logger.warning("update_shared_property: ignoring non-shared fields %s", sorted(positional))
        clean = {k: v for k, v in patch.items() if k in SHARED_FIELDS}

        if "theme_index" in clean:
            theme = clean["theme_index"]
            if not isinstance(theme, int) or not 0 <= theme < THEME_COUNT:
                logger.warning("update_shared_property: theme_index out of range: %r", theme)
                del clean["theme_index"]
        for key in ("title", "content"):
            if key in clean and not isinstance(clean[key], str):
                clean[key] = str(clean[key])
        if not clean:
            return Mutation(applied=False)

        module = self.get(module_id)
        if module is None:
            return self._missing("update_shared_property", module_id)

        for key, value in clean.items():
            setattr(module, key, value)
        self._persist()

        err = self._mirror.patch_shared(module_id, clean, self._mode.other)
        return Mutation(applied=True, module=module, mirror_error=err)

    def minimize(self, module_id: str) -> Mutation:
        module = self._find_active(module_id)
        if module is None:
            if self._find_minimized(module_id) is not None:
                logger.debug("minimize: module already minimized id=%s", module_id)
                return Mutation(applied=False, module=self._find_minimized(module_id))
            return self._missing("minimize", module_id)

        snapshot(module)
        module.minimized = True
        module.order_index = None
        self._active = [m for m in self._active if m.id != module_id]
        self._minimized.append(module)
        self._reconcile_order()
        self._persist()

        err = self._mirror.minimize(module_id, self._mode.other)
        return Mutation(applied=True, module=module, mirror_error=err)

    def restore(self, module_id: str, drop: GridPoint | None = None) -> Mutation:
        if self._find_active(module_id) is not None:
            logger.debug("restore: module already active id=%s", module_id)
            return Mutation(applied=False, module=self._find_active(module_id))
        module = self._find_minimized(module_id)
        if module is None:
            return self._missing("restore", module_id)

        restore_placement(module, self._mode, self._active, drop if self._mode is ViewMode.FREE else None)
        module.minimized = False
        self._minimized = [m for m in self._minimized if m.id != module_id]
        self._active.append(module)
        self._reconcile_order()
        self._persist()

        err = self._mirror.restore(module, self._mode.other)
        return Mutation(applied=True, module=module, mirror_error=err)

    def request_delete(self, module_id: str, *, confirmed: bool = False) -> tuple[DeleteOutcome, Mutation]:
        """Delete unless the module holds content and the user has not confirmed."""
        module = self.get(module_id)
        if module is None:
            return DeleteOutcome.NOT_FOUND, self._missing("request_delete", module_id)
        if not confirmed and has_content(module, self._tasks.all()):
            logger.info("Delete of module id=%s needs confirmation", module_id)
            return DeleteOutcome.NEEDS_CONFIRMATION, Mutation(applied=False, module=module)
        return DeleteOutcome.DELETED, self.delete_module(module_id)

    def delete_module(self, module_id: str) -> Mutation:
        module = self.get(module_id)
        if module is None:
            return self._missing("delete_module", module_id)

        self._active = [m for m in self._active if m.id != module_id]
        self._minimized = [m for m in self._minimized if m.id != module_id]
        self._reconcile_order()
        self._persist()

        err = self._mirror.remove(module_id, self._mode.other)
        removal = self._tasks.delete_tasks_for_module(module_id)
        logger.info("Module deleted id=%s tasks_removed=%d", module_id, len(removal.removed))
        return Mutation(applied=True, module=module, mirror_error=err, removal=removal)

    # ---- view mode ----

    def switch_view_mode(self, new_mode: ViewMode | str) -> Mutation:
        target = ViewMode(new_mode)
        if target is self._mode:
            return Mutation(applied=False)

        self._persist()
        target_active, target_minimized = load_view(self._store, target)
        active, minimized = merge_for_switch(
            self._active,
            self._minimized,
            target_active,
            target_minimized,
            target,
            self._rules,
        )

        logger.info(
            "View switch %s -> %s active=%d minimized=%d",
            self._mode.value,
            target.value,
            len(active),
            len(minimized),
        )
        self._mode = target
        self._active = active
        self._minimized = minimized
        self._reconcile_order()
        self._persist()
        return Mutation(applied=True)

    # ---- positional updates ----

    def drag_preview(self, module_id: str, offset: float) -> list[Module]:
        """Live order while dragging in structured view. Nothing is stored."""
        if self._mode is not ViewMode.STRUCTURED:
            return self.active()
        return drag_order(self._active, module_id, offset, self._rules.column_width)

    def drag_commit(self, module_id: str, offset: float) -> Mutation:
        if self._mode is not ViewMode.STRUCTURED:
            logger.warning("drag_commit: structured reorder requested in %s view", self._mode.value)
            return Mutation(applied=False)
        module = self._find_active(module_id)
        if module is None:
            return self._missing("drag_commit", module_id)

        ordered = drag_order(self._active, module_id, offset, self._rules.column_width)
        new_index = {m.id: m.order_index for m in ordered}
        if not is_contiguous(ordered) or set(new_index) != {m.id for m in self._active}:
            logger.error("drag_commit: computed order is not contiguous; aborting reorder of id=%s", module_id)
            return Mutation(applied=False, module=module)

        for m in self._active:
            m.order_index = new_index[m.id]
        self._reconcile_order()
        self._persist()
        return Mutation(applied=True, module=module)

    def move_free(self, module_id: str, rect: Rect) -> Mutation:
        """Free-view drag/resize. Positional, so never mirrored."""
        if self._mode is not ViewMode.FREE:
            logger.warning("move_free: free layout change requested in %s view", self._mode.value)
            return Mutation(applied=False)
        module = self._find_active(module_id)
        if module is None:
            return self._missing("move_free", module_id)
        spec = MODULE_SPECS[module.kind]
        if not rect.is_valid() or rect.w < spec.min_w or rect.h < spec.min_h:
            logger.warning("move_free: invalid rect %s for module id=%s", rect, module_id)
            return Mutation(applied=False, module=module)

        module.free_layout = rect
        self._persist()
        return Mutation(applied=True, module=module)
