# src/deskboard/modules/module_models.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

THEME_COUNT = 16


class ViewMode(StrEnum):
    FREE = "free"
    STRUCTURED = "structured"

    @property
    def other(self) -> ViewMode:
        return ViewMode.STRUCTURED if self is ViewMode.FREE else ViewMode.FREE

    @classmethod
    def from_db(cls, raw: Any) -> ViewMode:
        try:
            return cls(raw)
        except ValueError:
            return cls.FREE


class ModuleKind(StrEnum):
    NOTE = "note"
    CLOCK = "clock"
    WHITEBOARD = "whiteboard"
    CALENDAR = "calendar"
    TASK_LIST = "task_list"
    STICKY_NOTE = "sticky_note"
    EVENT_LIST = "event_list"
    PLANNER = "planner"


# Toolbar order; also the grouping order of a first structured layout.
KIND_ORDER: tuple[ModuleKind, ...] = (
    ModuleKind.NOTE,
    ModuleKind.STICKY_NOTE,
    ModuleKind.WHITEBOARD,
    ModuleKind.TASK_LIST,
    ModuleKind.PLANNER,
    ModuleKind.CALENDAR,
    ModuleKind.EVENT_LIST,
    ModuleKind.CLOCK,
)


@dataclass(slots=True, frozen=True)
class Rect:
    x: int
    y: int
    w: int
    h: int

    def is_valid(self) -> bool:
        return self.x >= 0 and self.y >= 0 and self.w > 0 and self.h > 0

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, raw: Any) -> Rect | None:
        if not isinstance(raw, dict):
            return None
        try:
            return cls(int(raw["x"]), int(raw["y"]), int(raw["w"]), int(raw["h"]))
        except (KeyError, TypeError, ValueError, OverflowError):
            # JSON allows Infinity/NaN; int() rejects them.
            return None


@dataclass(slots=True, frozen=True)
class GridPoint:
    """Where a module was dropped in the free grid."""

    x: int
    y: int


@dataclass(slots=True, frozen=True)
class SizeSpec:
    w: int
    h: int
    min_w: int
    min_h: int


MODULE_SPECS: dict[ModuleKind, SizeSpec] = {
    ModuleKind.NOTE: SizeSpec(16, 12, 16, 12),
    ModuleKind.CLOCK: SizeSpec(8, 8, 8, 8),
    ModuleKind.WHITEBOARD: SizeSpec(16, 16, 8, 8),
    ModuleKind.CALENDAR: SizeSpec(12, 12, 12, 12),
    ModuleKind.TASK_LIST: SizeSpec(12, 8, 12, 8),
    ModuleKind.STICKY_NOTE: SizeSpec(8, 8, 8, 8),
    ModuleKind.EVENT_LIST: SizeSpec(14, 14, 10, 10),
    ModuleKind.PLANNER: SizeSpec(16, 12, 12, 10),
}


def default_title(kind: ModuleKind) -> str:
    if kind is ModuleKind.TASK_LIST:
        return "To-do (click to edit)"
    if kind is ModuleKind.PLANNER:
        return "Planner"
    return kind.value.replace("_", " ").capitalize()


@dataclass(slots=True)
class Module:
    id: str
    kind: ModuleKind
    free_layout: Rect
    title: str = ""
    content: str = ""
    theme_index: int = 0
    order_index: int | None = None
    minimized: bool = False
    snapshot_layout: Rect | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            **self.free_layout.to_dict(),
            "title": self.title,
            "content": self.content,
            "themeIndex": self.theme_index,
            "minimized": self.minimized,
        }
        if self.order_index is not None:
            out["orderIndex"] = self.order_index
        if self.snapshot_layout is not None:
            out["prevPos"] = self.snapshot_layout.to_dict()
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> Module | None:
        if not isinstance(raw, dict):
            return None
        mod_id = raw.get("id")
        try:
            kind = ModuleKind(raw.get("kind"))
        except ValueError:
            return None
        if not isinstance(mod_id, str) or not mod_id:
            return None

        spec = MODULE_SPECS[kind]
        layout = Rect.from_dict(raw) or Rect(0, 0, spec.w, spec.h)
        order = raw.get("orderIndex")
        theme = raw.get("themeIndex", 0)
        title = raw.get("title")
        return cls(
            id=mod_id,
            kind=kind,
            free_layout=layout,
            title=title if isinstance(title, str) else default_title(kind),
            content=str(raw.get("content") or ""),
            theme_index=theme if isinstance(theme, int) and 0 <= theme < THEME_COUNT else 0,
            order_index=order if isinstance(order, int) and order >= 0 else None,
            minimized=bool(raw.get("minimized", False)),
            snapshot_layout=Rect.from_dict(raw.get("prevPos")),
        )


def modules_from_blob(blob: Any, *, minimized: bool) -> list[Module]:
    """Decode a stored module list; malformed and duplicate records are dropped."""
    if not isinstance(blob, list):
        return []
    out: list[Module] = []
    seen: set[str] = set()
    for raw in blob:
        mod = Module.from_dict(raw)
        if mod is None:
            logger.warning("Dropping malformed module record: %r", raw)
            continue
        if mod.id in seen:
            logger.warning("Dropping duplicate module record id=%s", mod.id)
            continue
        seen.add(mod.id)
        mod.minimized = minimized
        out.append(mod)
    return out


def modules_to_blob(modules: list[Module]) -> list[dict[str, Any]]:
    return [m.to_dict() for m in modules]
