# src/deskboard/cli/renderers.py

"""
Console renderers for module content.

Each module kind gets a ContentRenderer. Text kinds show their content and
accept replacement text through on_change; drawing and planner payloads are
opaque to the console and only summarized.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from ..core.ports import ContentRenderer
from ..modules.module_models import ModuleKind


class TextRenderer:
    """Plain text content; edits replace the whole string."""

    def render(self, content: str, on_change: Callable[[str], None]) -> str:
        return content if content.strip() else "(empty)"


class OpaqueRenderer:
    def __init__(self, label: str) -> None:
        self.label = label

    def render(self, content: str, on_change: Callable[[str], None]) -> str:
        if not content:
            return f"(empty {self.label})"
        return f"({self.label} data, {len(content)} chars)"


class ClockRenderer:
    def render(self, content: str, on_change: Callable[[str], None]) -> str:
        return datetime.now().astimezone().strftime("%H:%M:%S %Z")


class NoContentRenderer:
    def render(self, content: str, on_change: Callable[[str], None]) -> str:
        return "(no content; see /event list)"


_RENDERERS: dict[ModuleKind, ContentRenderer] = {
    ModuleKind.NOTE: TextRenderer(),
    ModuleKind.STICKY_NOTE: TextRenderer(),
    ModuleKind.WHITEBOARD: OpaqueRenderer("drawing"),
    ModuleKind.PLANNER: OpaqueRenderer("planner"),
    ModuleKind.CLOCK: ClockRenderer(),
    ModuleKind.CALENDAR: NoContentRenderer(),
    ModuleKind.EVENT_LIST: NoContentRenderer(),
}


def renderer_for(kind: ModuleKind) -> ContentRenderer | None:
    """None for kinds rendered from other state (task lists)."""
    return _RENDERERS.get(kind)


def is_text_kind(kind: ModuleKind) -> bool:
    return isinstance(_RENDERERS.get(kind), TextRenderer)
