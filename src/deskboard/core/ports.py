# src/deskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage, attachment and holiday providers swappable and makes testing easier.
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol


class BlobStore(Protocol):
    """Durable key -> serialized blob map (KeyValueStore implements it)."""

    def get_json(self, key: str, default: Any) -> Any: ...
    def get_list(self, key: str) -> list[Any]: ...
    def set_json(self, key: str, value: Any) -> None: ...
    def set_many_json(self, values: Mapping[str, Any]) -> None: ...


class ImageStore(Protocol):
    """
    File-backed image attachments for tasks.

    store() returns the stored path that goes into TaskImage.path.
    to_displayable() returns something a renderer can show (data URL), or "".
    cleanup_orphans() removes files of a task that no TaskImage references.
    """

    def store(self, source_path: str, task_id: str) -> str: ...
    def delete(self, stored_path: str) -> None: ...
    def to_displayable(self, stored_path: str) -> str: ...
    def cleanup_orphans(self, task_id: str, keep_paths: Iterable[str]) -> int: ...


class HolidaySource(Protocol):
    """Read-only provider of calendar events merged in at startup."""

    def fetch(self) -> list[Any]: ...


class ContentRenderer(Protocol):
    """
    Widget-side port. The core hands over the opaque content string and
    receives replacement content through on_change; it never decodes it.

    render() returns the text shown for the widget.
    """

    def render(self, content: str, on_change: Callable[[str], None]) -> str: ...
