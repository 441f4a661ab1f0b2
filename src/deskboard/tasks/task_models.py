# src/deskboard/tasks/task_models.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TASK_COLOR = "#333333"


class DropPosition(StrEnum):
    """Where a dragged task lands relative to the target task."""

    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


@dataclass(slots=True)
class TaskImage:
    id: str
    path: str
    is_cover: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "path": self.path, "isCover": self.is_cover}

    @classmethod
    def from_dict(cls, raw: Any) -> TaskImage | None:
        if not isinstance(raw, dict):
            return None
        img_id = raw.get("id")
        path = raw.get("path")
        if not isinstance(img_id, str) or not isinstance(path, str) or not path:
            return None
        return cls(id=img_id, path=path, is_cover=bool(raw.get("isCover", False)))


@dataclass(slots=True)
class Task:
    id: str
    text: str
    origin_module_id: str
    done: bool = False
    parent_id: str | None = None
    description: str = ""
    color: str = DEFAULT_TASK_COLOR
    category: str | None = None
    # Calendar event whose deadline completes this task (see deadline_sweeper).
    linked_event_id: str | None = None
    images: list[TaskImage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "done": self.done,
            "originModuleId": self.origin_module_id,
            "description": self.description,
            "color": self.color,
        }
        if self.parent_id is not None:
            out["parentId"] = self.parent_id
        if self.category is not None:
            out["category"] = self.category
        if self.linked_event_id is not None:
            out["linkedEventId"] = self.linked_event_id
        if self.images:
            out["images"] = [img.to_dict() for img in self.images]
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> Task | None:
        """
        Build a Task from an untrusted persisted record.

        Returns None for records without a usable id/origin. Parent links are
        kept as-is: structural repair is build_safe_tree()'s job, not the loader's.
        """
        if not isinstance(raw, dict):
            return None
        task_id = raw.get("id")
        origin = raw.get("originModuleId")
        if not isinstance(task_id, (str, int)) or not isinstance(origin, str) or not origin:
            return None

        parent = raw.get("parentId")
        images_raw = raw.get("images")
        images = [img for img in (TaskImage.from_dict(i) for i in images_raw or []) if img] if isinstance(images_raw, list) else []
        # At most one cover: the first flagged image wins.
        covers = [img for img in images if img.is_cover]
        for img in covers[1:]:
            img.is_cover = False

        def opt_str(key: str) -> str | None:
            v = raw.get(key)
            return v if isinstance(v, str) and v else None

        return cls(
            id=str(task_id),
            text=str(raw.get("text") or ""),
            origin_module_id=origin,
            done=bool(raw.get("done", False)),
            parent_id=str(parent) if isinstance(parent, (str, int)) and parent != "" else None,
            description=str(raw.get("description") or ""),
            color=opt_str("color") or DEFAULT_TASK_COLOR,
            category=opt_str("category"),
            linked_event_id=opt_str("linkedEventId"),
            images=images,
        )


def tasks_from_blob(blob: Any) -> list[Task]:
    if not isinstance(blob, list):
        return []
    out: list[Task] = []
    for raw in blob:
        task = Task.from_dict(raw)
        if task is None:
            logger.warning("Dropping malformed task record: %r", raw)
            continue
        out.append(task)
    return out
