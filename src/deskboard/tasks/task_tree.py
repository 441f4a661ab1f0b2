# src/deskboard/tasks/task_tree.py

from __future__ import annotations

"""
Task hierarchy engine.

Tasks live in one flat list (the persisted order is the render order).
Parent/child links are plain ids; every traversal goes through an id -> task
lookup with a visited-set guard, so corrupt data (cycles, dangling parents)
can slow nothing down and crash nothing.

Persisted records are never "fixed" on load. build_safe_tree() repairs the
in-memory rendering view only, so a corrupt record gets repaired by the next
edit that touches it instead of being silently dropped.
"""

import logging
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any

from ..core.errors import AttachmentIOFailure, StructuralCorruption
from ..core.ports import BlobStore, ImageStore
from ..storage.kv_store import TASKS_KEY
from .task_models import DropPosition, Task, TaskImage, tasks_from_blob

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"text", "description", "color", "category", "linked_event_id"})


# ---- safe tree (read side) ----


@dataclass(slots=True)
class TaskNode:
    task: Task
    children: list[TaskNode] = field(default_factory=list)


@dataclass(slots=True)
class SafeTree:
    roots: list[TaskNode]
    _parents: dict[str, str | None]
    repairs: list[StructuralCorruption] = field(default_factory=list)

    def parent_of(self, task_id: str) -> str | None:
        """Effective (repaired) parent id used for rendering."""
        return self._parents.get(task_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._parents

    def __len__(self) -> int:
        return len(self._parents)

    def walk(self) -> Iterator[tuple[int, Task]]:
        """Pre-order (depth, task) pairs."""
        stack: list[tuple[int, TaskNode]] = [(0, n) for n in reversed(self.roots)]
        while stack:
            depth, node = stack.pop()
            yield depth, node.task
            stack.extend((depth + 1, c) for c in reversed(node.children))


def _chain_defect(task: Task, by_id: dict[str, Task]) -> str | None:
    """
    Walk task's whole parent chain; the reason it cannot be rendered, or None.

    The chain is bad when it revisits a task, reaches an unknown id, or
    leaves the task's module at any level.
    """
    seen = {task.id}
    cur = task.parent_id
    direct = True
    while cur is not None:
        if cur in seen:
            return "self-parent" if direct else "parent cycle"
        node = by_id.get(cur)
        if node is None:
            return "missing parent" if direct else "missing ancestor"
        if node.origin_module_id != task.origin_module_id:
            return "parent in another module" if direct else "ancestor in another module"
        seen.add(cur)
        cur = node.parent_id
        direct = False
    return None


def build_safe_tree(tasks: Iterable[Task]) -> SafeTree:
    """
    Reconstruct a forest from an untrusted task collection.

    A task is demoted to a root (for this view only) when its parent chain
    revisits a task, reaches a missing id, or crosses into another module at
    any level. A task whose id was already emitted is discarded.

    Never raises, never mutates the input, and is idempotent: feeding the
    effective structure back in yields the same forest.
    """
    ordered: list[Task] = []
    by_id: dict[str, Task] = {}
    for t in tasks:
        if t.id in by_id:
            logger.debug("Duplicate task id=%s discarded from tree view", t.id)
            continue
        by_id[t.id] = t
        ordered.append(t)

    parents: dict[str, str | None] = {}
    repairs: list[StructuralCorruption] = []
    for t in ordered:
        pid = t.parent_id
        reason = _chain_defect(t, by_id)
        if pid is None or reason is None:
            parents[t.id] = pid
            continue
        logger.debug("Task id=%s has invalid parent=%s (%s); rendering as root", t.id, pid, reason)
        parents[t.id] = None
        repairs.append(StructuralCorruption(t.id, pid, reason))

    nodes = {t.id: TaskNode(task=t) for t in ordered}
    roots: list[TaskNode] = []
    for t in ordered:
        pid = parents[t.id]
        if pid is None:
            roots.append(nodes[t.id])
        else:
            nodes[pid].children.append(nodes[t.id])

    return SafeTree(roots=roots, _parents=parents, repairs=repairs)


def descendant_ids(tasks: Iterable[Task], root_id: str) -> list[str]:
    """Ids of all tasks transitively below root_id (root excluded)."""
    children: dict[str, list[str]] = {}
    for t in tasks:
        if t.parent_id is not None:
            children.setdefault(t.parent_id, []).append(t.id)

    out: list[str] = []
    seen = {root_id}
    stack = list(reversed(children.get(root_id, [])))
    while stack:
        cur = stack.pop()
        if cur in seen:
            continue
        seen.add(cur)
        out.append(cur)
        stack.extend(reversed(children.get(cur, [])))
    return out


# ---- engine (write side) ----


@dataclass(slots=True)
class TaskRemoval:
    removed: list[Task] = field(default_factory=list)
    attachment_failures: list[AttachmentIOFailure] = field(default_factory=list)

    @property
    def removed_ids(self) -> list[str]:
        return [t.id for t in self.removed]


class TaskEngine:
    """
    Owns the flat task collection and every hierarchy algorithm.

    Operations naming an unknown id are logged no-ops. When a store is given,
    the whole collection is written back after each mutation.
    """

    def __init__(self, store: BlobStore | None = None, images: ImageStore | None = None) -> None:
        self._store = store
        self._images = images
        self._tasks: list[Task] = []
        if store is not None:
            self._tasks = tasks_from_blob(store.get_json(TASKS_KEY, []))
            logger.info("TaskEngine loaded %d tasks", len(self._tasks))

    # ---- lookup ----

    def all(self) -> list[Task]:
        return list(self._tasks)

    def get(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def tasks_for_module(self, module_id: str) -> list[Task]:
        return [t for t in self._tasks if t.origin_module_id == module_id]

    def tree_for_module(self, module_id: str) -> SafeTree:
        return build_safe_tree(self.tasks_for_module(module_id))

    def replace_all(self, tasks: Iterable[Task]) -> None:
        self._tasks = list(tasks)
        self._save()

    def _save(self) -> None:
        if self._store is None:
            return
        try:
            self._store.set_json(TASKS_KEY, [t.to_dict() for t in self._tasks])
        except Exception:
            logger.exception("Failed to persist %d tasks", len(self._tasks))

    def _missing(self, op: str, task_id: str | None) -> None:
        logger.warning("%s: task not found id=%s", op, task_id)

    # ---- create / edit ----

    def add_task(self, text: str, origin_module_id: str, parent_id: str | None = None) -> Task | None:
        if not text or not text.strip():
            raise ValueError("text is required")
        if not origin_module_id:
            raise ValueError("origin_module_id is required")

        color = None
        if parent_id is not None:
            parent = self.get(parent_id)
            if parent is None:
                self._missing("add_task(parent)", parent_id)
                return None
            if parent.origin_module_id != origin_module_id:
                logger.warning(
                    "add_task: parent id=%s belongs to module=%s, not %s",
                    parent_id,
                    parent.origin_module_id,
                    origin_module_id,
                )
                return None
            color = parent.color

        task = Task(id=uuid.uuid4().hex, text=text, origin_module_id=origin_module_id, parent_id=parent_id)
        if color:
            task.color = color
        self._tasks.append(task)
        self._save()
        logger.debug("Task added id=%s module=%s parent=%s", task.id, origin_module_id, parent_id)
        return task

    def update_task(self, task_id: str, **fields: Any) -> Task | None:
        task = self.get(task_id)
        if task is None:
            self._missing("update_task", task_id)
            return None

        done = fields.pop("done", None)
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            logger.warning("update_task: ignoring non-editable fields %s", sorted(unknown))
        for name in EDITABLE_FIELDS & set(fields):
            setattr(task, name, fields[name])

        if done is not None:
            self.set_done(task_id, bool(done))
        else:
            self._save()
        return task

    # ---- completion cascade ----

    def set_done(self, task_id: str, value: bool) -> bool:
        task = self.get(task_id)
        if task is None:
            self._missing("set_done", task_id)
            return False

        task.done = value
        for did in descendant_ids(self._tasks, task_id):
            d = self.get(did)
            if d is not None:
                d.done = value

        by_id = {t.id: t for t in self._tasks}
        seen = {task.id}
        cur = task
        while cur.parent_id is not None and cur.parent_id not in seen:
            parent = by_id.get(cur.parent_id)
            if parent is None:
                break
            seen.add(parent.id)
            if not value:
                parent.done = False
            else:
                siblings = [t for t in self._tasks if t.parent_id == parent.id]
                if not all(s.done for s in siblings):
                    break
                parent.done = True
            cur = parent

        self._save()
        return True

    # ---- removal ----

    def delete_task(self, task_id: str) -> TaskRemoval:
        if self.get(task_id) is None:
            self._missing("delete_task", task_id)
            return TaskRemoval()
        return self._remove_ids({task_id, *descendant_ids(self._tasks, task_id)})

    def delete_tasks_for_module(self, module_id: str) -> TaskRemoval:
        ids: set[str] = set()
        for t in self.tasks_for_module(module_id):
            ids.add(t.id)
            ids.update(descendant_ids(self._tasks, t.id))
        if not ids:
            return TaskRemoval()
        return self._remove_ids(ids)

    def _remove_ids(self, ids: set[str]) -> TaskRemoval:
        result = TaskRemoval()
        kept: list[Task] = []
        for t in self._tasks:
            (result.removed if t.id in ids else kept).append(t)
        self._tasks = kept

        for t in result.removed:
            for img in t.images:
                failure = self._delete_attachment(img.path)
                if failure is not None:
                    result.attachment_failures.append(failure)

        self._save()
        logger.info(
            "Removed %d tasks (%d attachment failures)",
            len(result.removed),
            len(result.attachment_failures),
        )
        return result

    def _delete_attachment(self, path: str) -> AttachmentIOFailure | None:
        if self._images is None:
            return None
        try:
            self._images.delete(path)
        except AttachmentIOFailure as e:
            logger.warning("%s", e)
            return e
        except OSError as e:
            logger.warning("Attachment delete failed path=%s: %s", path, e)
            return AttachmentIOFailure(path, str(e))
        return None

    # ---- move / reorder ----

    def move_task(self, task_id: str, target_module_id: str) -> bool:
        task = self.get(task_id)
        if task is None:
            self._missing("move_task", task_id)
            return False

        if task.origin_module_id != target_module_id:
            # The old parent is not rendered in the destination list.
            task.parent_id = None
        for tid in [task_id, *descendant_ids(self._tasks, task_id)]:
            t = self.get(tid)
            if t is not None:
                t.origin_module_id = target_module_id

        self._save()
        return True

    def reorder_task(
        self,
        dragged_id: str,
        target_id: str | None,
        position: DropPosition | str,
        new_origin_module_id: str,
    ) -> bool:
        position = DropPosition(position)
        dragged = self.get(dragged_id)
        if dragged is None:
            self._missing("reorder_task", dragged_id)
            return False
        if target_id == dragged_id:
            logger.debug("reorder_task: dropped onto itself id=%s", dragged_id)
            return False

        subtree = descendant_ids(self._tasks, dragged_id)
        if target_id is not None and target_id in subtree:
            logger.warning("reorder_task: target id=%s is inside dragged subtree id=%s", target_id, dragged_id)
            return False

        rest = [t for t in self._tasks if t.id != dragged_id]
        target_index = next((i for i, t in enumerate(rest) if t.id == target_id), -1)
        moved = replace(dragged, origin_module_id=new_origin_module_id)

        if target_id is not None and target_index != -1:
            target = rest[target_index]
            moved.parent_id = target_id if position is DropPosition.INSIDE else target.parent_id
            insert_at = target_index + 1 if position is DropPosition.AFTER else target_index
            rest.insert(insert_at, moved)
        else:
            if target_id is not None:
                self._missing("reorder_task(target)", target_id)
            moved.parent_id = None
            rest.append(moved)

        for t in rest:
            if t.id in subtree:
                t.origin_module_id = new_origin_module_id

        self._tasks = rest
        self._save()
        return True

    # ---- attachments ----

    def add_image(self, task_id: str, source_path: str) -> TaskImage | AttachmentIOFailure | None:
        task = self.get(task_id)
        if task is None:
            self._missing("add_image", task_id)
            return None
        if self._images is None:
            return AttachmentIOFailure(source_path, "no image store configured")
        try:
            stored = self._images.store(source_path, task_id)
        except AttachmentIOFailure as e:
            logger.warning("%s", e)
            return e

        image = TaskImage(id=uuid.uuid4().hex, path=stored, is_cover=not task.images)
        task.images.append(image)
        self._save()
        return image

    def remove_image(self, task_id: str, image_id: str) -> AttachmentIOFailure | None:
        task = self.get(task_id)
        if task is None:
            self._missing("remove_image", task_id)
            return None
        image = next((i for i in task.images if i.id == image_id), None)
        if image is None:
            logger.warning("remove_image: image not found task=%s image=%s", task_id, image_id)
            return None

        failure = self._delete_attachment(image.path)
        task.images = [i for i in task.images if i.id != image_id]
        if image.is_cover and task.images:
            task.images[0].is_cover = True
        if self._images is not None:
            self._images.cleanup_orphans(task_id, [i.path for i in task.images])
        self._save()
        return failure

    def set_cover_image(self, task_id: str, image_id: str) -> bool:
        task = self.get(task_id)
        if task is None:
            self._missing("set_cover_image", task_id)
            return False
        if not any(i.id == image_id for i in task.images):
            logger.warning("set_cover_image: image not found task=%s image=%s", task_id, image_id)
            return False
        for img in task.images:
            img.is_cover = img.id == image_id
        self._save()
        return True
