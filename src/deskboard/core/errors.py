# src/deskboard/core/errors.py

"""
Error taxonomy of the workspace core.

Only StoreError and AttachmentIOFailure are ever raised across a component
boundary. The others exist so results can carry a typed reason:
- ReferenceNotFound: the operation named an unknown id (logged no-op, on Mutation.missing)
- StructuralCorruption: bad task parent links (repaired on read, listed on SafeTree.repairs)
- MirrorWriteFailure: the inactive view could not be updated
"""

from __future__ import annotations


class DeskboardError(Exception):
    """Base class for all workspace errors."""


class StoreError(DeskboardError):
    """The persistent store could not complete a write."""


class ReferenceNotFound(DeskboardError):
    def __init__(self, kind: str, ref_id: str) -> None:
        super().__init__(f"{kind} not found: {ref_id}")
        self.kind = kind
        self.ref_id = ref_id


class StructuralCorruption(DeskboardError):
    """A task parent link that cannot be rendered; the task is shown as a root."""

    def __init__(self, task_id: str, parent_id: str, reason: str) -> None:
        super().__init__(f"task {task_id} parent {parent_id}: {reason}")
        self.task_id = task_id
        self.parent_id = parent_id
        self.reason = reason


class MirrorWriteFailure(DeskboardError):
    """Raised internally and returned to callers when the other view diverges."""

    def __init__(self, operation: str, module_id: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"mirror write failed op={operation} module={module_id}{detail}")
        self.operation = operation
        self.module_id = module_id
        self.cause = cause


class AttachmentIOFailure(DeskboardError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"attachment I/O failed for {path}: {reason}")
        self.path = path
        self.reason = reason
