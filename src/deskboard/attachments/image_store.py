# src/deskboard/attachments/image_store.py

from __future__ import annotations

import base64
import logging
import shutil
import uuid
from collections.abc import Iterable
from pathlib import Path

from ..core.errors import AttachmentIOFailure

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


class FileImageStore:
    """
    Copies task images under <root>/<task_id>/<uuid><ext>.

    Files are copied rather than linked so stored attachments survive the
    source being moved and need no elevated privileges.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _task_dir(self, task_id: str) -> Path:
        return self._root / task_id

    def store(self, source_path: str, task_id: str) -> str:
        src = Path(source_path)
        if not src.is_file():
            raise AttachmentIOFailure(source_path, "source image file does not exist")

        dest_dir = self._task_dir(task_id)
        dest = dest_dir / f"{uuid.uuid4().hex}{src.suffix.lower()}"
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
        except OSError as e:
            raise AttachmentIOFailure(source_path, f"copy failed: {e}") from e

        logger.info("Image copied from %s to %s", src, dest)
        return str(dest)

    def delete(self, stored_path: str) -> None:
        path = Path(stored_path)
        if not path.exists():
            logger.warning("Image file not found: %s", stored_path)
            return
        try:
            path.unlink()
        except OSError as e:
            raise AttachmentIOFailure(stored_path, f"unlink failed: {e}") from e
        logger.info("Image removed: %s", stored_path)

    def to_displayable(self, stored_path: str) -> str:
        """Data URL for the image; "" when it cannot be read (renderer shows a placeholder)."""
        if stored_path.startswith(("data:", "http://", "https://")):
            return stored_path
        path = Path(stored_path)
        try:
            payload = base64.b64encode(path.read_bytes()).decode("ascii")
        except OSError:
            logger.warning("Image file unreadable: %s", stored_path)
            return ""
        mime = MIME_TYPES.get(path.suffix.lower(), "image/png")
        return f"data:{mime};base64,{payload}"

    def cleanup_orphans(self, task_id: str, keep_paths: Iterable[str]) -> int:
        """Remove files in the task's directory that no TaskImage references."""
        task_dir = self._task_dir(task_id)
        if not task_dir.is_dir():
            return 0

        keep = {str(Path(p)) for p in keep_paths}
        removed = 0
        for f in task_dir.iterdir():
            if str(f) in keep:
                continue
            try:
                self.delete(str(f))
                removed += 1
            except AttachmentIOFailure:
                logger.warning("Failed to clean up orphaned image %s", f, exc_info=True)

        try:
            if not any(task_dir.iterdir()):
                task_dir.rmdir()
        except OSError:
            logger.debug("Could not remove image dir %s", task_dir, exc_info=True)
        return removed
