"""
LocalAttachmentStore -- filesystem implementation of AttachmentStore.

Layout::

    <root>/App_<application id>/<random uuid><original extension>

``save`` returns the path relative to ``root`` with forward slashes; that
string is what the application row stores.  File bytes are never read back
by the workflow engine.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from uuid import UUID, uuid4

from workflow_kernel.domain.collaborators import AttachmentUpload
from workflow_kernel.exceptions import StorageFailureError
from workflow_kernel.logging_config import get_logger

logger = get_logger("services.attachments")


class LocalAttachmentStore:
    """Stores attachments under a root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def save(self, upload: AttachmentUpload, owner_application_id: UUID) -> str:
        folder = PurePosixPath(f"App_{owner_application_id}")
        relative = folder / f"{uuid4()}{upload.extension}"
        target = self.root / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(upload.content)
        except OSError as exc:
            raise StorageFailureError("save", str(relative), str(exc)) from exc

        logger.info(
            "attachment_saved",
            extra={
                "application_id": str(owner_application_id),
                "path": str(relative),
                "size_bytes": len(upload.content),
            },
        )
        return str(relative)

    def delete(self, relative_path: str) -> None:
        if not relative_path:
            return
        target = self.full_path(relative_path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailureError("delete", relative_path, str(exc)) from exc
        logger.info("attachment_deleted", extra={"path": relative_path})

    def full_path(self, relative_path: str) -> Path:
        """Absolute location of a stored file.

        Raises:
            StorageFailureError: the path escapes the store root.
        """
        root = self.root.resolve()
        target = (root / relative_path).resolve()
        if root != target and root not in target.parents:
            raise StorageFailureError("resolve", relative_path, "path escapes attachment root")
        return target

    def exists(self, relative_path: str) -> bool:
        return self.full_path(relative_path).is_file()
