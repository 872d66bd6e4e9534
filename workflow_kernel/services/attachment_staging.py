"""
AttachmentStaging -- ties attachment side effects to the session transaction.

Responsibility:
    The attachment store is not transactional with the database.  Staging
    sequences its side effects around the caller's commit/rollback:

    * a new file is written immediately (its path must go into the row) and
      removed again if the transaction rolls back;
    * a replaced file is only removed after the transaction commits, so a
      failed approve/reject leaves the previous attachment intact.

Architecture position:
    Kernel > Services.  One staging object per Session, kept in
    ``session.info`` and driven by SQLAlchemy session events.

Failure modes:
    - StorageFailureError from ``stage_new`` propagates and aborts the unit.
    - Cleanup failures after commit/rollback are logged at ERROR with the
      orphaned path; the transaction outcome stands.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import event
from sqlalchemy.orm import Session

from workflow_kernel.domain.collaborators import AttachmentStore, AttachmentUpload
from workflow_kernel.exceptions import StorageFailureError
from workflow_kernel.logging_config import get_logger

logger = get_logger("services.attachment_staging")

_SESSION_KEY = "workflow_attachment_staging"


class AttachmentStaging:
    """Pending attachment writes and deletes for one session."""

    def __init__(self, session: Session, store: AttachmentStore):
        self.session = session
        self.store = store
        self.pending_new: list[str] = []
        self.pending_delete: list[str] = []
        event.listen(session, "after_commit", self._after_commit)
        event.listen(session, "after_soft_rollback", self._after_soft_rollback)

    @classmethod
    def for_session(cls, session: Session, store: AttachmentStore) -> AttachmentStaging:
        """Return the session's staging, creating it on first use."""
        staging = session.info.get(_SESSION_KEY)
        if staging is None or staging.store is not store:
            staging = cls(session, store)
            session.info[_SESSION_KEY] = staging
        return staging

    def stage_new(self, upload: AttachmentUpload | None, application_id: UUID) -> str | None:
        """Write ``upload`` now; undo it if the transaction rolls back.

        Returns None for a missing or empty upload.
        """
        if upload is None or not upload.content:
            return None
        path = self.store.save(upload, application_id)
        self.pending_new.append(path)
        return path

    def stage_delete(self, relative_path: str | None) -> None:
        """Remove ``relative_path`` once the transaction commits."""
        if relative_path:
            self.pending_delete.append(relative_path)

    def _after_commit(self, session: Session) -> None:
        to_delete, self.pending_delete = self.pending_delete, []
        self.pending_new = []
        for path in to_delete:
            self._discard(path, "replaced_attachment_cleanup_failed")

    def _after_soft_rollback(self, session: Session, previous_transaction) -> None:
        if previous_transaction.parent is not None:
            return
        to_delete, self.pending_new = self.pending_new, []
        self.pending_delete = []
        for path in to_delete:
            self._discard(path, "staged_attachment_cleanup_failed")
        if to_delete:
            logger.info(
                "staged_attachments_discarded",
                extra={"count": len(to_delete)},
            )

    def _discard(self, path: str, failure_event: str) -> None:
        try:
            self.store.delete(path)
        except StorageFailureError:
            logger.error(failure_event, extra={"path": path}, exc_info=True)
