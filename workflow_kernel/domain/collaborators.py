"""
External collaborator interfaces (``workflow_kernel.domain.collaborators``).

Responsibility
--------------
The workflow engine depends on two things it does not own: the identity
registry that knows students, and the attachment store that keeps files.
This module defines their interfaces as ``typing.Protocol``s together with
the value objects that cross those boundaries.

Default implementations live in ``services/identity_registry.py`` and
``services/local_attachment_store.py``; callers may inject their own.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class StudentIdentity:
    """Identity fields presented when an application is filed."""

    external_id: str
    full_name: str
    email: str | None = None


@dataclass(frozen=True)
class StudentRecord:
    """A student as known to the identity registry."""

    student_id: UUID
    external_id: str
    full_name: str
    email: str


@dataclass(frozen=True)
class AttachmentUpload:
    """A file handed to the engine for storage.

    The engine never reads ``content``; it only passes it to the store.
    """

    filename: str
    content: bytes

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower()


class IdentityRegistry(Protocol):
    """Lookup and provisioning of students."""

    def find_student_by_external_id(self, external_id: str) -> StudentRecord | None:
        ...

    def register_student(self, identity: StudentIdentity) -> StudentRecord:
        """Provision the student, or return the record already registered
        under the same external id."""
        ...


class AttachmentStore(Protocol):
    """Binary file storage keyed by relative path."""

    def save(self, upload: AttachmentUpload, owner_application_id: UUID) -> str:
        """Persist the file and return its relative path."""
        ...

    def delete(self, relative_path: str) -> None:
        """Remove a file.  Missing files are not an error."""
        ...
