"""
Module: workflow_kernel.models.application
Responsibility: ORM persistence for applications and their append-only
    transition history.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - Status values limited to in_progress / approved / rejected (CHECK).
    - UNIQUE(application_id, sequence): two transactions can never record
      the same transition slot for one application.
    - History rows are append-only and terminal applications are frozen;
      see db/immutability.py.

Failure modes:
    - IntegrityError on a duplicate history sequence (mapped to
      ConcurrentTransitionError by the workflow service).
    - ImmutabilityViolationError on history UPDATE/DELETE, on UPDATE of a
      terminal application, and on any application DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workflow_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from workflow_kernel.domain.workflow import ApplicationRecord, HistoryRecord
    from workflow_kernel.models.department import Department, Employee, Student
    from workflow_kernel.models.workflow_type import WorkflowStep, WorkflowType


class Application(Base):
    """One workflow-type instance filed for a student."""

    __tablename__ = "applications"

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'approved', 'rejected')",
            name="ck_applications_valid_status",
        ),
        Index("ix_applications_current_step_status", "current_step_id", "status"),
        Index("ix_applications_student_status", "student_id", "status"),
        Index("ix_applications_created_at", "created_at"),
    )

    workflow_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_types.id"), nullable=False,
    )
    student_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("students.id"), nullable=False,
    )
    created_by_employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="in_progress",
    )
    current_step_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_steps.id"), nullable=False,
    )
    attachment_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    workflow_type: Mapped["WorkflowType"] = relationship("WorkflowType")
    current_step: Mapped["WorkflowStep"] = relationship("WorkflowStep")
    student: Mapped["Student"] = relationship("Student")
    created_by: Mapped["Employee"] = relationship("Employee")

    def __repr__(self) -> str:
        return f"<Application {self.id} status={self.status}>"

    def to_dto(self) -> ApplicationRecord:
        """Convert ORM model to frozen domain DTO."""
        from workflow_kernel.domain.workflow import (
            ApplicationRecord,
            ApplicationStatus,
        )

        return ApplicationRecord(
            application_id=self.id,
            workflow_type_id=self.workflow_type_id,
            student_id=self.student_id,
            created_by_employee_id=self.created_by_employee_id,
            created_at=self.created_at,
            status=ApplicationStatus(self.status),
            current_step_id=self.current_step_id,
            attachment_path=self.attachment_path,
            notes=self.notes,
        )


class HistoryEntry(Base):
    """One immutable record of a department's action on an application.

    ``sequence`` starts at 1 with the created entry and grows by one per
    transition; it is the tie-breaker when timestamps are equal.
    """

    __tablename__ = "application_history"

    __table_args__ = (
        UniqueConstraint(
            "application_id", "sequence",
            name="uq_application_history_sequence",
        ),
        CheckConstraint(
            "action IN ('created', 'approved', 'rejected')",
            name="ck_application_history_valid_action",
        ),
        Index("ix_application_history_department_action", "department_id", "action"),
        Index("ix_application_history_timestamp", "timestamp"),
    )

    application_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("applications.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    department_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("departments.id"), nullable=False,
    )
    actor_employee_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=True,
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    department: Mapped["Department"] = relationship("Department")

    def __repr__(self) -> str:
        return (
            f"<HistoryEntry application={self.application_id} "
            f"seq={self.sequence} action={self.action}>"
        )

    def to_dto(self) -> HistoryRecord:
        """Convert ORM model to frozen domain DTO."""
        from workflow_kernel.domain.workflow import HistoryAction, HistoryRecord

        return HistoryRecord(
            entry_id=self.id,
            application_id=self.application_id,
            sequence=self.sequence,
            department_id=self.department_id,
            actor_employee_id=self.actor_employee_id,
            action=HistoryAction(self.action),
            timestamp=self.timestamp,
            notes=self.notes,
        )
