"""
Module: workflow_kernel.models.workflow_type
Responsibility: ORM persistence for workflow-type definitions: the type
    itself, its ordered steps, and its required-document labels.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(workflow_type_id, step_order): step orders never repeat within
      a type.
    - step_order > 0.

Failure modes:
    - IntegrityError on a duplicate step order.
"""

from __future__ import annotations

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
    from workflow_kernel.domain.workflow import StepInfo
    from workflow_kernel.models.department import Department


class WorkflowType(Base):
    """A category of request with its own linear approval chain."""

    __tablename__ = "workflow_types"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    owning_department_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("departments.id"), nullable=False,
    )

    owning_department: Mapped["Department"] = relationship("Department")

    steps: Mapped[list["WorkflowStep"]] = relationship(
        "WorkflowStep",
        back_populates="workflow_type",
        order_by="WorkflowStep.step_order",
        cascade="all, delete-orphan",
    )

    documents: Mapped[list["RequiredDocument"]] = relationship(
        "RequiredDocument",
        back_populates="workflow_type",
        order_by="RequiredDocument.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<WorkflowType {self.code}>"


class WorkflowStep(Base):
    """One department-owned hop in a workflow type's chain."""

    __tablename__ = "workflow_steps"

    __table_args__ = (
        UniqueConstraint(
            "workflow_type_id", "step_order",
            name="uq_workflow_steps_type_order",
        ),
        CheckConstraint("step_order > 0", name="ck_workflow_steps_positive_order"),
        Index("ix_workflow_steps_department_id", "department_id"),
    )

    workflow_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_types.id"), nullable=False,
    )
    department_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("departments.id"), nullable=False,
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)

    workflow_type: Mapped[WorkflowType] = relationship(
        "WorkflowType", back_populates="steps",
    )
    department: Mapped["Department"] = relationship("Department")

    def __repr__(self) -> str:
        return (
            f"<WorkflowStep type={self.workflow_type_id} "
            f"order={self.step_order} department={self.department_id}>"
        )

    def to_dto(self, department_name: str | None = None) -> StepInfo:
        from workflow_kernel.domain.workflow import StepInfo

        return StepInfo(
            step_id=self.id,
            workflow_type_id=self.workflow_type_id,
            department_id=self.department_id,
            order=self.step_order,
            department_name=department_name,
        )


class RequiredDocument(Base):
    """A document label an applicant must supply for a workflow type."""

    __tablename__ = "workflow_type_documents"

    __table_args__ = (
        UniqueConstraint(
            "workflow_type_id", "label",
            name="uq_workflow_type_documents_label",
        ),
    )

    workflow_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_types.id"), nullable=False,
    )
    label: Mapped[str] = mapped_column(String(300), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    workflow_type: Mapped[WorkflowType] = relationship(
        "WorkflowType", back_populates="documents",
    )
