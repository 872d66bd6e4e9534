"""
StepChainSelector -- the Step Chain Resolver.

Loads a workflow type's steps and hands back a ``StepChain``; the chain
answers ``initial_step()`` and ``next_step(order)`` without further I/O.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.step_chain import StepChain
from workflow_kernel.domain.workflow import StepInfo
from workflow_kernel.exceptions import WorkflowTypeNotFoundError
from workflow_kernel.models.department import Department
from workflow_kernel.models.workflow_type import WorkflowStep, WorkflowType
from workflow_kernel.selectors.base import BaseSelector


class StepChainSelector(BaseSelector[WorkflowStep]):
    """Read-only access to workflow step chains."""

    def load(self, workflow_type_id: UUID) -> StepChain:
        """
        Build the chain for one workflow type.

        Raises:
            WorkflowTypeNotFoundError: no such type.
            InvalidStepChainError: stored steps violate the chain invariants.
        """
        if self.session.get(WorkflowType, workflow_type_id) is None:
            raise WorkflowTypeNotFoundError(str(workflow_type_id))
        return StepChain(workflow_type_id, self._step_infos(workflow_type_id))

    def load_all(self) -> dict[UUID, StepChain]:
        """Chains for every workflow type, including types with no steps."""
        by_type: dict[UUID, list[StepInfo]] = defaultdict(list)
        for info in self._step_infos(None):
            by_type[info.workflow_type_id].append(info)
        type_ids = self.session.scalars(select(WorkflowType.id)).all()
        return {tid: StepChain(tid, by_type.get(tid, ())) for tid in type_ids}

    def initial_step(self, workflow_type_id: UUID) -> StepInfo:
        return self.load(workflow_type_id).initial_step()

    def next_step(self, workflow_type_id: UUID, current_order: int) -> StepInfo | None:
        return self.load(workflow_type_id).next_step(current_order)

    def _step_infos(self, workflow_type_id: UUID | None) -> list[StepInfo]:
        stmt = (
            select(WorkflowStep, Department.name)
            .join(Department, Department.id == WorkflowStep.department_id)
            .order_by(WorkflowStep.workflow_type_id, WorkflowStep.step_order)
        )
        if workflow_type_id is not None:
            stmt = stmt.where(WorkflowStep.workflow_type_id == workflow_type_id)
        return [
            step.to_dto(department_name=name)
            for step, name in self.session.execute(stmt).all()
        ]
