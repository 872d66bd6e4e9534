"""
StepChain -- the linear approval chain of one workflow type.

Responsibility:
    Answers "where does an application start" and "where does it go next"
    for a workflow type.  The chain is a total order, held as a tuple sorted
    by step order; there is no graph and no cycle detection.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Built by
    ``selectors.step_selector.StepChainSelector`` from persisted steps.

Invariants enforced:
    - Step orders are unique within a chain.
    - Every step belongs to the chain's workflow type.
    - ``next_step(order)`` never returns a step whose order is <= ``order``.

Failure modes:
    - InvalidStepChainError on duplicate orders or foreign steps.
    - NoWorkflowDefinedError when asked for a start on an empty chain, or
      for the step after the initial one on a single-step chain.
    - StepNotFoundError when a step id is not part of the chain.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator
from uuid import UUID

from workflow_kernel.domain.workflow import StepInfo
from workflow_kernel.exceptions import (
    InvalidStepChainError,
    NoWorkflowDefinedError,
    StepNotFoundError,
)


class StepChain:
    """Ordered, immutable list of a workflow type's steps."""

    __slots__ = ("_workflow_type_id", "_steps", "_orders", "_index_by_id")

    def __init__(self, workflow_type_id: UUID, steps: Iterable[StepInfo]):
        ordered = tuple(sorted(steps, key=lambda s: s.order))
        seen_orders: set[int] = set()
        for step in ordered:
            if step.workflow_type_id != workflow_type_id:
                raise InvalidStepChainError(
                    str(workflow_type_id),
                    f"step {step.step_id} belongs to type {step.workflow_type_id}",
                )
            if step.order in seen_orders:
                raise InvalidStepChainError(
                    str(workflow_type_id), f"duplicate step order {step.order}",
                )
            seen_orders.add(step.order)

        self._workflow_type_id = workflow_type_id
        self._steps = ordered
        self._orders = [s.order for s in ordered]
        self._index_by_id = {s.step_id: i for i, s in enumerate(ordered)}

    @property
    def workflow_type_id(self) -> UUID:
        return self._workflow_type_id

    @property
    def steps(self) -> tuple[StepInfo, ...]:
        return self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepInfo]:
        return iter(self._steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._index_by_id

    def initial_step(self) -> StepInfo:
        """Step with the smallest order."""
        if not self._steps:
            raise NoWorkflowDefinedError(str(self._workflow_type_id))
        return self._steps[0]

    def next_step(self, current_order: int) -> StepInfo | None:
        """Step with the smallest order strictly greater than ``current_order``.

        Returns None at the end of the chain.
        """
        i = bisect_right(self._orders, current_order)
        if i >= len(self._steps):
            return None
        return self._steps[i]

    def following_initial(self) -> StepInfo:
        """Where a new application is placed.

        The initial step is treated as satisfied by the creating department,
        so applications start at the step after it.
        """
        initial = self.initial_step()
        step = self.next_step(initial.order)
        if step is None:
            raise NoWorkflowDefinedError(
                str(self._workflow_type_id), "no step after the initial step",
            )
        return step

    def get(self, step_id: UUID) -> StepInfo:
        return self._steps[self.position_of(step_id)]

    def position_of(self, step_id: UUID) -> int:
        """Zero-based index of a step in the chain."""
        try:
            return self._index_by_id[step_id]
        except KeyError:
            raise StepNotFoundError(str(step_id), str(self._workflow_type_id)) from None

    def progress_of(self, step_id: UUID) -> float:
        """Fraction of the chain that lies before ``step_id`` (0.0 - 1.0)."""
        if not self._steps:
            return 0.0
        return self.position_of(step_id) / len(self._steps)

    def department_ids(self) -> frozenset[UUID]:
        return frozenset(s.department_id for s in self._steps)

    def __repr__(self) -> str:
        orders = ", ".join(str(o) for o in self._orders)
        return f"<StepChain type={self._workflow_type_id} orders=[{orders}]>"
