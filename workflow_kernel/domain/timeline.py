"""
Timeline reconstruction (``workflow_kernel.domain.timeline``).

Pure functions that turn an application's ordered history into hops and
per-step completion flags.  Nothing here reads the database; the timeline
selector loads the rows and calls in.

Hop rules
---------
* hop 0 is entered at the application's creation time;
* hop k (k > 0) is entered when hop k-1 was left;
* every hop is left at its own history entry's timestamp;
* the department holding the application during hop 0 is the creator's
  department, afterwards it is the department that acted in the previous
  entry.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from workflow_kernel.domain.workflow import (
    HistoryRecord,
    StepInfo,
    StepProgress,
    TimelineHop,
)


def build_hops(
    created_at: datetime,
    creator_department_id: UUID,
    history: Sequence[HistoryRecord],
) -> tuple[TimelineHop, ...]:
    """One hop per history entry, in sequence order."""
    hops: list[TimelineHop] = []
    entered_at = created_at
    holder = creator_department_id
    for index, entry in enumerate(sorted(history, key=lambda e: e.sequence)):
        hops.append(
            TimelineHop(
                index=index,
                action=entry.action,
                held_by_department_id=holder,
                acted_by_department_id=entry.department_id,
                entered_at=entered_at,
                left_at=entry.timestamp,
                notes=entry.notes,
            )
        )
        entered_at = entry.timestamp
        holder = entry.department_id
    return tuple(hops)


def build_step_progress(
    steps: Sequence[StepInfo],
    history: Sequence[HistoryRecord],
    current_step_id: UUID,
) -> tuple[StepProgress, ...]:
    """Completion flags for every step of the chain, in order.

    A step is completed when any history entry was written by its
    department; it is current when it is the application's current step.
    """
    acted = {entry.department_id for entry in history}
    return tuple(
        StepProgress(
            step_id=step.step_id,
            department_id=step.department_id,
            order=step.order,
            completed=step.department_id in acted,
            is_current=step.step_id == current_step_id,
            department_name=step.department_name,
        )
        for step in sorted(steps, key=lambda s: s.order)
    )
