"""
HistorySelector -- application snapshots for replay-based reads.

Reporting never keeps counters of its own; it replays history.  This
selector loads, in two queries, every application in scope together with
the departments that matter for attribution (creator, type owner, current
step) and its ordered history.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import aliased

from workflow_kernel.domain.workflow import (
    ApplicationRecord,
    ApplicationStatus,
    HistoryAction,
    HistoryRecord,
)
from workflow_kernel.models.application import Application, HistoryEntry
from workflow_kernel.models.department import Employee
from workflow_kernel.models.workflow_type import WorkflowStep, WorkflowType
from workflow_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ApplicationSnapshot:
    """An application with everything needed to replay it."""

    application: ApplicationRecord
    workflow_type_name: str
    type_owner_department_id: UUID
    creator_department_id: UUID
    current_step_department_id: UUID
    history: tuple[HistoryRecord, ...]

    @property
    def status(self) -> ApplicationStatus:
        return self.application.status

    @property
    def created_at(self) -> datetime:
        return self.application.created_at

    @property
    def last_activity_at(self) -> datetime:
        """Timestamp of the most recent history entry (creation if none)."""
        if self.history:
            return self.history[-1].timestamp
        return self.application.created_at

    def decisions_by(self, department_id: UUID) -> tuple[HistoryRecord, ...]:
        return tuple(
            h for h in self.history
            if h.department_id == department_id
            and h.action in (HistoryAction.APPROVED, HistoryAction.REJECTED)
        )


class HistorySelector(BaseSelector[HistoryEntry]):
    """Loads ApplicationSnapshots."""

    def snapshots(
        self,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> list[ApplicationSnapshot]:
        """Snapshots of applications created in ``[created_from, created_before)``.

        Either bound may be omitted.  Ordered by creation time.
        """
        step = aliased(WorkflowStep)
        stmt = (
            select(
                Application,
                WorkflowType.name,
                WorkflowType.owning_department_id,
                Employee.department_id,
                step.department_id,
            )
            .join(WorkflowType, WorkflowType.id == Application.workflow_type_id)
            .join(Employee, Employee.id == Application.created_by_employee_id)
            .join(step, step.id == Application.current_step_id)
            .order_by(Application.created_at, Application.id)
        )
        if created_from is not None:
            stmt = stmt.where(Application.created_at >= created_from)
        if created_before is not None:
            stmt = stmt.where(Application.created_at < created_before)

        rows = self.session.execute(stmt).all()
        if not rows:
            return []

        history = self._history_for([row[0].id for row in rows])
        return [
            ApplicationSnapshot(
                application=app.to_dto(),
                workflow_type_name=type_name,
                type_owner_department_id=owner_id,
                creator_department_id=creator_dept_id,
                current_step_department_id=step_dept_id,
                history=tuple(history.get(app.id, ())),
            )
            for app, type_name, owner_id, creator_dept_id, step_dept_id in rows
        ]

    def history_of(self, application_id: UUID) -> list[HistoryRecord]:
        """One application's history in sequence order."""
        rows = self.session.scalars(
            select(HistoryEntry)
            .where(HistoryEntry.application_id == application_id)
            .order_by(HistoryEntry.sequence)
        )
        return [row.to_dto() for row in rows]

    def _history_for(self, application_ids: list[UUID]) -> dict[UUID, list[HistoryRecord]]:
        grouped: dict[UUID, list[HistoryRecord]] = defaultdict(list)
        # Chunked to stay under bind-parameter limits.
        chunk = 500
        for i in range(0, len(application_ids), chunk):
            rows = self.session.scalars(
                select(HistoryEntry)
                .where(HistoryEntry.application_id.in_(application_ids[i:i + chunk]))
                .order_by(HistoryEntry.application_id, HistoryEntry.sequence)
            )
            for row in rows:
                grouped[row.application_id].append(row.to_dto())
        return grouped
