"""
Workflow domain types (``workflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the application workflow: the status lifecycle,
history actions, status normalization for query filters, and the frozen
DTOs that services and selectors hand back to callers.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``APPLICATION_TRANSITIONS`` defines the only valid status changes;
  terminal statuses have no outgoing edges.
* ``ACTIVE_STATUSES`` lists the statuses that block a second application
  for the same student.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from workflow_kernel.exceptions import InvalidQueryError


# =========================================================================
# Status lifecycle
# =========================================================================


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""

    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


class HistoryAction(str, Enum):
    """Action recorded by one history entry."""

    CREATED = "created"
    APPROVED = "approved"
    REJECTED = "rejected"


APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    # in_progress -> in_progress is an approval that advances to the next step
    ApplicationStatus.IN_PROGRESS: frozenset({
        ApplicationStatus.IN_PROGRESS,
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
})

ACTIVE_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.IN_PROGRESS,
    ApplicationStatus.APPROVED,
})

# Actions that count as a department having worked on an application.
DECISION_ACTIONS: frozenset[HistoryAction] = frozenset({
    HistoryAction.APPROVED,
    HistoryAction.REJECTED,
})


def is_valid_transition(
    from_status: ApplicationStatus, to_status: ApplicationStatus,
) -> bool:
    return to_status in APPLICATION_TRANSITIONS.get(from_status, frozenset())


_STATUS_ALIASES: dict[str, ApplicationStatus] = {
    "inprogress": ApplicationStatus.IN_PROGRESS,
    "pending": ApplicationStatus.IN_PROGRESS,
    "new": ApplicationStatus.IN_PROGRESS,
    "approved": ApplicationStatus.APPROVED,
    "rejected": ApplicationStatus.REJECTED,
}


def normalize_status(value: str | ApplicationStatus | None) -> ApplicationStatus | None:
    """Map a user-supplied status filter onto ApplicationStatus.

    Case, spaces, hyphens and underscores are ignored, so "InProgress",
    "in progress" and "IN_PROGRESS" all match.  Blank input means "no
    filter" and returns None.

    Raises:
        InvalidQueryError: the value names no known status.
    """
    if value is None:
        return None
    if isinstance(value, ApplicationStatus):
        return value
    key = "".join(ch for ch in value.lower() if ch not in " _-\t")
    if not key:
        return None
    try:
        return _STATUS_ALIASES[key]
    except KeyError:
        raise InvalidQueryError("status", value, "unknown application status") from None


# =========================================================================
# DTOs
# =========================================================================


@dataclass(frozen=True)
class StepInfo:
    """One hop of a workflow type's chain."""

    step_id: UUID
    workflow_type_id: UUID
    department_id: UUID
    order: int
    department_name: str | None = None


@dataclass(frozen=True)
class ApplicationRecord:
    """Read-only view of an application row."""

    application_id: UUID
    workflow_type_id: UUID
    student_id: UUID
    created_by_employee_id: UUID
    created_at: datetime
    status: ApplicationStatus
    current_step_id: UUID
    attachment_path: str | None
    notes: str

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class HistoryRecord:
    """One immutable history entry."""

    entry_id: UUID
    application_id: UUID
    sequence: int
    department_id: UUID
    actor_employee_id: UUID | None
    action: HistoryAction
    timestamp: datetime
    notes: str


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful create/approve/reject call."""

    application: ApplicationRecord
    history_entry: HistoryRecord
    previous_status: ApplicationStatus | None
    previous_step_id: UUID | None


@dataclass(frozen=True)
class TimelineHop:
    """The interval an application spent before one history entry.

    ``entered_at`` is the creation time for hop 0 and the previous entry's
    timestamp afterwards; ``left_at`` is this entry's timestamp.
    """

    index: int
    action: HistoryAction
    held_by_department_id: UUID
    acted_by_department_id: UUID
    entered_at: datetime
    left_at: datetime
    notes: str

    @property
    def duration(self) -> timedelta:
        return self.left_at - self.entered_at


@dataclass(frozen=True)
class StepProgress:
    """Completion flags for one step of the chain."""

    step_id: UUID
    department_id: UUID
    order: int
    completed: bool
    is_current: bool
    department_name: str | None = None


@dataclass(frozen=True)
class ApplicationDetails:
    """Full timeline view of one application."""

    application: ApplicationRecord
    workflow_type_name: str
    hops: tuple[TimelineHop, ...]
    steps: tuple[StepProgress, ...]
    required_documents: tuple[str, ...] = ()

    @property
    def current_step(self) -> StepProgress | None:
        for step in self.steps:
            if step.is_current:
                return step
        return None


@dataclass(frozen=True)
class StudentApplicationSummary:
    """One row of a student's own application list."""

    application_id: UUID
    workflow_type_id: UUID
    workflow_type_name: str
    status: ApplicationStatus
    created_at: datetime
    current_department_id: UUID
    progress: float
