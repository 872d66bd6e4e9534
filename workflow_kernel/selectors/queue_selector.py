"""
WorkQueueSelector -- department inbox and outbox.

Responsibility:
    Filtered, paginated projections of applications for one department:

    * inbox  -- in-progress applications whose current step belongs to the
      department (its incoming work);
    * outbox -- applications created by the department's employees or
      approved/rejected by the department at any point.

Architecture position:
    Kernel > Selectors.  Pure reads in the caller's session, so a queue
    read in the same transaction as an approve call sees its result.

Invariants enforced:
    - Pages are 1-indexed; page_size is clamped to the configured maximum.
    - Ordering is newest first (created_at DESC, id DESC as tie-breaker).
    - Summaries count the full filtered set, not just the returned page.

Failure modes:
    - InvalidQueryError for page < 1, page_size < 1 or an unknown status.
    - DepartmentNotFoundError for an unknown department.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import String, cast, func, select
from sqlalchemy.orm import aliased

from workflow_kernel.domain.department_role import is_originating
from workflow_kernel.domain.workflow import (
    DECISION_ACTIONS,
    TERMINAL_STATUSES,
    ApplicationStatus,
    normalize_status,
)
from workflow_kernel.exceptions import DepartmentNotFoundError, InvalidQueryError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.application import Application, HistoryEntry
from workflow_kernel.models.department import Department, Employee
from workflow_kernel.models.workflow_type import WorkflowStep, WorkflowType
from workflow_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.queue")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

_DECISION_VALUES = tuple(a.value for a in DECISION_ACTIONS)
_TERMINAL_VALUES = tuple(s.value for s in TERMINAL_STATUSES)

_current_step = aliased(WorkflowStep, name="current_step")
_creator = aliased(Employee, name="creator")
_creator_dept = aliased(Department, name="creator_dept")
_step_dept = aliased(Department, name="step_dept")


@dataclass(frozen=True)
class QueueFilters:
    """Independently combinable filters shared by inbox and outbox."""

    search: str | None = None
    workflow_type_id: UUID | None = None
    status: str | ApplicationStatus | None = None


@dataclass(frozen=True)
class QueueItem:
    application_id: UUID
    workflow_type_id: UUID
    workflow_type_name: str
    status: ApplicationStatus
    created_at: datetime
    sending_department_id: UUID
    sending_department_name: str
    current_department_id: UUID
    current_department_name: str
    is_new: bool | None = None


@dataclass(frozen=True)
class InboxSummary:
    total: int
    new: int
    # None for departments that do not originate applications.
    answered: int | None


@dataclass(frozen=True)
class OutboxSummary:
    total: int
    approved: int
    rejected: int
    in_progress: int


SummaryT = TypeVar("SummaryT", InboxSummary, OutboxSummary)


@dataclass(frozen=True)
class QueuePage(Generic[SummaryT]):
    items: tuple[QueueItem, ...]
    page: int
    page_size: int
    total_items: int
    summary: SummaryT

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size) if self.total_items else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _joined(*columns):
    """Application joined to its type, current step and creator."""
    return (
        select(*columns)
        .select_from(Application)
        .join(WorkflowType, WorkflowType.id == Application.workflow_type_id)
        .join(_current_step, _current_step.id == Application.current_step_id)
        .join(_step_dept, _step_dept.id == _current_step.department_id)
        .join(_creator, _creator.id == Application.created_by_employee_id)
        .join(_creator_dept, _creator_dept.id == _creator.department_id)
    )


def _acted_on_by(department_id: UUID):
    """EXISTS: the department approved or rejected the application."""
    return (
        select(HistoryEntry.id)
        .where(
            HistoryEntry.application_id == Application.id,
            HistoryEntry.department_id == department_id,
            HistoryEntry.action.in_(_DECISION_VALUES),
        )
        .exists()
    )


class WorkQueueSelector(BaseSelector[Application]):
    """Inbox and outbox reads for one department."""

    def __init__(
        self,
        session,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(session)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def inbox(
        self,
        department_id: UUID,
        filters: QueueFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> QueuePage[InboxSummary]:
        """In-progress applications waiting at ``department_id``."""
        department = self._department(department_id)
        filters = filters or QueueFilters()
        page, page_size = self._paging(page, page_size)

        scope = [
            _current_step.department_id == department_id,
            Application.status == ApplicationStatus.IN_PROGRESS.value,
        ]
        conditions = scope + self._filter_conditions(filters)

        total = self._count(conditions)
        new = self._count(conditions + [~_acted_on_by(department_id)])

        answered: int | None = None
        if is_originating(department.role):
            answered = self._count(
                [
                    WorkflowType.owning_department_id == department_id,
                    Application.status.in_(_TERMINAL_VALUES),
                ]
                + self._filter_conditions(filters, include_status=False)
            )

        items = self._page_items(conditions, page, page_size, department_id)

        logger.debug(
            "inbox_read",
            extra={
                "department_id": str(department_id),
                "page": page,
                "page_size": page_size,
                "total": total,
            },
        )
        return QueuePage(
            items=items,
            page=page,
            page_size=page_size,
            total_items=total,
            summary=InboxSummary(total=total, new=new, answered=answered),
        )

    def outbox(
        self,
        department_id: UUID,
        filters: QueueFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> QueuePage[OutboxSummary]:
        """Applications the department created or decided on."""
        self._department(department_id)
        filters = filters or QueueFilters()
        page, page_size = self._paging(page, page_size)

        scope = [
            (_creator.department_id == department_id) | _acted_on_by(department_id),
        ]
        conditions = scope + self._filter_conditions(filters)

        counts = dict(
            self.session.execute(
                _joined(Application.status, func.count(Application.id))
                .where(*conditions)
                .group_by(Application.status)
            ).all()
        )
        summary = OutboxSummary(
            total=sum(counts.values()),
            approved=counts.get(ApplicationStatus.APPROVED.value, 0),
            rejected=counts.get(ApplicationStatus.REJECTED.value, 0),
            in_progress=counts.get(ApplicationStatus.IN_PROGRESS.value, 0),
        )

        items = self._page_items(conditions, page, page_size, None)

        logger.debug(
            "outbox_read",
            extra={
                "department_id": str(department_id),
                "page": page,
                "page_size": page_size,
                "total": summary.total,
            },
        )
        return QueuePage(
            items=items,
            page=page,
            page_size=page_size,
            total_items=summary.total,
            summary=summary,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _department(self, department_id: UUID) -> Department:
        department = self.session.get(Department, department_id)
        if department is None:
            raise DepartmentNotFoundError(str(department_id))
        return department

    def _paging(self, page: int, page_size: int | None) -> tuple[int, int]:
        if page < 1:
            raise InvalidQueryError("page", page, "pages are numbered from 1")
        if page_size is None:
            page_size = self.default_page_size
        if page_size < 1:
            raise InvalidQueryError("page_size", page_size, "must be at least 1")
        return page, min(page_size, self.max_page_size)

    def _filter_conditions(self, filters: QueueFilters, include_status: bool = True) -> list:
        conditions = []
        search = (filters.search or "").strip()
        if search:
            needle = search.lower()
            conditions.append(
                func.lower(cast(Application.id, String)).contains(needle, autoescape=True)
                | func.lower(WorkflowType.name).contains(needle, autoescape=True)
            )
        if filters.workflow_type_id is not None:
            conditions.append(Application.workflow_type_id == filters.workflow_type_id)
        if include_status:
            status = normalize_status(filters.status)
            if status is not None:
                conditions.append(Application.status == status.value)
        return conditions

    def _count(self, conditions: list) -> int:
        return self.session.execute(
            _joined(func.count(Application.id)).where(*conditions)
        ).scalar_one()

    def _page_items(
        self,
        conditions: list,
        page: int,
        page_size: int,
        inbox_department_id: UUID | None,
    ) -> tuple[QueueItem, ...]:
        rows = self.session.execute(
            _joined(
                Application,
                WorkflowType.name,
                _creator_dept.id,
                _creator_dept.name,
                _step_dept.id,
                _step_dept.name,
            )
            .where(*conditions)
            .order_by(Application.created_at.desc(), Application.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()

        acted: set[UUID] = set()
        if inbox_department_id is not None and rows:
            acted = set(
                self.session.scalars(
                    select(HistoryEntry.application_id).where(
                        HistoryEntry.application_id.in_([r[0].id for r in rows]),
                        HistoryEntry.department_id == inbox_department_id,
                        HistoryEntry.action.in_(_DECISION_VALUES),
                    )
                )
            )

        return tuple(
            QueueItem(
                application_id=app.id,
                workflow_type_id=app.workflow_type_id,
                workflow_type_name=type_name,
                status=ApplicationStatus(app.status),
                created_at=app.created_at,
                sending_department_id=creator_dept_id,
                sending_department_name=creator_dept_name,
                current_department_id=step_dept_id,
                current_department_name=step_dept_name,
                is_new=(app.id not in acted) if inbox_department_id is not None else None,
            )
            for app, type_name, creator_dept_id, creator_dept_name, step_dept_id, step_dept_name in rows
        )
