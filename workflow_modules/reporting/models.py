"""
Reporting Domain Models (``workflow_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects returned by ``ReportingService``: chart
series, global and per-department counts, and the reporting window.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by the
functions in ``aggregations.py``; no dependency on the database.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``ChartData.labels`` and ``ChartData.data`` always have equal length.
* ``ReportWindow`` is half-open: ``start_date <= d < end_date``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


class Granularity(str, Enum):
    """Time-series bucket size."""

    DAY = "day"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class ReportWindow:
    """A reporting range over calendar dates (UTC)."""

    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.end_date, time.min, tzinfo=timezone.utc)

    def contains(self, moment: datetime) -> bool:
        return self.start_at <= moment < self.end_at


@dataclass(frozen=True)
class ChartData(Generic[T]):
    """Labels with one value each, ready for a chart."""

    labels: tuple[str, ...] = ()
    data: tuple[T, ...] = ()

    def __post_init__(self):
        if len(self.labels) != len(self.data):
            raise ValueError("labels and data must have the same length")

    def as_dict(self) -> dict[str, T]:
        return dict(zip(self.labels, self.data))


@dataclass(frozen=True)
class GlobalStats:
    total: int
    approved: int
    rejected: int
    pending: int
    delayed: int


@dataclass(frozen=True)
class CreatedCohortStats:
    """Applications of types the department owns."""

    total: int = 0
    in_progress: int = 0
    delayed: int = 0
    approved_by_others: int = 0
    rejected_by_others: int = 0


@dataclass(frozen=True)
class ReceivedCohortStats:
    """Applications of other departments' types that reached this department."""

    in_progress: int = 0
    delayed: int = 0
    approved_by_department: int = 0
    rejected_by_department: int = 0

    @property
    def total(self) -> int:
        return self.in_progress + self.approved_by_department + self.rejected_by_department


@dataclass(frozen=True)
class DepartmentStats:
    department_id: UUID
    created_by_department: CreatedCohortStats
    received_from_others: ReceivedCohortStats

    @property
    def total(self) -> int:
        created = self.created_by_department
        return (
            created.in_progress
            + created.approved_by_others
            + created.rejected_by_others
            + self.received_from_others.total
        )


@dataclass(frozen=True)
class DepartmentStatusCounts:
    approved: int
    rejected: int
    pending: int
    delayed: int


@dataclass(frozen=True)
class TimeAnalysis:
    """Received-versus-processed series for one department."""

    labels: tuple[str, ...]
    received: tuple[int, ...]
    processed: tuple[int, ...]
