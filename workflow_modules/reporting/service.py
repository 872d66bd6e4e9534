"""
Reporting Module Service (``workflow_modules.reporting.service``).

Responsibility
--------------
Orchestrates report generation -- global and per-department counts, dwell
times, time series, rejection reasons -- by bridging the kernel selectors
(``HistorySelector``, ``ReferenceSelector``, ``StepChainSelector``) to the
pure functions in ``aggregations.py``.  This is a **read-only** service.

Architecture position
---------------------
**Modules layer**.  Constructor: ``session`` + ``clock`` + ``config``.

Invariants enforced
-------------------
* Read-only -- no writes to applications or history.
* Every figure is replayed from history; nothing is cached between calls.
* A report is returned whole or not at all.

Failure modes
-------------
* ``end_date <= start_date``  -> ``InvalidQueryError`` before any query.
* Unknown department  -> ``DepartmentNotFoundError`` before any query.
* Anything failing while loading or aggregating  ->
  ``AggregationFailedError`` with the original exception chained.

Windows
-------
Dates bound application creation as ``[start_date, end_date)``.  Counting
reports without dates cover every application; time-series reports without
dates cover the trailing ``default_window_months`` up to and including
today.  ``department_time_analysis`` windows on action dates instead.
"""

from __future__ import annotations

import calendar
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.exceptions import AggregationFailedError, InvalidQueryError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.selectors.history_selector import (
    ApplicationSnapshot,
    HistorySelector,
)
from workflow_kernel.selectors.reference_selector import ReferenceSelector
from workflow_kernel.selectors.step_selector import StepChainSelector
from workflow_modules.reporting import aggregations
from workflow_modules.reporting.aggregations import STATUS_CHART_FIELDS, Label
from workflow_modules.reporting.config import ReportingConfig
from workflow_modules.reporting.models import (
    ChartData,
    DepartmentStats,
    DepartmentStatusCounts,
    GlobalStats,
    ReportWindow,
    TimeAnalysis,
)

logger = get_logger("modules.reporting.service")

R = TypeVar("R")


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _months_before(day: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the end of a shorter month."""
    year, month = divmod(day.year * 12 + day.month - 1 - months, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class ReportingService:
    """
    Workflow reporting service.

    Contract
    --------
    * Every public method returns a frozen DTO from ``models.py``.
    * All methods are **read-only**.

    Guarantees
    ----------
    * Aggregation logic lives in ``aggregations.py``; this class only loads
      data and validates parameters.
    * Clock is injectable for deterministic testing; "now" for delay and
      dwell calculations is read once per report.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._history = HistorySelector(session)
        self._reference = ReferenceSelector(session)
        self._chains = StepChainSelector(session)

        logger.info(
            "reporting_service_initialized",
            extra={
                "delayed_threshold_days": self._config.delayed_threshold_days,
                "month_label_locale": self._config.month_label_locale,
            },
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @staticmethod
    def _check_range(start_date: date | None, end_date: date | None) -> None:
        if start_date is not None and end_date is not None and end_date <= start_date:
            raise InvalidQueryError(
                "end_date", end_date.isoformat(), "must be after start_date",
            )

    def _default_window(
        self, start_date: date | None, end_date: date | None,
    ) -> ReportWindow:
        self._check_range(start_date, end_date)
        if end_date is None:
            end_date = self._clock.today() + timedelta(days=1)
        if start_date is None:
            start_date = _months_before(end_date, self._config.default_window_months)
        if end_date <= start_date:
            raise InvalidQueryError(
                "start_date", start_date.isoformat(), "must be before end_date",
            )
        return ReportWindow(start_date, end_date)

    def _snapshots(
        self, start_date: date | None, end_date: date | None,
    ) -> list[ApplicationSnapshot]:
        return self._history.snapshots(
            created_from=_midnight(start_date) if start_date is not None else None,
            created_before=_midnight(end_date) if end_date is not None else None,
        )

    def _departments(self) -> list[Label]:
        return [Label(d.department_id, d.name) for d in self._reference.list_departments()]

    def _types_involving(self, department_id: UUID) -> list[Label]:
        """Workflow types whose chain has a step at the department."""
        chains = self._chains.load_all()
        return [
            Label(t.workflow_type_id, t.name)
            for t in self._reference.list_workflow_types()
            if department_id in chains[t.workflow_type_id].department_ids()
        ]

    def _generate(self, report: str, build: Callable[[], R], **params) -> R:
        """Run ``build``; any failure aborts the whole report."""
        try:
            result = build()
        except Exception as exc:
            logger.error(
                "report_failed",
                extra={"report": report, "error": str(exc), **params},
            )
            raise AggregationFailedError(report, str(exc)) from exc
        logger.info("report_generated", extra={"report": report, **params})
        return result

    @staticmethod
    def _params(start_date: date | None, end_date: date | None, **more) -> dict:
        params = {
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
        }
        params.update({k: str(v) for k, v in more.items()})
        return params

    # =========================================================================
    # Global reports
    # =========================================================================

    def global_stats(
        self, start_date: date | None = None, end_date: date | None = None,
    ) -> GlobalStats:
        """Total, approved, rejected, pending and delayed counts."""
        self._check_range(start_date, end_date)
        now = self._clock.now()
        return self._generate(
            "global_stats",
            lambda: aggregations.compute_global_stats(
                self._snapshots(start_date, end_date), now, self._config,
            ),
            **self._params(start_date, end_date),
        )

    def pending_by_department(
        self, start_date: date | None = None, end_date: date | None = None,
    ) -> ChartData[int]:
        """Current pending workload per department; every department listed."""
        self._check_range(start_date, end_date)
        return self._generate(
            "pending_by_department",
            lambda: aggregations.pending_by_department(
                self._snapshots(start_date, end_date), self._departments(),
            ),
            **self._params(start_date, end_date),
        )

    def created_over_time(
        self, start_date: date | None = None, end_date: date | None = None,
    ) -> ChartData[int]:
        """Applications created per day, month or year; dense over the window."""
        window = self._default_window(start_date, end_date)
        return self._generate(
            "created_over_time",
            lambda: aggregations.dense_series(
                (s.created_at for s in self._snapshots(window.start_date, window.end_date)),
                window,
                self._config,
            ),
            **self._params(window.start_date, window.end_date),
        )

    def department_status_chart(
        self,
        status: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ChartData[int]:
        """
        One count per department for ``status``.

        Args:
            status: ``approved``, ``rejected``, ``pending`` or ``delayed``.
                Approved and rejected add both cohorts; pending and delayed
                count the department's inbox only.
        """
        key = (status or "").strip().lower()
        if key not in STATUS_CHART_FIELDS:
            raise InvalidQueryError(
                "status", status, f"must be one of {', '.join(STATUS_CHART_FIELDS)}",
            )
        self._check_range(start_date, end_date)
        now = self._clock.now()
        return self._generate(
            "department_status_chart",
            lambda: aggregations.department_status_chart(
                self._snapshots(start_date, end_date),
                self._departments(),
                key,
                now,
                self._config,
            ),
            **self._params(start_date, end_date, status=key),
        )

    def average_processing_time_by_department(
        self, start_date: date | None = None, end_date: date | None = None,
    ) -> ChartData[float]:
        """Average dwell time in days per department; 0.0 where no data."""
        self._check_range(start_date, end_date)
        now = self._clock.now()
        return self._generate(
            "average_processing_time_by_department",
            lambda: aggregations.average_dwell_by_department(
                self._snapshots(start_date, end_date),
                self._departments(),
                now,
                self._config,
            ),
            **self._params(start_date, end_date),
        )

    # =========================================================================
    # Department reports
    # =========================================================================

    def department_stats(
        self,
        department_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> DepartmentStats:
        """Created-by-department and received-from-others cohorts."""
        self._check_range(start_date, end_date)
        self._reference.get_department(department_id)
        now = self._clock.now()
        return self._generate(
            "department_stats",
            lambda: aggregations.compute_department_stats(
                self._snapshots(start_date, end_date), department_id, now, self._config,
            ),
            **self._params(start_date, end_date, department_id=department_id),
        )

    def department_status_counts(
        self,
        department_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> DepartmentStatusCounts:
        """``department_stats`` flattened to approved/rejected/pending/delayed."""
        stats = self.department_stats(department_id, start_date, end_date)
        return aggregations.flatten_department_stats(stats)

    def request_count_by_type(
        self,
        department_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ChartData[int]:
        """Items pending at the department per workflow type.

        Every type whose chain includes the department is listed.
        """
        self._check_range(start_date, end_date)
        self._reference.get_department(department_id)
        return self._generate(
            "request_count_by_type",
            lambda: aggregations.request_count_by_type(
                self._snapshots(start_date, end_date),
                department_id,
                self._types_involving(department_id),
            ),
            **self._params(start_date, end_date, department_id=department_id),
        )

    def average_processing_time_by_type(
        self,
        department_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ChartData[float]:
        """Average days the department took to act, per workflow type."""
        self._check_range(start_date, end_date)
        self._reference.get_department(department_id)
        return self._generate(
            "average_processing_time_by_type",
            lambda: aggregations.average_processing_time_by_type(
                self._snapshots(start_date, end_date),
                department_id,
                self._types_involving(department_id),
                self._config,
            ),
            **self._params(start_date, end_date, department_id=department_id),
        )

    def department_time_analysis(
        self,
        department_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> TimeAnalysis:
        """Received-versus-processed series, windowed on action dates."""
        window = self._default_window(start_date, end_date)
        self._reference.get_department(department_id)
        return self._generate(
            "department_time_analysis",
            lambda: aggregations.time_analysis(
                self._snapshots(None, None), department_id, window, self._config,
            ),
            **self._params(window.start_date, window.end_date, department_id=department_id),
        )

    def rejection_reasons(
        self,
        department_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ChartData[int]:
        """Histogram of the department's rejection notes."""
        self._check_range(start_date, end_date)
        self._reference.get_department(department_id)
        return self._generate(
            "rejection_reasons",
            lambda: aggregations.rejection_histogram(
                self._snapshots(start_date, end_date), department_id,
            ),
            **self._params(start_date, end_date, department_id=department_id),
        )
