"""
Workflow Reporting Module (``workflow_modules.reporting``).

Responsibility
--------------
Read-only module that summarizes applications for dashboards: global
counts, per-department cohort counts, dwell times, created-over-time and
received-versus-processed series, rejection-reason histograms.

Architecture position
---------------------
**Modules layer** -- reads through kernel selectors, aggregates in pure
functions (``aggregations.py``), never writes.

Invariants enforced
-------------------
* Figures are replayed from the append-only history (no stored counters).
* Time series are dense: every bucket in the window is present.

Failure modes
-------------
* Invalid window -> ``InvalidQueryError``.
* Any failure during aggregation -> ``AggregationFailedError``; partial
  charts are never returned.
"""

from workflow_modules.reporting.config import MONTH_NAMES, ReportingConfig
from workflow_modules.reporting.models import (
    ChartData,
    CreatedCohortStats,
    DepartmentStats,
    DepartmentStatusCounts,
    GlobalStats,
    Granularity,
    ReceivedCohortStats,
    ReportWindow,
    TimeAnalysis,
)
from workflow_modules.reporting.service import ReportingService

__all__ = [
    # Service
    "ReportingService",
    # Config
    "ReportingConfig",
    "MONTH_NAMES",
    # Models
    "ChartData",
    "CreatedCohortStats",
    "DepartmentStats",
    "DepartmentStatusCounts",
    "GlobalStats",
    "Granularity",
    "ReceivedCohortStats",
    "ReportWindow",
    "TimeAnalysis",
]
