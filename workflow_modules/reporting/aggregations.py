"""
Pure reporting aggregation functions.

These functions replay ``ApplicationSnapshot``s (an application with its
ordered history) into counts, averages and time series.  ZERO I/O. ZERO
side effects.  No counters are stored anywhere: every figure is derived
from the append-only history.

Functions in this module follow the workflow_kernel/domain/ purity
convention:
- No database access
- No clock access (``now`` is passed in)
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from workflow_kernel.domain.timeline import build_hops
from workflow_kernel.domain.workflow import (
    DECISION_ACTIONS,
    ApplicationStatus,
    HistoryAction,
)
from workflow_kernel.selectors.history_selector import ApplicationSnapshot
from workflow_modules.reporting.config import ReportingConfig
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

SECONDS_PER_DAY = 86400.0


# =========================================================================
# Bridge type: labelled entities for chart axes
# =========================================================================


@dataclass(frozen=True)
class Label:
    """An id with the name shown on a chart axis."""

    id: UUID
    name: str


# =========================================================================
# Time buckets
# =========================================================================


def choose_granularity(window: ReportWindow, config: ReportingConfig) -> Granularity:
    if window.days <= config.daily_max_days:
        return Granularity.DAY
    if window.days <= config.monthly_max_days:
        return Granularity.MONTH
    return Granularity.YEAR


def bucket_key(moment: datetime | date, granularity: Granularity) -> date:
    """First day of the bucket that contains ``moment``."""
    day = moment.date() if isinstance(moment, datetime) else moment
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.MONTH:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def bucket_keys(window: ReportWindow, granularity: Granularity) -> list[date]:
    """Every bucket overlapping the window, in order."""
    last_day = window.end_date - timedelta(days=1)
    keys: list[date] = []
    current = bucket_key(window.start_date, granularity)
    while current <= last_day:
        keys.append(current)
        if granularity is Granularity.DAY:
            current += timedelta(days=1)
        elif granularity is Granularity.MONTH:
            if current.month == 12:
                current = current.replace(year=current.year + 1, month=1)
            else:
                current = current.replace(month=current.month + 1)
        else:
            current = current.replace(year=current.year + 1)
    return keys


def bucket_label(key: date, granularity: Granularity, config: ReportingConfig) -> str:
    if granularity is Granularity.DAY:
        return key.isoformat()
    if granularity is Granularity.MONTH:
        return f"{config.month_names[key.month - 1]} {key.year}"
    return str(key.year)


def dense_series(
    moments: Iterable[datetime],
    window: ReportWindow,
    config: ReportingConfig,
) -> ChartData[int]:
    """Count ``moments`` per bucket; every bucket is present, zeros included.

    Moments outside the window are ignored.
    """
    granularity = choose_granularity(window, config)
    counts = Counter(
        bucket_key(m, granularity) for m in moments if window.contains(m)
    )
    keys = bucket_keys(window, granularity)
    return ChartData(
        labels=tuple(bucket_label(k, granularity, config) for k in keys),
        data=tuple(counts.get(k, 0) for k in keys),
    )


# =========================================================================
# Status counts
# =========================================================================


def is_delayed(snapshot: ApplicationSnapshot, now: datetime, threshold_days: int) -> bool:
    """Pending and untouched for longer than the threshold."""
    if snapshot.status is not ApplicationStatus.IN_PROGRESS:
        return False
    return snapshot.last_activity_at < now - timedelta(days=threshold_days)


def compute_global_stats(
    snapshots: Sequence[ApplicationSnapshot],
    now: datetime,
    config: ReportingConfig,
) -> GlobalStats:
    by_status = Counter(s.status for s in snapshots)
    return GlobalStats(
        total=len(snapshots),
        approved=by_status[ApplicationStatus.APPROVED],
        rejected=by_status[ApplicationStatus.REJECTED],
        pending=by_status[ApplicationStatus.IN_PROGRESS],
        delayed=sum(
            1 for s in snapshots
            if is_delayed(s, now, config.delayed_threshold_days)
        ),
    )


def _pending_at(snapshot: ApplicationSnapshot, department_id: UUID) -> bool:
    return (
        snapshot.status is ApplicationStatus.IN_PROGRESS
        and snapshot.current_step_department_id == department_id
    )


def compute_department_stats(
    snapshots: Sequence[ApplicationSnapshot],
    department_id: UUID,
    now: datetime,
    config: ReportingConfig,
) -> DepartmentStats:
    """Split a department's applications into its two cohorts.

    Created: applications of types the department owns.
    Received: applications of other departments' types that the department
    approved or rejected at some point, or that sit at its step now.
    The two cohorts are disjoint.
    """
    threshold = config.delayed_threshold_days
    created = [s for s in snapshots if s.type_owner_department_id == department_id]
    received = [
        s for s in snapshots
        if s.type_owner_department_id != department_id
        and (s.decisions_by(department_id) or _pending_at(s, department_id))
    ]

    created_stats = CreatedCohortStats(
        total=len(created),
        in_progress=sum(1 for s in created if s.status is ApplicationStatus.IN_PROGRESS),
        delayed=sum(1 for s in created if is_delayed(s, now, threshold)),
        approved_by_others=sum(1 for s in created if s.status is ApplicationStatus.APPROVED),
        rejected_by_others=sum(1 for s in created if s.status is ApplicationStatus.REJECTED),
    )

    inbox = [s for s in received if _pending_at(s, department_id)]
    received_stats = ReceivedCohortStats(
        in_progress=len(inbox),
        delayed=sum(1 for s in inbox if is_delayed(s, now, threshold)),
        approved_by_department=sum(
            1 for s in received
            if any(h.action is HistoryAction.APPROVED for h in s.decisions_by(department_id))
        ),
        rejected_by_department=sum(
            1 for s in received
            if any(h.action is HistoryAction.REJECTED for h in s.decisions_by(department_id))
        ),
    )
    return DepartmentStats(
        department_id=department_id,
        created_by_department=created_stats,
        received_from_others=received_stats,
    )


def flatten_department_stats(stats: DepartmentStats) -> DepartmentStatusCounts:
    """Approved/rejected sum both cohorts; pending/delayed are the inbox only."""
    created = stats.created_by_department
    received = stats.received_from_others
    return DepartmentStatusCounts(
        approved=created.approved_by_others + received.approved_by_department,
        rejected=created.rejected_by_others + received.rejected_by_department,
        pending=received.in_progress,
        delayed=received.delayed,
    )


STATUS_CHART_FIELDS = ("approved", "rejected", "pending", "delayed")


def department_status_chart(
    snapshots: Sequence[ApplicationSnapshot],
    departments: Sequence[Label],
    status: str,
    now: datetime,
    config: ReportingConfig,
) -> ChartData[int]:
    """One flattened status count per department."""
    if status not in STATUS_CHART_FIELDS:
        raise ValueError(f"unknown status chart field: {status}")
    values = []
    for dept in departments:
        counts = flatten_department_stats(
            compute_department_stats(snapshots, dept.id, now, config)
        )
        values.append(getattr(counts, status))
    return ChartData(labels=tuple(d.name for d in departments), data=tuple(values))


def pending_by_department(
    snapshots: Sequence[ApplicationSnapshot],
    departments: Sequence[Label],
) -> ChartData[int]:
    """Current pending workload per department; every department listed."""
    counts = Counter(
        s.current_step_department_id for s in snapshots
        if s.status is ApplicationStatus.IN_PROGRESS
    )
    return ChartData(
        labels=tuple(d.name for d in departments),
        data=tuple(counts.get(d.id, 0) for d in departments),
    )


def request_count_by_type(
    snapshots: Sequence[ApplicationSnapshot],
    department_id: UUID,
    workflow_types: Sequence[Label],
) -> ChartData[int]:
    """Items pending at the department, grouped by workflow type."""
    counts = Counter(
        s.application.workflow_type_id for s in snapshots if _pending_at(s, department_id)
    )
    return ChartData(
        labels=tuple(t.name for t in workflow_types),
        data=tuple(counts.get(t.id, 0) for t in workflow_types),
    )


# =========================================================================
# Durations
# =========================================================================


def _days(delta: timedelta) -> float:
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)


def _averaged(
    durations: dict[UUID, list[float]],
    labels: Sequence[Label],
    places: int,
) -> ChartData[float]:
    data = []
    for label in labels:
        values = durations.get(label.id)
        data.append(round(sum(values) / len(values), places) if values else 0.0)
    return ChartData(labels=tuple(label.name for label in labels), data=tuple(data))


def dwell_times(
    snapshots: Iterable[ApplicationSnapshot],
    now: datetime,
) -> dict[UUID, list[float]]:
    """Days each department held each application, keyed by department.

    Every hop's interval goes to the department holding the application
    during it.  A pending application additionally charges the time since
    its last entry to the department of its current step.
    """
    durations: dict[UUID, list[float]] = defaultdict(list)
    for snapshot in snapshots:
        hops = build_hops(
            snapshot.created_at, snapshot.creator_department_id, snapshot.history,
        )
        for hop in hops:
            durations[hop.held_by_department_id].append(_days(hop.duration))
        if snapshot.status is ApplicationStatus.IN_PROGRESS:
            durations[snapshot.current_step_department_id].append(
                _days(now - snapshot.last_activity_at)
            )
    return durations


def average_dwell_by_department(
    snapshots: Sequence[ApplicationSnapshot],
    departments: Sequence[Label],
    now: datetime,
    config: ReportingConfig,
) -> ChartData[float]:
    return _averaged(dwell_times(snapshots, now), departments, config.rounding_places)


def average_processing_time_by_type(
    snapshots: Sequence[ApplicationSnapshot],
    department_id: UUID,
    workflow_types: Sequence[Label],
    config: ReportingConfig,
) -> ChartData[float]:
    """Average days the department took to act, per workflow type.

    Each approval or rejection by the department is timed from the
    previous entry (or creation).
    """
    durations: dict[UUID, list[float]] = defaultdict(list)
    for snapshot in snapshots:
        hops = build_hops(
            snapshot.created_at, snapshot.creator_department_id, snapshot.history,
        )
        for hop in hops:
            if hop.action in DECISION_ACTIONS and hop.acted_by_department_id == department_id:
                durations[snapshot.application.workflow_type_id].append(_days(hop.duration))
    return _averaged(durations, workflow_types, config.rounding_places)


# =========================================================================
# Department activity
# =========================================================================


def time_analysis(
    snapshots: Sequence[ApplicationSnapshot],
    department_id: UUID,
    window: ReportWindow,
    config: ReportingConfig,
) -> TimeAnalysis:
    """Received-versus-processed series for a department.

    Processed: the department's approvals and rejections on other
    departments' types, dated by the action.  Received: the arrival of each
    processed item (previous entry or creation) plus every item pending at
    the department now, dated by its last activity.  Both series are dense
    over the window.
    """
    processed: list[datetime] = []
    received: list[datetime] = []
    for snapshot in snapshots:
        if snapshot.type_owner_department_id != department_id:
            hops = build_hops(
                snapshot.created_at, snapshot.creator_department_id, snapshot.history,
            )
            for hop in hops:
                if (
                    hop.action in DECISION_ACTIONS
                    and hop.acted_by_department_id == department_id
                    and window.contains(hop.left_at)
                ):
                    processed.append(hop.left_at)
                    received.append(hop.entered_at)
        if _pending_at(snapshot, department_id):
            received.append(snapshot.last_activity_at)

    processed_series = dense_series(processed, window, config)
    received_series = dense_series(received, window, config)
    return TimeAnalysis(
        labels=processed_series.labels,
        received=received_series.data,
        processed=processed_series.data,
    )


def rejection_histogram(
    snapshots: Sequence[ApplicationSnapshot],
    department_id: UUID,
) -> ChartData[int]:
    """Trimmed, non-empty rejection notes written by the department.

    Notes are grouped by exact text; labels keep first-seen order.
    """
    counts: Counter[str] = Counter()
    for snapshot in snapshots:
        if snapshot.status is not ApplicationStatus.REJECTED:
            continue
        for entry in snapshot.decisions_by(department_id):
            note = (entry.notes or "").strip()
            if entry.action is HistoryAction.REJECTED and note:
                counts[note] += 1
    return ChartData(labels=tuple(counts), data=tuple(counts.values()))
