#!/usr/bin/env python3
"""
Print the workflow dashboards from persisted database data.

Connects to the configured database (run seed_data.py --demo first) and
prints global counts, per-department workload and dwell times, the
created-over-time series and, per department, its cohort counts.

Usage:
    python3 scripts/view_reports.py
    python3 scripts/view_reports.py --start 2025-01-01 --end 2025-07-01
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _print_chart(title, chart):
    print(f"  {title}")
    if not chart.labels:
        print("    (no data)")
    width = max((len(label) for label in chart.labels), default=0)
    for label, value in zip(chart.labels, chart.data):
        print(f"    {label:<{width}}  {value}")
    print()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Print workflow reports")
    parser.add_argument("--start", type=date.fromisoformat, default=None)
    parser.add_argument("--end", type=date.fromisoformat, default=None)
    args = parser.parse_args(argv)

    logging.disable(logging.CRITICAL)

    from workflow_config import get_active_settings
    from workflow_kernel.db.engine import init_engine_from_url, session_scope
    from workflow_kernel.exceptions import WorkflowKernelError
    from workflow_kernel.selectors.reference_selector import ReferenceSelector
    from workflow_modules.reporting import ReportingConfig, ReportingService

    settings = get_active_settings()
    try:
        init_engine_from_url(settings.database_url)
    except Exception as exc:
        print(f"  ERROR: Could not connect: {exc}", file=sys.stderr)
        return 1

    config = ReportingConfig.from_dict(dict(settings.reporting))
    try:
        with session_scope() as session:
            svc = ReportingService(session, config=config)
            stats = svc.global_stats(args.start, args.end)
            print()
            print(
                f"  Applications: {stats.total} total, {stats.approved} approved, "
                f"{stats.rejected} rejected, {stats.pending} pending "
                f"({stats.delayed} delayed)"
            )
            print()
            _print_chart("Pending by department", svc.pending_by_department(args.start, args.end))
            _print_chart(
                "Average days held by department",
                svc.average_processing_time_by_department(args.start, args.end),
            )
            _print_chart("Created over time", svc.created_over_time(args.start, args.end))

            for dept in ReferenceSelector(session).list_departments():
                counts = svc.department_status_counts(dept.department_id, args.start, args.end)
                print(
                    f"  {dept.name}: approved {counts.approved}, rejected {counts.rejected}, "
                    f"pending {counts.pending}, delayed {counts.delayed}"
                )
            print()
    except WorkflowKernelError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
