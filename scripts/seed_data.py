#!/usr/bin/env python3
"""
Seed the database with the reference catalog and, optionally, demo data.

Creates tables, upserts departments and workflow types from the active
settings (idempotent), and with ``--demo`` adds one employee per
department and walks a few applications through their chains.

Usage:
    python3 scripts/seed_data.py
    python3 scripts/seed_data.py --demo
    python3 scripts/seed_data.py --config path/to/settings.yaml --reset
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--config", help="settings YAML (default: WORKFLOW_CONFIG or bundled)")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    parser.add_argument("--demo", action="store_true", help="add employees and demo applications")
    return parser.parse_args(argv)


def _ensure_employees(session, departments):
    """One demo employee per department, keyed by e-mail."""
    from sqlalchemy import select

    from workflow_kernel.models.department import Employee

    employees = {}
    for dept in departments:
        email = f"{dept.code}@staff.example.edu"
        row = session.scalars(select(Employee).where(Employee.email == email)).one_or_none()
        if row is None:
            row = Employee(
                full_name=f"{dept.name} Officer",
                email=email,
                department_id=dept.department_id,
            )
            session.add(row)
            session.flush()
        employees[dept.department_id] = row.id
    return employees


def _run_demo(session, settings):
    from workflow_kernel.domain.clock import DeterministicClock
    from workflow_kernel.domain.collaborators import StudentIdentity
    from workflow_kernel.exceptions import DuplicateActiveApplicationError
    from workflow_kernel.selectors.reference_selector import ReferenceSelector
    from workflow_kernel.selectors.step_selector import StepChainSelector
    from workflow_kernel.services.identity_registry import SqlIdentityRegistry
    from workflow_kernel.services.local_attachment_store import LocalAttachmentStore
    from workflow_kernel.services.workflow_service import WorkflowService

    reference = ReferenceSelector(session)
    employees = _ensure_employees(session, reference.list_departments())
    clock = DeterministicClock(datetime(2025, 3, 2, 9, 0, 0, tzinfo=timezone.utc))
    service = WorkflowService(
        session,
        identity=SqlIdentityRegistry(session, settings.student_email_domain),
        attachments=LocalAttachmentStore(settings.attachment_root),
        clock=clock,
    )
    chains = StepChainSelector(session)

    created = 0
    for i, wt in enumerate(reference.list_workflow_types()):
        chain = chains.load(wt.workflow_type_id)
        if len(chain) < 2:
            continue
        creator_dept = chain.initial_step().department_id
        student = StudentIdentity(external_id=f"DEMO-{i + 1:04d}", full_name=f"Demo Student {i + 1}")
        try:
            result = service.create_application(
                wt.workflow_type_id, student, employees[creator_dept], notes=f"Demo {wt.name}",
            )
        except DuplicateActiveApplicationError:
            continue
        created += 1

        # Walk half of the chain; reject every third application.
        app = result.application
        for hop in range(max(1, (len(chain) - 1) // 2)):
            clock.advance(days=2, hours=3)
            dept = chain.get(app.current_step_id).department_id
            if i % 3 == 2 and hop == 0:
                app = service.reject(app.application_id, employees[dept], dept, notes="Missing documents").application
                break
            app = service.approve(app.application_id, employees[dept], dept).application
            if app.is_terminal:
                break
        clock.advance(hours=5)
    return created


def main(argv=None) -> int:
    args = _parse_args(argv)

    from workflow_config import get_active_settings
    from workflow_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        session_scope,
    )
    from workflow_kernel.logging_config import configure_logging
    from workflow_kernel.services.reference_data_loader import ReferenceDataSeeder

    settings = get_active_settings(args.config)
    configure_logging(level=getattr(logging, settings.log_level, logging.INFO))

    # -----------------------------------------------------------------
    # 1. Connect + schema
    # -----------------------------------------------------------------
    print()
    print(f"  [1/3] Connecting to {settings.database_url} ...")
    try:
        init_engine_from_url(settings.database_url)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    if args.reset:
        print("        Dropping existing tables...")
        drop_tables()
    create_tables()

    # -----------------------------------------------------------------
    # 2. Reference data
    # -----------------------------------------------------------------
    print("  [2/3] Seeding reference catalog...")
    with session_scope() as session:
        report = ReferenceDataSeeder(session).seed(settings.catalog)
    print(
        f"        departments +{report.departments_created} ~{report.departments_updated}, "
        f"workflow types +{report.workflow_types_created} ~{report.workflow_types_updated}"
    )
    for code in report.chains_skipped:
        print(f"        chain of {code!r} left unchanged: applications exist")

    # -----------------------------------------------------------------
    # 3. Demo data
    # -----------------------------------------------------------------
    if args.demo:
        print("  [3/3] Creating demo applications...")
        with session_scope() as session:
            created = _run_demo(session, settings)
        print(f"        {created} application(s) created")
    else:
        print("  [3/3] Skipping demo data (pass --demo to add it)")

    print()
    print("  Done.")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
