"""
Concurrent transition tests.

Two workers act on the same application at the same step with real
commits.  Exactly one call succeeds; the other is refused and leaves no
history behind.

These tests use ``session_factory`` (one session per thread, data
committed and deleted at teardown) instead of the rollback-isolated
``session`` fixture.
"""

import threading

import pytest
from sqlalchemy import func, select

from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.domain.collaborators import StudentIdentity
from workflow_kernel.domain.department_role import DepartmentRole
from workflow_kernel.exceptions import (
    ConcurrentTransitionError,
    DuplicateActiveApplicationError,
    NotActionableError,
    WrongDepartmentError,
)
from workflow_kernel.models.application import HistoryEntry
from workflow_kernel.models.department import Department, Employee
from workflow_kernel.models.workflow_type import WorkflowStep, WorkflowType
from workflow_kernel.services.workflow_service import WorkflowService

pytestmark = pytest.mark.slow_locks

REFUSALS = (NotActionableError, WrongDepartmentError, ConcurrentTransitionError)


@pytest.fixture
def committed_chain(session_factory):
    """Origin -> reviewer -> council, one employee each, committed."""
    s = session_factory()
    depts = {}
    for code, role in (
        ("race_origin", DepartmentRole.ACADEMIC_DEPARTMENT),
        ("race_reviewer", DepartmentRole.SCIENTIFIC_AFFAIRS),
        ("race_council", DepartmentRole.COUNCIL),
    ):
        depts[code] = Department(code=code, name=code.replace("_", " ").title(), role=role.value)
        s.add(depts[code])
    s.flush()

    employees = {}
    for code, dept in depts.items():
        employees[code] = Employee(
            full_name=f"{dept.name} Officer", email=f"{code}@staff.example.edu", department_id=dept.id,
        )
        s.add(employees[code])

    wt = WorkflowType(
        code="race_type", name="Race Type", description="", owning_department_id=depts["race_origin"].id,
    )
    for order, code in enumerate(("race_origin", "race_reviewer", "race_council"), start=1):
        wt.steps.append(WorkflowStep(department_id=depts[code].id, step_order=order))
    s.add(wt)
    s.flush()

    app = WorkflowService(s, clock=DeterministicClock()).create_application(
        wt.id, StudentIdentity(external_id="RACE-1", full_name="Race Student"), employees["race_origin"].id,
    ).application
    s.commit()
    return {
        "application_id": app.application_id,
        "workflow_type_id": wt.id,
        "departments": {code: d.id for code, d in depts.items()},
        "employees": {code: e.id for code, e in employees.items()},
    }


def _race(session_factory, calls):
    """Run ``calls`` (functions taking a WorkflowService) in parallel threads."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        s = session_factory()
        service = WorkflowService(s, clock=DeterministicClock())
        barrier.wait()
        try:
            call(service)
            s.commit()
            outcomes[index] = "ok"
        except REFUSALS + (DuplicateActiveApplicationError,) as exc:
            s.rollback()
            outcomes[index] = exc
        finally:
            s.close()

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


def _history_count(session_factory, application_id):
    s = session_factory()
    try:
        return s.scalar(
            select(func.count(HistoryEntry.id)).where(HistoryEntry.application_id == application_id)
        )
    finally:
        s.close()


class TestTransitionRace:

    def test_double_reject(self, session_factory, committed_chain):
        app_id = committed_chain["application_id"]
        dept = committed_chain["departments"]["race_reviewer"]
        emp = committed_chain["employees"]["race_reviewer"]

        outcomes = _race(
            session_factory,
            [lambda svc: svc.reject(app_id, emp, dept, notes="first"),
             lambda svc: svc.reject(app_id, emp, dept, notes="second")],
        )

        assert outcomes.count("ok") == 1
        loser = next(o for o in outcomes if o != "ok")
        assert isinstance(loser, (NotActionableError, ConcurrentTransitionError))
        assert _history_count(session_factory, app_id) == 2

    def test_approve_against_reject(self, session_factory, committed_chain):
        app_id = committed_chain["application_id"]
        dept = committed_chain["departments"]["race_reviewer"]
        emp = committed_chain["employees"]["race_reviewer"]

        outcomes = _race(
            session_factory,
            [lambda svc: svc.approve(app_id, emp, dept),
             lambda svc: svc.reject(app_id, emp, dept)],
        )

        assert outcomes.count("ok") == 1
        assert all(o == "ok" or isinstance(o, REFUSALS) for o in outcomes)
        assert _history_count(session_factory, app_id) == 2

    def test_double_create_for_same_student(self, session_factory, committed_chain):
        wt_id = committed_chain["workflow_type_id"]
        emp = committed_chain["employees"]["race_origin"]
        # RACE-1 already holds an active application.
        student = StudentIdentity(external_id="RACE-1", full_name="Race Student")

        outcomes = _race(
            session_factory,
            [lambda svc: svc.create_application(wt_id, student, emp),
             lambda svc: svc.create_application(wt_id, student, emp)],
        )

        assert all(isinstance(o, DuplicateActiveApplicationError) for o in outcomes)
