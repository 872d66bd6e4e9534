"""
Workflow engine tests.

Scenarios:
- A: create lands on the second step; approvals advance; last approval finishes
- B: approval by the wrong department, or by an employee acting for a
  department they do not belong to, is refused and writes nothing
- C: rejection is terminal; later calls are not actionable
- Idempotence of approve/reject on terminal applications
- Creation guards: duplicate active application, identity mismatch,
  missing workflow
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from workflow_kernel.domain.collaborators import StudentIdentity
from workflow_kernel.domain.workflow import ApplicationStatus, HistoryAction
from workflow_kernel.exceptions import (
    ActorNotInDepartmentError,
    ApplicationNotFoundError,
    DuplicateActiveApplicationError,
    EmployeeNotFoundError,
    IdentityMismatchError,
    NoWorkflowDefinedError,
    NotActionableError,
    StepNotFoundError,
    StudentNotFoundError,
    WorkflowTypeNotFoundError,
    WrongDepartmentError,
)
from workflow_kernel.models.application import Application, HistoryEntry
from workflow_kernel.models.department import Department, Student
from workflow_kernel.models.workflow_type import WorkflowStep
from workflow_kernel.selectors.history_selector import HistorySelector
from workflow_kernel.services.identity_registry import SqlIdentityRegistry
from workflow_kernel.services.workflow_service import WorkflowService


def _history_count(session, application_id):
    return session.scalar(
        select(func.count(HistoryEntry.id)).where(HistoryEntry.application_id == application_id)
    )


def _step_department(session, step_id):
    return session.get(WorkflowStep, step_id).department_id


class _StaleLookupRegistry(SqlIdentityRegistry):
    """Lookup that never sees existing students, as in a lost creation race."""

    def find_student_by_external_id(self, external_id):
        return None


class TestCreateApplication:

    def test_lands_on_step_after_initial(self, session, file_application, standard_chain):
        result = file_application()
        app = result.application

        assert app.status is ApplicationStatus.IN_PROGRESS
        assert _step_department(session, app.current_step_id) == standard_chain.reviewer_id
        assert result.previous_status is None
        assert result.history_entry.sequence == 1
        assert result.history_entry.action is HistoryAction.CREATED
        assert result.history_entry.department_id == standard_chain.origin_id

    def test_registers_unknown_student(self, session, file_application, deterministic_clock):
        identity = StudentIdentity(external_id="ST-1", full_name="Layla Hassan")
        app = file_application(identity).application

        history = HistorySelector(session).history_of(app.application_id)
        assert app.created_at == deterministic_clock.now()
        assert [h.timestamp for h in history] == [app.created_at]

    def test_unknown_type(self, workflow_service, standard_chain, make_student):
        with pytest.raises(WorkflowTypeNotFoundError):
            workflow_service.create_application(
                uuid4(), make_student(), standard_chain.origin_employee_id,
            )

    def test_unknown_creator(self, workflow_service, standard_chain, make_student):
        with pytest.raises(EmployeeNotFoundError):
            workflow_service.create_application(
                standard_chain.workflow_type_id, make_student(), uuid4(),
            )

    def test_type_with_single_step_has_no_workflow(
        self, workflow_service, create_department, create_employee, create_workflow_type, make_student,
    ):
        dept = create_department()
        wt = create_workflow_type(dept, [dept])
        with pytest.raises(NoWorkflowDefinedError):
            workflow_service.create_application(
                wt.id, make_student(), create_employee(dept).id,
            )

    def test_duplicate_active_application_refused(self, file_application, make_student):
        student = make_student()
        first = file_application(student).application

        with pytest.raises(DuplicateActiveApplicationError) as exc_info:
            file_application(student)
        assert exc_info.value.existing_application_id == str(first.application_id)

    def test_rejected_application_does_not_block_a_new_one(
        self, file_application, workflow_service, standard_chain, make_student,
    ):
        student = make_student()
        first = file_application(student).application
        workflow_service.reject(
            first.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id,
        )

        second = file_application(student).application
        assert second.application_id != first.application_id
        assert second.student_id == first.student_id

    def test_identity_mismatch_refused(self, file_application, workflow_service, standard_chain):
        original = StudentIdentity(external_id="ST-9", full_name="Omar Said", email="omar@uni.example")
        first = file_application(original).application
        workflow_service.reject(
            first.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id,
        )

        impostor = StudentIdentity(external_id="ST-9", full_name="Omar Saeed", email="OMAR@uni.example")
        with pytest.raises(IdentityMismatchError) as exc_info:
            file_application(impostor)
        assert exc_info.value.fields == ("full_name",)

    def test_student_registered_concurrently_is_reused(
        self, session, file_application, standard_chain, attachment_store, deterministic_clock, make_student,
    ):
        """The lookup misses a student another creation just registered."""
        student = make_student()
        first = file_application(student).application

        service = WorkflowService(
            session,
            identity=_StaleLookupRegistry(session),
            attachments=attachment_store,
            clock=deterministic_clock,
        )
        with pytest.raises(DuplicateActiveApplicationError) as exc_info:
            service.create_application(
                standard_chain.workflow_type_id, student, standard_chain.origin_employee_id,
            )
        assert exc_info.value.existing_application_id == str(first.application_id)
        # The outer transaction survives the failed insert.
        assert session.scalar(
            select(func.count(Student.id)).where(Student.external_id == student.external_id)
        ) == 1

    def test_creation_logs_event(self, file_application, captured_logs):
        app = file_application().application
        logs = captured_logs()
        created = [r for r in logs if r["message"] == "application_created"]
        assert len(created) == 1
        assert created[0]["application_id"] == str(app.application_id)


class TestScenarioA:
    """Create, approve at each remaining step, finish approved."""

    def test_walks_the_chain(self, session, file_application, workflow_service, standard_chain, deterministic_clock):
        app = file_application().application

        deterministic_clock.advance(days=1)
        result = workflow_service.approve(
            app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id,
        )
        assert result.application.status is ApplicationStatus.IN_PROGRESS
        assert _step_department(session, result.application.current_step_id) == standard_chain.council_id
        assert result.previous_step_id == app.current_step_id

        deterministic_clock.advance(days=1)
        result = workflow_service.approve(
            app.application_id, standard_chain.council_employee_id, standard_chain.council_id,
        )
        assert result.application.status is ApplicationStatus.APPROVED
        assert result.previous_status is ApplicationStatus.IN_PROGRESS

        history = HistorySelector(session).history_of(app.application_id)
        assert [h.sequence for h in history] == [1, 2, 3]
        assert [h.action for h in history] == [
            HistoryAction.CREATED, HistoryAction.APPROVED, HistoryAction.APPROVED,
        ]
        timestamps = [h.timestamp for h in history]
        assert timestamps == sorted(timestamps)

    def test_current_step_stays_within_type(self, session, file_application, workflow_service, standard_chain):
        app = file_application().application
        workflow_service.approve(
            app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id,
        )
        row = session.get(Application, app.application_id)
        assert session.get(WorkflowStep, row.current_step_id).workflow_type_id == row.workflow_type_id

    def test_step_from_another_type_refused(
        self, session, file_application, workflow_service, standard_chain, create_workflow_type,
    ):
        app = file_application().application
        reviewer = session.get(Department, standard_chain.reviewer_id)
        other = create_workflow_type(reviewer, [reviewer, reviewer])

        row = session.get(Application, app.application_id)
        row.current_step_id = other.steps[1].id
        session.flush()

        with pytest.raises(StepNotFoundError):
            workflow_service.approve(
                app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id,
            )
        assert _history_count(session, app.application_id) == 1


class TestScenarioB:
    """Wrong department."""

    def test_refused_without_writes(self, session, file_application, workflow_service, standard_chain, captured_logs):
        app = file_application().application

        with pytest.raises(WrongDepartmentError) as exc_info:
            workflow_service.approve(
                app.application_id, standard_chain.council_employee_id, standard_chain.council_id,
            )
        assert exc_info.value.expected_department_id == str(standard_chain.reviewer_id)

        row = session.get(Application, app.application_id)
        assert row.status == ApplicationStatus.IN_PROGRESS.value
        assert row.current_step_id == app.current_step_id
        assert _history_count(session, app.application_id) == 1
        assert any(
            r["message"] == "transition_refused" and r["reason"] == "wrong_department"
            for r in captured_logs()
        )

    @pytest.mark.parametrize("action", ["approve", "reject"])
    def test_actor_must_belong_to_acting_department(
        self, session, file_application, workflow_service, standard_chain, captured_logs, action,
    ):
        """A committee employee cannot act for the reviewer department."""
        app = file_application().application

        with pytest.raises(ActorNotInDepartmentError) as exc_info:
            getattr(workflow_service, action)(
                app.application_id, standard_chain.outsider_employee_id, standard_chain.reviewer_id,
            )
        assert exc_info.value.code == "ACTOR_NOT_IN_DEPARTMENT"
        assert exc_info.value.employee_department_id == str(standard_chain.outsider_id)
        assert isinstance(exc_info.value, WrongDepartmentError)

        row = session.get(Application, app.application_id)
        assert row.status == ApplicationStatus.IN_PROGRESS.value
        assert row.current_step_id == app.current_step_id
        assert _history_count(session, app.application_id) == 1
        assert any(
            r["message"] == "transition_refused" and r["reason"] == "actor_not_in_department"
            for r in captured_logs()
        )


class TestScenarioC:
    """Rejection is terminal."""

    def test_reject_then_nothing_is_actionable(self, session, file_application, workflow_service, standard_chain):
        app = file_application().application
        result = workflow_service.reject(
            app.application_id,
            standard_chain.reviewer_employee_id,
            standard_chain.reviewer_id,
            notes="  Incomplete transcript ",
        )
        assert result.application.status is ApplicationStatus.REJECTED
        assert result.history_entry.notes == "Incomplete transcript"
        assert result.application.current_step_id == app.current_step_id

        for call in (workflow_service.approve, workflow_service.reject):
            with pytest.raises(NotActionableError) as exc_info:
                call(app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id)
            assert exc_info.value.status == "rejected"
            assert exc_info.value.last_action == "rejected"
        assert _history_count(session, app.application_id) == 2


class TestIdempotence:

    def test_second_approve_on_approved_application(self, session, file_application, workflow_service, standard_chain):
        app = file_application().application
        workflow_service.approve(app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id)
        workflow_service.approve(app.application_id, standard_chain.council_employee_id, standard_chain.council_id)
        before = _history_count(session, app.application_id)

        with pytest.raises(NotActionableError):
            workflow_service.approve(app.application_id, standard_chain.council_employee_id, standard_chain.council_id)
        assert _history_count(session, app.application_id) == before

    def test_unknown_application(self, workflow_service, standard_chain):
        with pytest.raises(ApplicationNotFoundError):
            workflow_service.approve(uuid4(), standard_chain.reviewer_employee_id, standard_chain.reviewer_id)

    def test_unknown_actor(self, file_application, workflow_service, standard_chain):
        app = file_application().application
        with pytest.raises(EmployeeNotFoundError):
            workflow_service.approve(app.application_id, uuid4(), standard_chain.reviewer_id)


class TestClockSkew:

    def test_history_timestamps_never_go_backwards(
        self, session, file_application, workflow_service, standard_chain, deterministic_clock,
    ):
        app = file_application().application
        deterministic_clock.advance(hours=-3)
        result = workflow_service.approve(
            app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id,
        )
        assert result.history_entry.timestamp == app.created_at


class TestTimelineAndStudentViews:

    def test_timeline_round_trip(self, file_application, workflow_service, standard_chain, deterministic_clock):
        app = file_application().application
        deterministic_clock.advance(days=3)
        workflow_service.approve(app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id)
        deterministic_clock.advance(days=2)
        workflow_service.reject(app.application_id, standard_chain.council_employee_id, standard_chain.council_id)

        details = workflow_service.get_timeline(app.application_id)

        assert len(details.hops) == 3
        assert details.hops[0].entered_at == app.created_at
        for prev, hop in zip(details.hops, details.hops[1:]):
            assert hop.entered_at == prev.left_at
        assert details.hops[1].duration == timedelta(days=3)
        assert details.hops[2].held_by_department_id == standard_chain.reviewer_id
        assert details.workflow_type_name == "Enrollment"
        assert details.required_documents == ("Transcript", "Passport copy")
        assert [s.completed for s in details.steps] == [True, True, True]

    def test_timeline_unknown_application(self, workflow_service):
        with pytest.raises(ApplicationNotFoundError):
            workflow_service.get_timeline(uuid4())

    def test_student_applications_progress(
        self, session, file_application, workflow_service, standard_chain, make_student, deterministic_clock,
    ):
        student = make_student()
        first = file_application(student).application
        workflow_service.reject(first.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id)
        deterministic_clock.advance(days=1)
        second = file_application(student).application

        summaries = workflow_service.list_student_applications(second.student_id)

        assert [s.application_id for s in summaries] == [second.application_id, first.application_id]
        assert summaries[0].progress == pytest.approx(1 / 3)
        assert summaries[0].current_department_id == standard_chain.reviewer_id
        assert summaries[1].status is ApplicationStatus.REJECTED

    def test_student_applications_unknown_student(self, workflow_service):
        with pytest.raises(StudentNotFoundError):
            workflow_service.list_student_applications(uuid4())
