"""
workflow_kernel.services.workflow_service -- Application workflow engine.

Responsibility:
    Owns the application state machine: creation, approval, rejection.
    Enforces the department-match and terminal-state rules, advances the
    application along its workflow type's step chain, and appends exactly
    one history entry per accepted call.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.
    Flushes only; the caller's ``session_scope()`` commits or rolls back,
    so the row update, the history append and the attachment swap succeed
    or fail together.

State machine:
    in_progress(step) --approve, next step exists--> in_progress(next)
    in_progress(step) --approve, last step-------->  approved   (terminal)
    in_progress(step) --reject-------------------->  rejected   (terminal)

Invariants enforced:
    - A new application starts at the step after its type's initial step.
    - While in_progress, current_step_id belongs to the application's type.
    - The acting employee works in the acting department, and that
      department owns the current step.
    - Terminal applications accept no further transition (NotActionable),
      and a refused call writes nothing.
    - History sequence numbers are dense per application and timestamps
      never go backwards.
    - Approve/reject lock the application row (SELECT ... FOR UPDATE)
      before checking preconditions; a racer that still collides on the
      history sequence fails with ConcurrentTransitionError.

Failure modes:
    - ApplicationNotFoundError, WorkflowTypeNotFoundError,
      EmployeeNotFoundError, StudentNotFoundError.
    - NoWorkflowDefinedError if the type has no step after the initial one.
    - WrongDepartmentError, NotActionableError on refused transitions;
      ActorNotInDepartmentError when the actor is not employed by the
      department they act for.
    - DuplicateActiveApplicationError, IdentityMismatchError on creation.
    - StorageFailureError from the attachment store.
    - ConcurrentTransitionError on a lost race.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.collaborators import (
    AttachmentStore,
    AttachmentUpload,
    IdentityRegistry,
    StudentIdentity,
    StudentRecord,
)
from workflow_kernel.domain.workflow import (
    ACTIVE_STATUSES,
    ApplicationDetails,
    ApplicationStatus,
    HistoryAction,
    StudentApplicationSummary,
    TransitionResult,
    is_valid_transition,
)
from workflow_kernel.exceptions import (
    ActorNotInDepartmentError,
    ApplicationNotFoundError,
    ConcurrentTransitionError,
    DuplicateActiveApplicationError,
    EmployeeNotFoundError,
    IdentityMismatchError,
    NotActionableError,
    StorageFailureError,
    StudentNotFoundError,
    WrongDepartmentError,
)
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_kernel.models.application import Application, HistoryEntry
from workflow_kernel.models.department import Employee, Student
from workflow_kernel.models.workflow_type import WorkflowStep
from workflow_kernel.selectors.step_selector import StepChainSelector
from workflow_kernel.selectors.timeline_selector import TimelineSelector
from workflow_kernel.services.attachment_staging import AttachmentStaging
from workflow_kernel.services.base import BaseService
from workflow_kernel.services.identity_registry import SqlIdentityRegistry

logger = get_logger("services.workflow")

CREATED_NOTE = "Application created"


class WorkflowService(BaseService[Application]):
    """Creates, approves and rejects applications."""

    def __init__(
        self,
        session: Session,
        identity: IdentityRegistry | None = None,
        attachments: AttachmentStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session)
        self._identity = identity or SqlIdentityRegistry(session)
        self._attachments = attachments
        self._clock = clock or SystemClock()
        self._steps = StepChainSelector(session)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_application(
        self,
        workflow_type_id: UUID,
        student: StudentIdentity,
        created_by_employee_id: UUID,
        notes: str = "",
        attachment: AttachmentUpload | None = None,
    ) -> TransitionResult:
        """File a new application for ``student``.

        The student is provisioned through the identity registry when
        unknown.  The application is placed at the step following the
        type's initial step and a ``created`` history entry is written in
        the same flush.
        """
        employee = self.session.get(Employee, created_by_employee_id)
        if employee is None:
            raise EmployeeNotFoundError(str(created_by_employee_id))

        chain = self._steps.load(workflow_type_id)
        start = chain.following_initial()

        record = self._resolve_student(student)

        application_id = uuid4()
        with LogContext.bind(
            application_id=application_id,
            actor_id=created_by_employee_id,
            department_id=employee.department_id,
        ):
            now = self._clock.now()
            app = Application(
                id=application_id,
                workflow_type_id=workflow_type_id,
                student_id=record.student_id,
                created_by_employee_id=created_by_employee_id,
                created_at=now,
                status=ApplicationStatus.IN_PROGRESS.value,
                current_step_id=start.step_id,
                notes=notes or "",
            )
            app.attachment_path = self._stage_upload(attachment, application_id)

            entry = HistoryEntry(
                application_id=application_id,
                sequence=1,
                department_id=employee.department_id,
                actor_employee_id=created_by_employee_id,
                action=HistoryAction.CREATED.value,
                timestamp=now,
                notes=CREATED_NOTE,
            )
            self.session.add(app)
            self.session.add(entry)
            self.session.flush()

            logger.info(
                "application_created",
                extra={
                    "workflow_type_id": str(workflow_type_id),
                    "student_id": str(record.student_id),
                    "current_step_id": str(start.step_id),
                    "has_attachment": app.attachment_path is not None,
                },
            )

            return TransitionResult(
                application=app.to_dto(),
                history_entry=entry.to_dto(),
                previous_status=None,
                previous_step_id=None,
            )

    def _resolve_student(self, identity: StudentIdentity) -> StudentRecord:
        existing = self._identity.find_student_by_external_id(identity.external_id)
        if existing is None:
            # A concurrent creation may have registered the student first;
            # the registry then hands back that row and the checks below apply.
            existing = self._identity.register_student(identity)

        mismatched = []
        if identity.full_name.strip() != existing.full_name.strip():
            mismatched.append("full_name")
        if identity.email and identity.email.strip().casefold() != existing.email.casefold():
            mismatched.append("email")

        # Serializes concurrent creations for the same student.
        self.session.execute(
            select(Student.id).where(Student.id == existing.student_id).with_for_update()
        )

        active = self.session.scalars(
            select(Application)
            .where(
                Application.student_id == existing.student_id,
                Application.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(Application.created_at.desc())
            .limit(1)
        ).first()
        if active is not None:
            logger.warning(
                "duplicate_active_application",
                extra={
                    "student_id": str(existing.student_id),
                    "existing_application_id": str(active.id),
                },
            )
            raise DuplicateActiveApplicationError(
                str(existing.student_id), str(active.id), active.status,
            )

        if mismatched:
            logger.warning(
                "identity_mismatch",
                extra={"external_id": identity.external_id, "fields": mismatched},
            )
            raise IdentityMismatchError(identity.external_id, tuple(mismatched))

        return existing

    # ------------------------------------------------------------------
    # Approve / Reject
    # ------------------------------------------------------------------

    def approve(
        self,
        application_id: UUID,
        acting_employee_id: UUID,
        acting_department_id: UUID,
        notes: str = "",
        attachment: AttachmentUpload | None = None,
    ) -> TransitionResult:
        """Approve the current step; advance or finish the application."""
        return self._transition(
            HistoryAction.APPROVED,
            application_id,
            acting_employee_id,
            acting_department_id,
            notes,
            attachment,
        )

    def reject(
        self,
        application_id: UUID,
        acting_employee_id: UUID,
        acting_department_id: UUID,
        notes: str = "",
        attachment: AttachmentUpload | None = None,
    ) -> TransitionResult:
        """Reject the application at its current step (terminal)."""
        return self._transition(
            HistoryAction.REJECTED,
            application_id,
            acting_employee_id,
            acting_department_id,
            notes,
            attachment,
        )

    def _transition(
        self,
        action: HistoryAction,
        application_id: UUID,
        acting_employee_id: UUID,
        acting_department_id: UUID,
        notes: str,
        attachment: AttachmentUpload | None,
    ) -> TransitionResult:
        with LogContext.bind(
            application_id=application_id,
            actor_id=acting_employee_id,
            department_id=acting_department_id,
        ):
            app = self._lock_application(application_id)

            employee = self.session.get(Employee, acting_employee_id)
            if employee is None:
                raise EmployeeNotFoundError(str(acting_employee_id))
            if employee.department_id != acting_department_id:
                self._refused(action, "actor_not_in_department", app)
                raise ActorNotInDepartmentError(
                    str(application_id),
                    str(acting_employee_id),
                    str(acting_department_id),
                    str(employee.department_id),
                )

            current_step = self.session.get(WorkflowStep, app.current_step_id)
            if current_step.department_id != acting_department_id:
                self._refused(action, "wrong_department", app)
                raise WrongDepartmentError(
                    str(application_id),
                    str(acting_department_id),
                    str(current_step.department_id),
                )

            last = self._last_entry(application_id)
            last_action = HistoryAction(last.action) if last is not None else None
            status = ApplicationStatus(app.status)
            if status is not ApplicationStatus.IN_PROGRESS or last_action is HistoryAction.REJECTED:
                self._refused(action, "not_actionable", app)
                raise NotActionableError(
                    str(application_id),
                    status.value,
                    last_action.value if last_action else None,
                )

            chain = self._steps.load(app.workflow_type_id)
            # Raises StepNotFoundError if the current step left the type's chain.
            chain.position_of(current_step.id)

            previous_step_id = app.current_step_id
            if action is HistoryAction.APPROVED:
                nxt = chain.next_step(current_step.step_order)
                if nxt is None:
                    new_status = ApplicationStatus.APPROVED
                else:
                    new_status = ApplicationStatus.IN_PROGRESS
                    app.current_step_id = nxt.step_id
            else:
                new_status = ApplicationStatus.REJECTED

            if not is_valid_transition(status, new_status):
                raise NotActionableError(str(application_id), status.value, action.value)
            app.status = new_status.value

            new_path = self._stage_upload(attachment, app.id)
            if new_path is not None:
                self._staging().stage_delete(app.attachment_path)
                app.attachment_path = new_path

            entry = HistoryEntry(
                application_id=app.id,
                sequence=(last.sequence if last is not None else 0) + 1,
                department_id=acting_department_id,
                actor_employee_id=acting_employee_id,
                action=action.value,
                timestamp=self._monotonic_now(last.timestamp if last is not None else app.created_at),
                notes=(notes or "").strip(),
            )
            self.session.add(entry)
            try:
                self.session.flush()
            except IntegrityError as exc:
                logger.warning(
                    "concurrent_transition_detected",
                    extra={"action": action.value},
                )
                raise ConcurrentTransitionError(str(application_id)) from exc

            logger.info(
                f"application_{action.value}",
                extra={
                    "previous_status": status.value,
                    "new_status": new_status.value,
                    "previous_step_id": str(previous_step_id),
                    "current_step_id": str(app.current_step_id),
                    "sequence": entry.sequence,
                    "attachment_replaced": new_path is not None,
                },
            )

            return TransitionResult(
                application=app.to_dto(),
                history_entry=entry.to_dto(),
                previous_status=status,
                previous_step_id=previous_step_id,
            )

    def _lock_application(self, application_id: UUID) -> Application:
        app = self.session.scalars(
            select(Application)
            .where(Application.id == application_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()
        if app is None:
            raise ApplicationNotFoundError(str(application_id))
        return app

    def _last_entry(self, application_id: UUID) -> HistoryEntry | None:
        return self.session.scalars(
            select(HistoryEntry)
            .where(HistoryEntry.application_id == application_id)
            .order_by(HistoryEntry.sequence.desc())
            .limit(1)
        ).first()

    def _monotonic_now(self, floor: datetime) -> datetime:
        now = self._clock.now()
        return now if now >= floor else floor

    def _refused(self, action: HistoryAction, reason: str, app: Application) -> None:
        logger.warning(
            "transition_refused",
            extra={
                "action": action.value,
                "reason": reason,
                "status": app.status,
                "current_step_id": str(app.current_step_id),
            },
        )

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def _staging(self) -> AttachmentStaging:
        if self._attachments is None:
            raise StorageFailureError("save", "", "no attachment store configured")
        return AttachmentStaging.for_session(self.session, self._attachments)

    def _stage_upload(self, upload: AttachmentUpload | None, application_id: UUID) -> str | None:
        if upload is None or not upload.content:
            return None
        return self._staging().stage_new(upload, application_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_timeline(self, application_id: UUID) -> ApplicationDetails:
        """Hops and step progress of one application."""
        return TimelineSelector(self.session).get_details(application_id)

    def list_student_applications(self, student_id: UUID) -> list[StudentApplicationSummary]:
        """A student's applications, newest first, with chain progress.

        Progress is the fraction of the chain before the current step;
        approved applications report 1.0.
        """
        if self.session.get(Student, student_id) is None:
            raise StudentNotFoundError(str(student_id))

        apps = self.session.scalars(
            select(Application)
            .where(Application.student_id == student_id)
            .order_by(Application.created_at.desc(), Application.id.desc())
        ).all()

        chains = {}
        result = []
        for app in apps:
            chain = chains.get(app.workflow_type_id)
            if chain is None:
                chain = chains[app.workflow_type_id] = self._steps.load(app.workflow_type_id)
            status = ApplicationStatus(app.status)
            if status is ApplicationStatus.APPROVED:
                progress = 1.0
            else:
                progress = chain.progress_of(app.current_step_id)
            result.append(
                StudentApplicationSummary(
                    application_id=app.id,
                    workflow_type_id=app.workflow_type_id,
                    workflow_type_name=app.workflow_type.name,
                    status=status,
                    created_at=app.created_at,
                    current_department_id=chain.get(app.current_step_id).department_id,
                    progress=progress,
                )
            )
        return result
