"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, batch jobs, tests) must be able to tell a refused
transition from a missing record from a storage outage without parsing
message strings.  Every error therefore:
  1. Has its own class (catch by type, not message)
  2. Carries a class-level CODE attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not just a message string)

Example:
    try:
        service.approve(application_id, actor_id, department_id, notes)
    except WrongDepartmentError as e:
        return {"error": e.code, "expected": str(e.expected_department_id)}
    except NotActionableError as e:
        return {"error": e.code, "status": e.status}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- NotFoundError
    |   +-- ApplicationNotFoundError
    |   +-- WorkflowTypeNotFoundError
    |   +-- StepNotFoundError
    |   +-- DepartmentNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- StudentNotFoundError
    |
    +-- WorkflowDefinitionError
    |   +-- NoWorkflowDefinedError
    |   +-- InvalidStepChainError
    |
    +-- TransitionError
    |   +-- WrongDepartmentError
    |   |   +-- ActorNotInDepartmentError
    |   +-- NotActionableError
    |
    +-- ApplicationCreationError
    |   +-- DuplicateActiveApplicationError
    |   +-- IdentityMismatchError
    |
    +-- StorageError
    |   +-- StorageFailureError
    |
    +-- QueryError
    |   +-- InvalidQueryError
    |
    +-- ReportingError
    |   +-- AggregationFailedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentTransitionError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|----------------------------------------
Not found       | APPLICATION_NOT_FOUND         | Application ID doesn't exist
                | WORKFLOW_TYPE_NOT_FOUND       | Workflow type ID doesn't exist
                | STEP_NOT_FOUND                | Step referenced by an application is gone
                | DEPARTMENT_NOT_FOUND          | Department ID doesn't exist
                | EMPLOYEE_NOT_FOUND            | Employee ID doesn't exist
                | STUDENT_NOT_FOUND             | Student ID doesn't exist
----------------|-------------------------------|----------------------------------------
Definition      | NO_WORKFLOW_DEFINED           | Type has no usable step chain
                | INVALID_STEP_CHAIN            | Duplicate orders / foreign steps
----------------|-------------------------------|----------------------------------------
Transition      | WRONG_DEPARTMENT              | Actor isn't the current step's department
                | ACTOR_NOT_IN_DEPARTMENT       | Actor is not employed by the claimed department
                | NOT_ACTIONABLE                | Application terminal or just rejected
----------------|-------------------------------|----------------------------------------
Creation        | DUPLICATE_ACTIVE_APPLICATION  | Student already holds a live application
                | IDENTITY_MISMATCH             | Presented identity != stored identity
----------------|-------------------------------|----------------------------------------
Storage         | STORAGE_FAILURE               | Attachment I/O failed
----------------|-------------------------------|----------------------------------------
Query           | INVALID_QUERY                 | Bad page, page size, status or range
----------------|-------------------------------|----------------------------------------
Reporting       | AGGREGATION_FAILED            | Any failure inside a report aggregation
----------------|-------------------------------|----------------------------------------
Concurrency     | CONCURRENT_TRANSITION         | Another transaction moved the application
----------------|-------------------------------|----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Modifying history or a terminal application

===============================================================================
"""


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(WorkflowKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ApplicationNotFoundError(NotFoundError):
    """Application with given ID was not found."""

    code: str = "APPLICATION_NOT_FOUND"

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"Application not found: {application_id}")


class WorkflowTypeNotFoundError(NotFoundError):
    """Workflow type with given ID was not found."""

    code: str = "WORKFLOW_TYPE_NOT_FOUND"

    def __init__(self, workflow_type_id: str):
        self.workflow_type_id = workflow_type_id
        super().__init__(f"Workflow type not found: {workflow_type_id}")


class StepNotFoundError(NotFoundError):
    """Step referenced by an application does not belong to its chain."""

    code: str = "STEP_NOT_FOUND"

    def __init__(self, step_id: str, workflow_type_id: str):
        self.step_id = step_id
        self.workflow_type_id = workflow_type_id
        super().__init__(
            f"Step {step_id} is not part of workflow type {workflow_type_id}"
        )


class DepartmentNotFoundError(NotFoundError):
    """Department with given ID was not found."""

    code: str = "DEPARTMENT_NOT_FOUND"

    def __init__(self, department_id: str):
        self.department_id = department_id
        super().__init__(f"Department not found: {department_id}")


class EmployeeNotFoundError(NotFoundError):
    """Employee with given ID was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class StudentNotFoundError(NotFoundError):
    """Student with given ID was not found."""

    code: str = "STUDENT_NOT_FOUND"

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(f"Student not found: {student_id}")


# Workflow definition exceptions


class WorkflowDefinitionError(WorkflowKernelError):
    """Base exception for unusable workflow-type definitions."""

    code: str = "WORKFLOW_DEFINITION_ERROR"


class NoWorkflowDefinedError(WorkflowDefinitionError):
    """
    Workflow type has no usable step chain.

    Raised when the type has no steps at all, or when it has no step after
    the initial one (an application would have nowhere to go).
    """

    code: str = "NO_WORKFLOW_DEFINED"

    def __init__(self, workflow_type_id: str, reason: str = "no steps defined"):
        self.workflow_type_id = workflow_type_id
        self.reason = reason
        super().__init__(
            f"No workflow defined for type {workflow_type_id}: {reason}"
        )


class InvalidStepChainError(WorkflowDefinitionError):
    """Step list violates the chain invariants (unique orders, one type)."""

    code: str = "INVALID_STEP_CHAIN"

    def __init__(self, workflow_type_id: str, reason: str):
        self.workflow_type_id = workflow_type_id
        self.reason = reason
        super().__init__(f"Invalid step chain for type {workflow_type_id}: {reason}")


# Transition exceptions


class TransitionError(WorkflowKernelError):
    """Base exception for refused approve/reject calls."""

    code: str = "TRANSITION_ERROR"


class WrongDepartmentError(TransitionError):
    """Acting department does not own the application's current step."""

    code: str = "WRONG_DEPARTMENT"

    def __init__(
        self,
        application_id: str,
        acting_department_id: str,
        expected_department_id: str,
    ):
        self.application_id = application_id
        self.acting_department_id = acting_department_id
        self.expected_department_id = expected_department_id
        super().__init__(
            f"Department {acting_department_id} cannot act on application "
            f"{application_id}: current step belongs to {expected_department_id}"
        )


class ActorNotInDepartmentError(WrongDepartmentError):
    """Acting employee does not work in the department they act for."""

    code: str = "ACTOR_NOT_IN_DEPARTMENT"

    def __init__(
        self,
        application_id: str,
        employee_id: str,
        acting_department_id: str,
        employee_department_id: str,
    ):
        self.application_id = application_id
        self.employee_id = employee_id
        self.acting_department_id = acting_department_id
        self.expected_department_id = employee_department_id
        self.employee_department_id = employee_department_id
        TransitionError.__init__(
            self,
            f"Employee {employee_id} belongs to department {employee_department_id} "
            f"and cannot act for {acting_department_id} on application {application_id}",
        )


class NotActionableError(TransitionError):
    """
    Application can no longer be approved or rejected.

    Either its status is terminal, or its most recent history entry is a
    rejection.
    """

    code: str = "NOT_ACTIONABLE"

    def __init__(self, application_id: str, status: str, last_action: str | None):
        self.application_id = application_id
        self.status = status
        self.last_action = last_action
        super().__init__(
            f"Application {application_id} is not actionable "
            f"(status={status}, last_action={last_action})"
        )


# Creation exceptions


class ApplicationCreationError(WorkflowKernelError):
    """Base exception for refused application creation."""

    code: str = "APPLICATION_CREATION_ERROR"


class DuplicateActiveApplicationError(ApplicationCreationError):
    """Student already holds a live application."""

    code: str = "DUPLICATE_ACTIVE_APPLICATION"

    def __init__(self, student_id: str, existing_application_id: str, status: str):
        self.student_id = student_id
        self.existing_application_id = existing_application_id
        self.status = status
        super().__init__(
            f"Student {student_id} already holds application "
            f"{existing_application_id} ({status})"
        )


class IdentityMismatchError(ApplicationCreationError):
    """Identity presented at creation differs from the stored identity."""

    code: str = "IDENTITY_MISMATCH"

    def __init__(self, external_id: str, fields: tuple[str, ...]):
        self.external_id = external_id
        self.fields = fields
        super().__init__(
            f"Identity mismatch for student {external_id} on: {', '.join(fields)}"
        )


# Storage exceptions


class StorageError(WorkflowKernelError):
    """Base exception for attachment storage errors."""

    code: str = "STORAGE_ERROR"


class StorageFailureError(StorageError):
    """Attachment could not be written or removed."""

    code: str = "STORAGE_FAILURE"

    def __init__(self, operation: str, path: str, reason: str):
        self.operation = operation
        self.path = path
        self.reason = reason
        super().__init__(f"Attachment {operation} failed for {path}: {reason}")


# Query exceptions


class QueryError(WorkflowKernelError):
    """Base exception for invalid read requests."""

    code: str = "QUERY_ERROR"


class InvalidQueryError(QueryError):
    """Pagination, filter or date-range parameters are invalid."""

    code: str = "INVALID_QUERY"

    def __init__(self, parameter: str, value: object, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {parameter}={value!r}: {reason}")


# Reporting exceptions


class ReportingError(WorkflowKernelError):
    """Base exception for reporting errors."""

    code: str = "REPORTING_ERROR"


class AggregationFailedError(ReportingError):
    """A report aggregation failed; no partial result is returned."""

    code: str = "AGGREGATION_FAILED"

    def __init__(self, report: str, reason: str):
        self.report = report
        self.reason = reason
        super().__init__(f"Aggregation '{report}' failed: {reason}")


# Concurrency exceptions


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentTransitionError(ConcurrencyError):
    """Another transaction recorded a transition on the same application."""

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(
            f"Application {application_id} was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(WorkflowKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    History entries are append-only; terminal applications are frozen;
    applications are never physically deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
