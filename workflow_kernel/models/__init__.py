"""ORM models for the workflow kernel."""

from workflow_kernel.models.application import Application, HistoryEntry
from workflow_kernel.models.department import Department, Employee, Student
from workflow_kernel.models.workflow_type import (
    RequiredDocument,
    WorkflowStep,
    WorkflowType,
)

__all__ = [
    "Application",
    "HistoryEntry",
    "Department",
    "Employee",
    "Student",
    "RequiredDocument",
    "WorkflowStep",
    "WorkflowType",
]
