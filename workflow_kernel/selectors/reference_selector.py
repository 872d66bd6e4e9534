"""
ReferenceSelector -- read-only lookups for reference entities.

Departments, employees, students and workflow types are maintained outside
the workflow engine; the engine and the work queues only read them by id.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from workflow_kernel.domain.collaborators import StudentRecord
from workflow_kernel.domain.department_role import DepartmentRole
from workflow_kernel.exceptions import (
    DepartmentNotFoundError,
    EmployeeNotFoundError,
    StudentNotFoundError,
    WorkflowTypeNotFoundError,
)
from workflow_kernel.models.department import Department, Employee, Student
from workflow_kernel.models.workflow_type import WorkflowType
from workflow_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class DepartmentInfo:
    department_id: UUID
    code: str
    name: str
    role: DepartmentRole


@dataclass(frozen=True)
class EmployeeInfo:
    employee_id: UUID
    full_name: str
    email: str
    department_id: UUID


@dataclass(frozen=True)
class WorkflowTypeInfo:
    workflow_type_id: UUID
    code: str
    name: str
    description: str
    owning_department_id: UUID
    required_documents: tuple[str, ...]


def _department_info(row: Department) -> DepartmentInfo:
    return DepartmentInfo(
        department_id=row.id,
        code=row.code,
        name=row.name,
        role=DepartmentRole(row.role),
    )


class ReferenceSelector(BaseSelector[Department]):
    """Lookups by id for departments, employees, students and types."""

    def get_department(self, department_id: UUID) -> DepartmentInfo:
        row = self.session.get(Department, department_id)
        if row is None:
            raise DepartmentNotFoundError(str(department_id))
        return _department_info(row)

    def list_departments(self) -> list[DepartmentInfo]:
        rows = self.session.scalars(select(Department).order_by(Department.name))
        return [_department_info(row) for row in rows]

    def get_employee(self, employee_id: UUID) -> EmployeeInfo:
        row = self.session.get(Employee, employee_id)
        if row is None:
            raise EmployeeNotFoundError(str(employee_id))
        return EmployeeInfo(
            employee_id=row.id,
            full_name=row.full_name,
            email=row.email,
            department_id=row.department_id,
        )

    def get_student(self, student_id: UUID) -> StudentRecord:
        row = self.session.get(Student, student_id)
        if row is None:
            raise StudentNotFoundError(str(student_id))
        return row.to_dto()

    def get_workflow_type(self, workflow_type_id: UUID) -> WorkflowTypeInfo:
        row = self.session.get(WorkflowType, workflow_type_id)
        if row is None:
            raise WorkflowTypeNotFoundError(str(workflow_type_id))
        return WorkflowTypeInfo(
            workflow_type_id=row.id,
            code=row.code,
            name=row.name,
            description=row.description,
            owning_department_id=row.owning_department_id,
            required_documents=tuple(doc.label for doc in row.documents),
        )

    def list_workflow_types(self) -> list[WorkflowTypeInfo]:
        ids = self.session.scalars(select(WorkflowType.id).order_by(WorkflowType.name))
        return [self.get_workflow_type(tid) for tid in ids]
