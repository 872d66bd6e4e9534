"""
Module: workflow_kernel.models.department
Responsibility: ORM persistence for the reference entities the workflow acts
    on: departments, the employees who work in them, and students.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

These rows are owned outside the core (reference-data CRUD is not part of
the workflow engine); the core reads them by id and the seeder upserts them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workflow_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from workflow_kernel.domain.collaborators import StudentRecord


class Department(Base):
    """A department that owns workflow steps.

    ``role`` drives the originating-department lookup used by the inbox.
    """

    __tablename__ = "departments"

    __table_args__ = (
        CheckConstraint(
            "role IN ('academic_department', 'scientific_affairs', "
            "'graduate_studies', 'committee', 'council')",
            name="ck_departments_valid_role",
        ),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)

    employees: Mapped[list["Employee"]] = relationship(
        "Employee", back_populates="department",
    )

    def __repr__(self) -> str:
        return f"<Department {self.code} role={self.role}>"


class Employee(Base):
    """An employee acting on behalf of exactly one department."""

    __tablename__ = "employees"

    __table_args__ = (
        Index("ix_employees_department_id", "department_id"),
    )

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    department_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("departments.id"), nullable=False,
    )

    department: Mapped[Department] = relationship(
        "Department", back_populates="employees",
    )

    def __repr__(self) -> str:
        return f"<Employee {self.email} department={self.department_id}>"


class Student(Base):
    """A student, identified externally by a national/registration id."""

    __tablename__ = "students"

    external_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)

    def __repr__(self) -> str:
        return f"<Student {self.external_id}>"

    def to_dto(self) -> StudentRecord:
        from workflow_kernel.domain.collaborators import StudentRecord

        return StudentRecord(
            student_id=self.id,
            external_id=self.external_id,
            full_name=self.full_name,
            email=self.email,
        )
