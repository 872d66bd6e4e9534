"""
SqlIdentityRegistry -- default IdentityRegistry over the ``students`` table.

Deployments with an external identity provider inject their own
implementation; this one keeps students in the workflow database and is
what the seeder, the tests and local runs use.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workflow_kernel.domain.collaborators import StudentIdentity, StudentRecord
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.department import Student
from workflow_kernel.services.base import BaseService

logger = get_logger("services.identity")

DEFAULT_EMAIL_DOMAIN = "students.example.edu"


class SqlIdentityRegistry(BaseService[Student]):
    """Finds and provisions students in the caller's session."""

    def __init__(self, session: Session, email_domain: str = DEFAULT_EMAIL_DOMAIN):
        super().__init__(session)
        self.email_domain = email_domain

    def find_student_by_external_id(self, external_id: str) -> StudentRecord | None:
        row = self.session.scalars(
            select(Student).where(Student.external_id == external_id)
        ).one_or_none()
        return row.to_dto() if row is not None else None

    def register_student(self, identity: StudentIdentity) -> StudentRecord:
        """Insert a student; returns the existing row if one with the same
        external id was committed concurrently."""
        email = (identity.email or "").strip() or f"{identity.external_id}@{self.email_domain}"
        # Savepoint so a lost insert race does not roll back the caller's work
        savepoint = self.session.begin_nested()
        try:
            row = Student(
                external_id=identity.external_id,
                full_name=identity.full_name,
                email=email,
            )
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "concurrent_student_registration",
                extra={"external_id": identity.external_id},
            )
            row = self.session.scalars(
                select(Student)
                .where(Student.external_id == identity.external_id)
                .execution_options(populate_existing=True)
            ).one()
            return row.to_dto()

        logger.info(
            "student_registered",
            extra={"student_id": str(row.id), "external_id": identity.external_id},
        )
        return row.to_dto()
