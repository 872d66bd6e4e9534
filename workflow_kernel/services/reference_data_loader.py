"""
Reference Data Seeder - idempotent setup of departments and workflow types.

Reference data is installed by an explicit routine called once at process
start (or by ``scripts/seed_data.py``), not by ambient module state.  Running
it twice leaves the database unchanged.

The seeder takes a catalog object exposing ``departments`` (code, name,
role) and ``workflow_types`` (code, name, description, owning_department,
steps, required_documents); ``workflow_config.ReferenceCatalog`` is the
usual source.

Step chains of a workflow type that already has applications are never
rewritten; a differing definition is logged and skipped.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from workflow_kernel.domain.department_role import DepartmentRole
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.application import Application
from workflow_kernel.models.department import Department
from workflow_kernel.models.workflow_type import (
    RequiredDocument,
    WorkflowStep,
    WorkflowType,
)

logger = get_logger("services.reference_data")


@dataclass(frozen=True)
class SeedReport:
    departments_created: int = 0
    departments_updated: int = 0
    workflow_types_created: int = 0
    workflow_types_updated: int = 0
    chains_skipped: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(
            self.departments_created
            or self.departments_updated
            or self.workflow_types_created
            or self.workflow_types_updated
        )


class ReferenceDataSeeder:
    """Upserts the reference catalog into the caller's session."""

    def __init__(self, session: Session):
        self._session = session

    def seed(self, catalog) -> SeedReport:
        dept_created = dept_updated = 0
        departments: dict[str, Department] = {
            d.code: d for d in self._session.scalars(select(Department))
        }
        for spec in catalog.departments:
            role = DepartmentRole(spec.role).value
            row = departments.get(spec.code)
            if row is None:
                row = Department(code=spec.code, name=spec.name, role=role)
                self._session.add(row)
                departments[spec.code] = row
                dept_created += 1
            elif (row.name, row.role) != (spec.name, role):
                row.name = spec.name
                row.role = role
                dept_updated += 1
        self._session.flush()

        types_created = types_updated = 0
        skipped: list[str] = []
        existing = {t.code: t for t in self._session.scalars(select(WorkflowType))}
        for spec in catalog.workflow_types:
            owner = departments[spec.owning_department]
            row = existing.get(spec.code)
            if row is None:
                row = WorkflowType(
                    code=spec.code,
                    name=spec.name,
                    description=spec.description,
                    owning_department_id=owner.id,
                )
                self._session.add(row)
                self._session.flush()
                self._replace_chain(row, spec, departments)
                types_created += 1
                continue

            changed = False
            if (row.name, row.description, row.owning_department_id) != (
                spec.name, spec.description, owner.id,
            ):
                row.name = spec.name
                row.description = spec.description
                row.owning_department_id = owner.id
                changed = True

            wanted_chain = [departments[code].id for code in spec.steps]
            current_chain = [s.department_id for s in row.steps]
            wanted_docs = list(spec.required_documents)
            current_docs = [d.label for d in row.documents]
            if wanted_chain != current_chain or wanted_docs != current_docs:
                if wanted_chain != current_chain and self._has_applications(row):
                    logger.warning(
                        "workflow_chain_change_skipped",
                        extra={"workflow_type": spec.code, "reason": "applications_exist"},
                    )
                    skipped.append(spec.code)
                else:
                    self._replace_chain(row, spec, departments)
                    changed = True
            if changed:
                types_updated += 1

        self._session.flush()
        report = SeedReport(
            departments_created=dept_created,
            departments_updated=dept_updated,
            workflow_types_created=types_created,
            workflow_types_updated=types_updated,
            chains_skipped=tuple(skipped),
        )
        logger.info(
            "reference_data_seeded",
            extra={
                "departments_created": dept_created,
                "departments_updated": dept_updated,
                "workflow_types_created": types_created,
                "workflow_types_updated": types_updated,
                "chains_skipped": len(skipped),
            },
        )
        return report

    def _has_applications(self, row: WorkflowType) -> bool:
        count = self._session.scalar(
            select(func.count(Application.id)).where(Application.workflow_type_id == row.id)
        )
        return bool(count)

    def _replace_chain(self, row: WorkflowType, spec, departments: dict[str, Department]) -> None:
        chain_unchanged = [s.department_id for s in row.steps] == [
            departments[code].id for code in spec.steps
        ]
        if not chain_unchanged:
            row.steps.clear()
        row.documents.clear()
        # Orphans must be deleted before replacements reuse their orders.
        self._session.flush()
        if not chain_unchanged:
            for order, code in enumerate(spec.steps, start=1):
                row.steps.append(
                    WorkflowStep(department_id=departments[code].id, step_order=order)
                )
        for position, label in enumerate(spec.required_documents):
            row.documents.append(RequiredDocument(label=label, position=position))
        self._session.flush()
