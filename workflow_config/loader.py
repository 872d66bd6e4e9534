"""
Settings loader (``workflow_config.loader``).

Responsibility
--------------
Loads the YAML settings file and parses it into ``workflow_config.schema``
dataclasses, validating the reference catalog on the way.  Runtime callers
go through ``workflow_config.get_active_settings()``.

Invariants enforced
-------------------
* Department and workflow-type codes are unique.
* Every step and every owning department names a declared department.
* Every workflow type has at least one step; every role is a known
  ``DepartmentRole``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Catalog inconsistencies  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from workflow_config.schema import (
    DepartmentDef,
    QueueSettings,
    ReferenceCatalog,
    WorkflowSettings,
    WorkflowTypeDef,
)
from workflow_kernel.domain.department_role import DepartmentRole


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_department(data: dict[str, Any]) -> DepartmentDef:
    role = data["role"]
    try:
        DepartmentRole(role)
    except ValueError:
        raise ValueError(f"Department {data['code']!r} has unknown role {role!r}") from None
    return DepartmentDef(code=data["code"], name=data["name"], role=role)


def parse_workflow_type(data: dict[str, Any]) -> WorkflowTypeDef:
    return WorkflowTypeDef(
        code=data["code"],
        name=data["name"],
        owning_department=data["owning_department"],
        steps=tuple(data.get("steps", ())),
        description=data.get("description", ""),
        required_documents=tuple(data.get("required_documents", ())),
    )


def parse_catalog(data: dict[str, Any]) -> ReferenceCatalog:
    """Parse and cross-check the reference catalog."""
    departments = tuple(parse_department(d) for d in data.get("departments", ()))
    workflow_types = tuple(parse_workflow_type(t) for t in data.get("workflow_types", ()))

    dept_codes = [d.code for d in departments]
    if len(dept_codes) != len(set(dept_codes)):
        raise ValueError("Duplicate department codes in catalog")
    type_codes = [t.code for t in workflow_types]
    if len(type_codes) != len(set(type_codes)):
        raise ValueError("Duplicate workflow type codes in catalog")

    known = set(dept_codes)
    for wt in workflow_types:
        if not wt.steps:
            raise ValueError(f"Workflow type {wt.code!r} defines no steps")
        if wt.owning_department not in known:
            raise ValueError(
                f"Workflow type {wt.code!r} owned by unknown department "
                f"{wt.owning_department!r}"
            )
        for step in wt.steps:
            if step not in known:
                raise ValueError(f"Workflow type {wt.code!r} step names unknown department {step!r}")

    return ReferenceCatalog(departments=departments, workflow_types=workflow_types)


def parse_settings(data: dict[str, Any]) -> WorkflowSettings:
    queues = data.get("queues", {})
    return WorkflowSettings(
        database_url=data["database_url"],
        attachment_root=data["attachment_root"],
        student_email_domain=data["student_email_domain"],
        log_level=str(data.get("log_level", "INFO")).upper(),
        queues=QueueSettings(
            default_page_size=int(queues.get("default_page_size", 10)),
            max_page_size=int(queues.get("max_page_size", 100)),
        ),
        reporting=dict(data.get("reporting", {})),
        catalog=parse_catalog(data.get("catalog", {})),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
