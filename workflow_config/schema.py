"""
Workflow settings schema.

The YAML settings file is parsed into these frozen dataclasses by
``workflow_config.loader``.  ``WorkflowSettings`` is the only object the
rest of the system receives; nothing else reads the YAML or the
environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Reference catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DepartmentDef:
    """A department and its role."""

    code: str
    name: str
    role: str


@dataclass(frozen=True)
class WorkflowTypeDef:
    """A workflow type and its linear chain.

    ``steps`` lists department codes in chain order; step orders are
    assigned 1..n.
    """

    code: str
    name: str
    owning_department: str
    steps: tuple[str, ...]
    description: str = ""
    required_documents: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReferenceCatalog:
    departments: tuple[DepartmentDef, ...] = ()
    workflow_types: tuple[WorkflowTypeDef, ...] = ()

    def department(self, code: str) -> DepartmentDef:
        for dept in self.departments:
            if dept.code == code:
                return dept
        raise KeyError(code)


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QueueSettings:
    default_page_size: int = 10
    max_page_size: int = 100

    def __post_init__(self):
        if self.default_page_size < 1:
            raise ValueError("default_page_size must be at least 1")
        if self.max_page_size < self.default_page_size:
            raise ValueError("max_page_size cannot be smaller than default_page_size")


@dataclass(frozen=True)
class WorkflowSettings:
    """Everything the application needs at startup."""

    database_url: str
    attachment_root: str
    student_email_domain: str
    log_level: str = "INFO"
    queues: QueueSettings = field(default_factory=QueueSettings)
    # Raw reporting options, handed to ReportingConfig.from_dict().
    reporting: dict[str, Any] = field(default_factory=dict)
    catalog: ReferenceCatalog = field(default_factory=ReferenceCatalog)
    checksum: str = ""
