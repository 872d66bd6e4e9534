"""
workflow_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` is the only way components obtain settings.
    It reads the YAML settings file (``WORKFLOW_CONFIG`` or the bundled
    ``sets/default.yaml``), applies environment overrides and returns a
    frozen ``WorkflowSettings``.

Environment overrides:
    WORKFLOW_CONFIG            path of the YAML settings file
    WORKFLOW_DATABASE_URL      database URL (falls back to DATABASE_URL)
    WORKFLOW_ATTACHMENT_ROOT   attachment store root directory
    WORKFLOW_LOG_LEVEL         log level name

Failure modes:
    - FileNotFoundError if the settings file does not exist.
    - ValueError / KeyError on schema or catalog validation failures.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from workflow_config.loader import load_yaml_file, parse_settings
from workflow_config.schema import (
    DepartmentDef,
    QueueSettings,
    ReferenceCatalog,
    WorkflowSettings,
    WorkflowTypeDef,
)

_logger = logging.getLogger("workflow_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> WorkflowSettings:
    """Load settings and apply environment overrides."""
    env = os.environ if environ is None else environ

    source = Path(path or env.get("WORKFLOW_CONFIG") or DEFAULT_SETTINGS_PATH)
    settings = parse_settings(load_yaml_file(source))

    overrides = {}
    database_url = env.get("WORKFLOW_DATABASE_URL") or env.get("DATABASE_URL")
    if database_url:
        overrides["database_url"] = database_url
    if env.get("WORKFLOW_ATTACHMENT_ROOT"):
        overrides["attachment_root"] = env["WORKFLOW_ATTACHMENT_ROOT"]
    if env.get("WORKFLOW_LOG_LEVEL"):
        overrides["log_level"] = env["WORKFLOW_LOG_LEVEL"].upper()
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    _logger.info(
        "settings_loaded",
        extra={
            "source": str(source),
            "checksum": settings.checksum,
            "overrides": sorted(overrides),
            "department_count": len(settings.catalog.departments),
            "workflow_type_count": len(settings.catalog.workflow_types),
        },
    )
    return settings


__all__ = [
    "get_active_settings",
    "DEFAULT_SETTINGS_PATH",
    "DepartmentDef",
    "QueueSettings",
    "ReferenceCatalog",
    "WorkflowSettings",
    "WorkflowTypeDef",
]
