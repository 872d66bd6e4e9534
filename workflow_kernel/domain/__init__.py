"""Pure domain layer: value objects, lifecycle rules, step chain, timeline."""

from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.collaborators import (
    AttachmentStore,
    AttachmentUpload,
    IdentityRegistry,
    StudentIdentity,
    StudentRecord,
)
from workflow_kernel.domain.department_role import DepartmentRole, is_originating
from workflow_kernel.domain.step_chain import StepChain
from workflow_kernel.domain.workflow import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ApplicationDetails,
    ApplicationRecord,
    ApplicationStatus,
    HistoryAction,
    HistoryRecord,
    StepInfo,
    StepProgress,
    StudentApplicationSummary,
    TimelineHop,
    TransitionResult,
    normalize_status,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AttachmentStore",
    "AttachmentUpload",
    "IdentityRegistry",
    "StudentIdentity",
    "StudentRecord",
    "DepartmentRole",
    "is_originating",
    "StepChain",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "ApplicationDetails",
    "ApplicationRecord",
    "ApplicationStatus",
    "HistoryAction",
    "HistoryRecord",
    "StepInfo",
    "StepProgress",
    "StudentApplicationSummary",
    "TimelineHop",
    "TransitionResult",
    "normalize_status",
]
