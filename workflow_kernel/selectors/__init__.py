"""Read-only query selectors."""

from workflow_kernel.selectors.base import BaseSelector
from workflow_kernel.selectors.history_selector import ApplicationSnapshot, HistorySelector
from workflow_kernel.selectors.queue_selector import (
    InboxSummary,
    OutboxSummary,
    QueueFilters,
    QueueItem,
    QueuePage,
    WorkQueueSelector,
)
from workflow_kernel.selectors.reference_selector import ReferenceSelector
from workflow_kernel.selectors.step_selector import StepChainSelector
from workflow_kernel.selectors.timeline_selector import TimelineSelector

__all__ = [
    "BaseSelector",
    "ApplicationSnapshot",
    "HistorySelector",
    "InboxSummary",
    "OutboxSummary",
    "QueueFilters",
    "QueueItem",
    "QueuePage",
    "WorkQueueSelector",
    "ReferenceSelector",
    "StepChainSelector",
    "TimelineSelector",
]
