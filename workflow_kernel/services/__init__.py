"""Write-side services.  All of them flush only; callers own the transaction."""

from workflow_kernel.services.attachment_staging import AttachmentStaging
from workflow_kernel.services.identity_registry import SqlIdentityRegistry
from workflow_kernel.services.local_attachment_store import LocalAttachmentStore
from workflow_kernel.services.reference_data_loader import ReferenceDataSeeder, SeedReport
from workflow_kernel.services.workflow_service import WorkflowService

__all__ = [
    "AttachmentStaging",
    "SqlIdentityRegistry",
    "LocalAttachmentStore",
    "ReferenceDataSeeder",
    "SeedReport",
    "WorkflowService",
]
