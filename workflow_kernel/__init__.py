"""
Workflow Kernel

A department-routed application workflow with:
- Linear, per-type approval chains
- Atomic create/approve/reject transitions
- Append-only transition history
- Read-only work-queue and timeline projections
"""

__version__ = "0.1.0"
