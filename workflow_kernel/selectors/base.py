"""
Module: workflow_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: work queues, timelines,
    step chains and the history snapshots reporting is built from.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/ value types.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      flush() or commit().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction,
      so reads see the caller's own uncommitted writes.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
