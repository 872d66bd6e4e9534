"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller
    (``db.engine.session_scope()``, a request handler, or the test harness)
    owns commit/rollback, which is what makes create/approve/reject one
    atomic unit together with the attachment swap.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Abstract base class for all kernel services."""

    def __init__(self, session: Session):
        self.session = session
