"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Every report and every timeline is rebuilt from the application history.
If a history row could be edited, dwell times, inbox "new" flags and
rejection histograms would silently change after the fact.  The same goes
for an application that already reached a terminal status: its outcome is
what the history says it is, and nothing may reopen it.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
We register listeners that intercept them and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                          | Operations blocked
----------------|-----------------------------------------|--------------------
HistoryEntry    | ALWAYS (from creation)                  | UPDATE, DELETE
Application     | After status = approved / rejected      | UPDATE
Application     | ALWAYS                                  | DELETE

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY CHECK "WAS TERMINAL" NOT "IS TERMINAL"?
   The approve/reject call itself sets the terminal status.  We allow the
   in_progress -> approved/rejected change and block anything after it by
   reading the persisted value from SQLAlchemy's attribute history.

2. WHY INLINE IMPORTS?
   Models import from db, db imports from models.  Inline imports defer
   resolution until the listener is registered.

===============================================================================
USAGE
===============================================================================

Called once at startup (and by the test conftest):

    from workflow_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from workflow_kernel.exceptions import ImmutabilityViolationError
from workflow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TERMINAL_STATUS_VALUES = frozenset({"approved", "rejected"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_history_entry_immutability(mapper, connection, target):
    """History entries are append-only."""
    _blocked(
        "HistoryEntry", target.id, "UPDATE",
        "History entries are immutable and cannot be modified",
    )


def _check_history_entry_delete(mapper, connection, target):
    _blocked(
        "HistoryEntry", target.id, "DELETE",
        "History entries cannot be deleted",
    )


def _persisted_status(target) -> str | None:
    """Status as last loaded from the database, before pending changes."""
    status_history = get_history(target, "status")
    if status_history.deleted:
        return status_history.deleted[0]
    if status_history.unchanged:
        return status_history.unchanged[0]
    return None


def _check_application_immutability(mapper, connection, target):
    """
    Prevent updates to applications that already reached a terminal status.

    Logic:
        1. Persisted status is in_progress: allow (this may be the
           transition that makes it terminal).
        2. Persisted status is approved/rejected: block, whatever changes.
    """
    if _persisted_status(target) in _TERMINAL_STATUS_VALUES:
        _blocked(
            "Application", target.id, "UPDATE",
            "Applications are immutable once approved or rejected",
        )


def _check_application_delete(mapper, connection, target):
    _blocked(
        "Application", target.id, "DELETE",
        "Applications are never physically deleted",
    )


def _listeners():
    from workflow_kernel.models.application import Application, HistoryEntry

    return (
        (HistoryEntry, "before_update", _check_history_entry_immutability),
        (HistoryEntry, "before_delete", _check_history_entry_delete),
        (Application, "before_update", _check_application_immutability),
        (Application, "before_delete", _check_application_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left alone.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
