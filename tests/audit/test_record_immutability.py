"""
Immutability tests for history entries and decided applications.

The listeners are registered once by conftest; every violation surfaces
at flush time as ImmutabilityViolationError.
"""

import pytest

from workflow_kernel.exceptions import ImmutabilityViolationError
from workflow_kernel.models.application import Application, HistoryEntry


class TestHistoryEntryImmutability:

    def test_update_blocked(self, session, file_application):
        result = file_application()
        entry = session.get(HistoryEntry, result.history_entry.entry_id)
        entry.notes = "rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "HistoryEntry"
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"

    def test_delete_blocked(self, session, file_application, captured_logs):
        result = file_application()
        session.delete(session.get(HistoryEntry, result.history_entry.entry_id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        assert any(
            r["message"] == "immutability_violation_blocked" and r["operation"] == "DELETE"
            for r in captured_logs()
        )


class TestApplicationImmutability:

    def test_in_progress_update_allowed(self, session, file_application):
        app = file_application().application
        row = session.get(Application, app.application_id)
        row.notes = "updated while pending"
        session.flush()

    def test_decided_application_frozen(self, session, file_application, workflow_service, standard_chain):
        app = file_application().application
        workflow_service.reject(app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id)

        row = session.get(Application, app.application_id)
        row.status = "in_progress"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_id == str(app.application_id)

    def test_approved_application_frozen(self, session, file_application, workflow_service, standard_chain):
        app = file_application().application
        workflow_service.approve(app.application_id, standard_chain.reviewer_employee_id, standard_chain.reviewer_id)
        workflow_service.approve(app.application_id, standard_chain.council_employee_id, standard_chain.council_id)

        row = session.get(Application, app.application_id)
        row.notes = "edited after approval"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, file_application):
        app = file_application().application
        session.delete(session.get(Application, app.application_id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
