"""
Tests for the application state machine tables, status normalization and
department roles.  NO database required.
"""

import pytest

from workflow_kernel.domain.department_role import (
    ORIGINATING_ROLES,
    DepartmentRole,
    is_originating,
)
from workflow_kernel.domain.workflow import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ApplicationStatus,
    is_valid_transition,
    normalize_status,
)
from workflow_kernel.exceptions import InvalidQueryError


class TestTransitions:

    def test_in_progress_can_move_anywhere(self):
        for target in ApplicationStatus:
            assert is_valid_transition(ApplicationStatus.IN_PROGRESS, target)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
    def test_terminal_states_are_final(self, terminal):
        for target in ApplicationStatus:
            assert not is_valid_transition(terminal, target)

    def test_rejected_does_not_block_new_application(self):
        assert ApplicationStatus.REJECTED not in ACTIVE_STATUSES
        assert ApplicationStatus.APPROVED in ACTIVE_STATUSES


class TestNormalizeStatus:

    @pytest.mark.parametrize("raw", ["InProgress", "in progress", "IN_PROGRESS", "in-progress", "pending"])
    def test_in_progress_spellings(self, raw):
        assert normalize_status(raw) is ApplicationStatus.IN_PROGRESS

    def test_terminal_spellings(self):
        assert normalize_status(" Approved ") is ApplicationStatus.APPROVED
        assert normalize_status("REJECTED") is ApplicationStatus.REJECTED

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_means_no_filter(self, raw):
        assert normalize_status(raw) is None

    def test_enum_passes_through(self):
        assert normalize_status(ApplicationStatus.APPROVED) is ApplicationStatus.APPROVED

    def test_unknown_status_raises(self):
        with pytest.raises(InvalidQueryError) as exc_info:
            normalize_status("archived")
        assert exc_info.value.parameter == "status"
        assert exc_info.value.code == "INVALID_QUERY"


class TestDepartmentRoles:

    def test_every_role_has_an_entry(self):
        assert set(ORIGINATING_ROLES) == set(DepartmentRole)

    def test_originating_roles(self):
        assert is_originating(DepartmentRole.ACADEMIC_DEPARTMENT)
        assert is_originating("scientific_affairs")
        assert is_originating(DepartmentRole.GRADUATE_STUDIES)

    def test_non_originating_roles(self):
        assert not is_originating(DepartmentRole.COMMITTEE)
        assert not is_originating("council")

    def test_unknown_role_raises(self):
        with pytest.raises(ValueError):
            is_originating("library")
