"""
Department roles.

Departments are tagged with a role instead of being recognized by name.
The role answers one question for the work queues: does this department
originate applications (and therefore track how its own requests were
answered)?
"""

from enum import Enum


class DepartmentRole(str, Enum):
    """What a department does in the approval chains."""

    ACADEMIC_DEPARTMENT = "academic_department"
    SCIENTIFIC_AFFAIRS = "scientific_affairs"
    GRADUATE_STUDIES = "graduate_studies"
    COMMITTEE = "committee"
    COUNCIL = "council"


ORIGINATING_ROLES: dict[DepartmentRole, bool] = {
    DepartmentRole.ACADEMIC_DEPARTMENT: True,
    DepartmentRole.SCIENTIFIC_AFFAIRS: True,
    DepartmentRole.GRADUATE_STUDIES: True,
    DepartmentRole.COMMITTEE: False,
    DepartmentRole.COUNCIL: False,
}


def is_originating(role: DepartmentRole | str) -> bool:
    """True when departments with this role create applications."""
    return ORIGINATING_ROLES[DepartmentRole(role)]
