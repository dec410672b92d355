"""Desired-state loader.

Public API:
    - load_desired_state(), load_groups(), load_users()
    - DesiredState, GroupRecord, UserRecord, GroupType
"""

from .loader import load_desired_state, load_groups, load_users
from .models import DesiredState, GroupCategory, GroupRecord, GroupScope, GroupType, UserRecord

__all__ = [
    "load_desired_state",
    "load_groups",
    "load_users",
    "DesiredState",
    "GroupCategory",
    "GroupRecord",
    "GroupScope",
    "GroupType",
    "UserRecord",
]
