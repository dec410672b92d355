from __future__ import annotations

import abc

from ..desired.models import GroupType


class DirectoryService(abc.ABC):
    """Operations the reconciler needs from the target directory.

    Names are sAMAccountName for users and groups and the ``ou`` value for
    OUs. Lookups treat "not found" as a normal answer (False / empty set).
    Every method may raise ConnectivityError or DirectoryOperationError.
    """

    @abc.abstractmethod
    def root_dn(self) -> str:
        """Distinguished name of the domain root."""

    @abc.abstractmethod
    def ou_exists(self, name: str, parent_dn: str = "") -> bool:
        """Whether an OU called name exists; only directly under parent_dn when given."""

    @abc.abstractmethod
    def create_ou(self, name: str, parent_dn: str) -> str:
        """Create an OU under parent_dn and return its DN."""

    @abc.abstractmethod
    def group_exists(self, name: str) -> bool: ...

    @abc.abstractmethod
    def create_group(self, name: str, ou_path: str, group_type: GroupType) -> str: ...

    @abc.abstractmethod
    def user_exists(self, name: str) -> bool: ...

    @abc.abstractmethod
    def create_user(self, name: str, ou_path: str) -> str: ...

    @abc.abstractmethod
    def get_group_members(self, name: str) -> set[str]:
        """sAMAccountNames of the direct members; empty set when the group does not exist."""

    @abc.abstractmethod
    def add_group_member(self, group: str, user: str) -> None:
        """Add user to group; a no-op when already a member."""
