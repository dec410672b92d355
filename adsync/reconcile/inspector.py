from __future__ import annotations

import logging

from ..directory.base import DirectoryService

log = logging.getLogger(__name__)


class DirectoryInspector:
    """Read side of one reconciliation pass.

    Each entity is looked up at most once per pass. Names compare
    case-insensitively, as they do in AD.
    """

    def __init__(self, directory: DirectoryService) -> None:
        self.directory = directory
        self._ous: dict[tuple[str, str], bool] = {}
        self._groups: dict[str, bool] = {}
        self._users: dict[str, bool] = {}
        self._members: dict[str, frozenset[str]] = {}

    def ou_exists(self, name: str, parent_dn: str = "") -> bool:
        k = (name.lower(), parent_dn.lower())
        if k not in self._ous:
            self._ous[k] = bool(self.directory.ou_exists(name, parent_dn))
            log.debug("OU %s: %s", name, "exists" if self._ous[k] else "absent")
        return self._ous[k]

    def group_exists(self, name: str) -> bool:
        k = name.lower()
        if k not in self._groups:
            self._groups[k] = bool(self.directory.group_exists(name))
            log.debug("group %s: %s", name, "exists" if self._groups[k] else "absent")
        return self._groups[k]

    def user_exists(self, name: str) -> bool:
        k = name.lower()
        if k not in self._users:
            self._users[k] = bool(self.directory.user_exists(name))
            log.debug("user %s: %s", name, "exists" if self._users[k] else "absent")
        return self._users[k]

    def group_members(self, name: str) -> frozenset[str]:
        """Lower-cased member names; empty when the group does not exist."""
        k = name.lower()
        if k not in self._members:
            members = self.directory.get_group_members(name) or set()
            self._members[k] = frozenset(m.lower() for m in members)
            log.debug("group %s: %d member(s)", name, len(self._members[k]))
        return self._members[k]

    def is_member(self, group: str, user: str) -> bool:
        return user.lower() in self.group_members(group)
