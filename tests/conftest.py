from __future__ import annotations

import csv
from pathlib import Path

import pytest

from adsync.ad_utils import ou_dn
from adsync.desired.models import GroupType
from adsync.directory.base import DirectoryService
from adsync.errors import DirectoryOperationError

BASE_DN = "DC=corp,DC=example,DC=com"


class FakeDirectory(DirectoryService):
    """In-memory directory with AD-like naming rules.

    Writes are recorded in ``writes`` as ``CreateOU(Sales)`` etc. ``fail_on``
    maps such a string to an exception raised instead of performing it.
    """

    def __init__(self, base_dn: str = BASE_DN) -> None:
        self.base_dn = base_dn
        self.ous: dict[str, str] = {}  # lower name -> dn, OUs directly under base_dn
        self.nested_ous: list[str] = []  # DNs of OUs deeper in the tree
        self.groups: dict[str, dict] = {}  # lower name -> {name, dn, type, members}
        self.users: dict[str, dict] = {}  # lower name -> {name, dn}
        self.writes: list[str] = []
        self.reads = 0
        self.fail_on: dict[str, Exception] = {}

    # test setup helpers

    def seed_ou(self, name: str, parent_dn: str = "") -> str:
        if parent_dn and parent_dn.lower() != self.base_dn.lower():
            dn = ou_dn(name, parent_dn)
            self.nested_ous.append(dn)
            return dn
        dn = ou_dn(name, self.base_dn)
        self.ous[name.lower()] = dn
        return dn

    def seed_group(self, name: str, ou: str, members=()) -> None:
        dn = self.ous.get(ou.lower()) or self.seed_ou(ou)
        self.groups[name.lower()] = {
            "name": name,
            "dn": f"CN={name},{dn}",
            "type": GroupType(),
            "members": {m.lower() for m in members},
        }

    def seed_user(self, name: str, ou: str) -> None:
        dn = self.ous.get(ou.lower()) or self.seed_ou(ou)
        self.users[name.lower()] = {"name": name, "dn": f"CN={name},{dn}"}

    # DirectoryService

    def _write(self, call: str) -> None:
        if call in self.fail_on:
            raise self.fail_on[call]
        self.writes.append(call)

    def _container_exists(self, dn: str) -> bool:
        known = {d.lower() for d in [*self.ous.values(), *self.nested_ous]}
        return dn.lower() == self.base_dn.lower() or dn.lower() in known

    def root_dn(self) -> str:
        return self.base_dn

    def ou_exists(self, name: str, parent_dn: str = "") -> bool:
        self.reads += 1
        if parent_dn:
            return self._container_exists(ou_dn(name, parent_dn))
        prefix = ou_dn(name, "").lower()
        return name.lower() in self.ous or any(d.lower().startswith(prefix) for d in self.nested_ous)

    def create_ou(self, name: str, parent_dn: str) -> str:
        self._write(f"CreateOU({name})")
        if name.lower() in self.ous:
            raise DirectoryOperationError(f"OU {name} already exists")
        if not self._container_exists(parent_dn):
            raise DirectoryOperationError(f"noSuchObject: {parent_dn}")
        dn = ou_dn(name, parent_dn)
        self.ous[name.lower()] = dn
        return dn

    def group_exists(self, name: str) -> bool:
        self.reads += 1
        return name.lower() in self.groups

    def create_group(self, name: str, ou_path: str, group_type: GroupType) -> str:
        self._write(f"CreateGroup({name})")
        if name.lower() in self.groups or name.lower() in self.users:
            raise DirectoryOperationError(f"constraintViolation: {name}")
        if not self._container_exists(ou_path):
            raise DirectoryOperationError(f"noSuchObject: {ou_path}")
        dn = f"CN={name},{ou_path}"
        self.groups[name.lower()] = {"name": name, "dn": dn, "type": group_type, "members": set()}
        return dn

    def user_exists(self, name: str) -> bool:
        self.reads += 1
        return name.lower() in self.users

    def create_user(self, name: str, ou_path: str) -> str:
        self._write(f"CreateUser({name})")
        if name.lower() in self.users or name.lower() in self.groups:
            raise DirectoryOperationError(f"constraintViolation: {name}")
        if not self._container_exists(ou_path):
            raise DirectoryOperationError(f"noSuchObject: {ou_path}")
        dn = f"CN={name},{ou_path}"
        self.users[name.lower()] = {"name": name, "dn": dn}
        return dn

    def get_group_members(self, name: str) -> set[str]:
        self.reads += 1
        g = self.groups.get(name.lower())
        if g is None:
            return set()
        return {self.users[m]["name"] if m in self.users else m for m in g["members"]}

    def add_group_member(self, group: str, user: str) -> None:
        self._write(f"AddGroupMember({group}, {user})")
        g = self.groups.get(group.lower())
        if g is None:
            raise DirectoryOperationError(f"group {group} not found")
        if user.lower() not in self.users:
            raise DirectoryOperationError(f"user {user} not found")
        g["members"].add(user.lower())

    def is_member(self, group: str, user: str) -> bool:
        g = self.groups.get(group.lower())
        return bool(g) and user.lower() in g["members"]


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


def write_csv(path: Path, header: list[str], rows: list[list[str]], bom: bool = False) -> Path:
    with open(path, "w", newline="", encoding="utf-8-sig" if bom else "utf-8") as f:
        w = csv.writer(f)
        w.writerow(header)
        w.writerows(rows)
    return path


@pytest.fixture
def csv_files(tmp_path):
    """Factory: csv_files(groups_rows, users_rows) -> (groups_path, users_path)."""

    def make(groups: list[list[str]], users: list[list[str]]) -> tuple[Path, Path]:
        g = write_csv(tmp_path / "groups.csv", ["GroupName", "OUName", "Type"], groups)
        u = write_csv(tmp_path / "users.csv", ["UserName", "OUName", "MemberOf"], users)
        return g, u

    return make
