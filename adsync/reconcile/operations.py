from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..desired.models import GroupType


class OpKind(str, Enum):
    CREATE_OU = "CreateOU"
    CREATE_GROUP = "CreateGroup"
    CREATE_USER = "CreateUser"
    ADD_MEMBER = "AddGroupMember"


class Status(str, Enum):
    CREATED = "created"
    ADDED = "added"
    EXISTS = "exists"
    MEMBER = "member"
    PLANNED = "planned"
    FAILED = "failed"
    SKIPPED = "skipped"
    ABORTED = "aborted"


def ou_key(name: str) -> str:
    return f"ou:{name.lower()}"


def group_key(name: str) -> str:
    return f"group:{name.lower()}"


def user_key(name: str) -> str:
    return f"user:{name.lower()}"


def member_key(group: str, user: str) -> str:
    return f"member:{group.lower()}:{user.lower()}"


@dataclass(frozen=True)
class Operation:
    """One directory write.

    ``path`` is the parent DN for CreateOU and the OU DN for CreateGroup and
    CreateUser. For AddGroupMember ``name`` is the group and ``member`` the user.
    ``depends_on`` lists keys of operations in the same batch that must
    succeed first.
    """

    kind: OpKind
    name: str
    path: str = ""
    group_type: GroupType | None = None
    member: str = ""
    depends_on: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        if self.kind is OpKind.CREATE_OU:
            return ou_key(self.name)
        if self.kind is OpKind.CREATE_GROUP:
            return group_key(self.name)
        if self.kind is OpKind.CREATE_USER:
            return user_key(self.name)
        return member_key(self.name, self.member)

    @property
    def entity(self) -> str:
        return {
            OpKind.CREATE_OU: "ou",
            OpKind.CREATE_GROUP: "group",
            OpKind.CREATE_USER: "user",
            OpKind.ADD_MEMBER: "membership",
        }[self.kind]

    @property
    def display_name(self) -> str:
        if self.kind is OpKind.ADD_MEMBER:
            return f"{self.member} -> {self.name}"
        return self.name

    def __str__(self) -> str:
        if self.kind is OpKind.ADD_MEMBER:
            return f"{self.kind.value}({self.name}, {self.member})"
        return f"{self.kind.value}({self.name})"


@dataclass(frozen=True)
class Outcome:
    entity: str  # ou | group | user | membership
    name: str
    status: Status
    message: str = ""
    operation: Operation | None = None

    @classmethod
    def of(cls, op: Operation, status: Status, message: str = "") -> "Outcome":
        return cls(entity=op.entity, name=op.display_name, status=status, message=message, operation=op)

    @property
    def ok(self) -> bool:
        return self.status not in (Status.FAILED, Status.SKIPPED, Status.ABORTED)
