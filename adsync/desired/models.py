from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GroupCategory(str, Enum):
    SECURITY = "Security"
    DISTRIBUTION = "Distribution"


class GroupScope(str, Enum):
    GLOBAL = "Global"
    DOMAIN_LOCAL = "DomainLocal"
    UNIVERSAL = "Universal"


_CATEGORY_ALIASES = {
    "security": GroupCategory.SECURITY,
    "distribution": GroupCategory.DISTRIBUTION,
}

_SCOPE_ALIASES = {
    "global": GroupScope.GLOBAL,
    "domainlocal": GroupScope.DOMAIN_LOCAL,
    "local": GroupScope.DOMAIN_LOCAL,
    "universal": GroupScope.UNIVERSAL,
}

_TYPE_SPLIT_RE = re.compile(r"[\s/,\-]+")


class GroupType(BaseModel):
    """Group category and scope, as in the AD ``groupType`` attribute."""

    model_config = ConfigDict(frozen=True)

    category: GroupCategory = GroupCategory.SECURITY
    scope: GroupScope = GroupScope.GLOBAL

    @classmethod
    def parse(cls, text: str) -> "GroupType":
        """Parse ``Security``, ``Distribution Universal``, ``security/domainlocal`` etc.

        Raises ValueError on unknown tokens.
        """
        category: GroupCategory | None = None
        scope: GroupScope | None = None
        for token in _TYPE_SPLIT_RE.split((text or "").strip()):
            t = token.lower()
            if not t:
                continue
            if t in _CATEGORY_ALIASES and category is None:
                category = _CATEGORY_ALIASES[t]
            elif t in _SCOPE_ALIASES and scope is None:
                scope = _SCOPE_ALIASES[t]
            else:
                raise ValueError(f"unknown group type '{text}'")
        return cls(
            category=category or GroupCategory.SECURITY,
            scope=scope or GroupScope.GLOBAL,
        )

    @property
    def group_type_bits(self) -> int:
        """Value for the LDAP ``groupType`` attribute (signed 32-bit)."""
        bits = {
            GroupScope.GLOBAL: 0x00000002,
            GroupScope.DOMAIN_LOCAL: 0x00000004,
            GroupScope.UNIVERSAL: 0x00000008,
        }[self.scope]
        if self.category is GroupCategory.SECURITY:
            bits |= 0x80000000
        # AD stores groupType as a signed integer.
        if bits >= 0x80000000:
            bits -= 0x100000000
        return bits

    def __str__(self) -> str:
        return f"{self.category.value} {self.scope.value}"


def _strip(v: str) -> str:
    return (v or "").strip()


class GroupRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=64)
    ou_name: str = Field(min_length=1, max_length=64)
    type: GroupType = Field(default_factory=GroupType)

    @field_validator("name", "ou_name", mode="before")
    @classmethod
    def _strip_names(cls, v: str) -> str:
        return _strip(v)

    @property
    def key(self) -> str:
        return self.name.lower()


class UserRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=20)
    ou_name: str = Field(min_length=1, max_length=64)
    member_of: tuple[str, ...] = ()

    @field_validator("name", "ou_name", mode="before")
    @classmethod
    def _strip_names(cls, v: str) -> str:
        return _strip(v)

    @field_validator("member_of", mode="before")
    @classmethod
    def _split_groups(cls, v):
        """``MemberOf`` may list several groups separated by ``;``."""
        if isinstance(v, str):
            v = v.split(";")
        out: list[str] = []
        seen: set[str] = set()
        for g in v or ():
            name = _strip(g)
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            out.append(name)
        return tuple(out)

    @property
    def key(self) -> str:
        return self.name.lower()


class DesiredState(BaseModel):
    model_config = ConfigDict(frozen=True)

    groups: tuple[GroupRecord, ...] = ()
    users: tuple[UserRecord, ...] = ()

    def ou_names(self) -> list[str]:
        """Distinct OU names in input order, groups first; first spelling wins."""
        seen: set[str] = set()
        out: list[str] = []
        for rec in (*self.groups, *self.users):
            k = rec.ou_name.lower()
            if k in seen:
                continue
            seen.add(k)
            out.append(rec.ou_name)
        return out
