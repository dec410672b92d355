"""Compute the writes that converge the directory to the desired state.

Phases run in a fixed order because later ones reference names created by
earlier ones:

1. OUs referenced by any record (deduplicated, first spelling wins)
2. groups
3. users, each followed by its missing memberships

Within a phase operations keep the input order. Nothing is ever removed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from ..ad_utils import ou_dn
from ..desired.models import DesiredState
from ..directory.base import DirectoryService
from ..errors import DirectoryOperationError
from .inspector import DirectoryInspector
from .operations import (
    OpKind,
    Operation,
    Outcome,
    Status,
    group_key,
    ou_key,
    user_key,
)

log = logging.getLogger(__name__)


@dataclass
class Plan:
    base_dn: str
    operations: list[Operation] = field(default_factory=list)
    # entities that need no write, reported as exists / member
    unchanged: list[Outcome] = field(default_factory=list)
    # entities whose lookup failed, and planned writes that depend on them
    failed: list[Outcome] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return len(self.operations)


def plan(inspector: DirectoryInspector, desired: DesiredState, base_dn: str) -> Plan:
    """Inspect the directory and list the writes that are missing.

    A lookup that raises DirectoryOperationError marks only that entity as
    failed; writes that depend on it are reported as skipped and the other
    records are planned as usual.
    """
    p = Plan(base_dn=base_dn)
    pending: set[str] = set()
    failed: set[str] = set()

    def emit(op: Operation, after: tuple[str, ...] = ()) -> None:
        blocked = [k for k in after if k in failed]
        if blocked:
            failed.add(op.key)
            log.warning("%s skipped: %s could not be read", op, blocked[0])
            p.failed.append(Outcome.of(op, Status.SKIPPED, f"depends on {blocked[0]}"))
            return
        p.operations.append(replace(op, depends_on=tuple(k for k in after if k in pending)))
        pending.add(op.key)

    def keep(entity: str, name: str, status: Status) -> None:
        p.unchanged.append(Outcome(entity=entity, name=name, status=status))

    def lookup(entity: str, name: str, key: str, read, *args) -> bool | None:
        try:
            return read(*args)
        except DirectoryOperationError as e:
            failed.add(key)
            log.error("Lookup of %s %s failed: %s", entity, name, e)
            p.failed.append(Outcome(entity=entity, name=name, status=Status.FAILED, message=str(e)))
            return None

    # OU phase: only OUs directly under the base DN count, new objects go there
    for name in desired.ou_names():
        found = lookup("ou", name, ou_key(name), inspector.ou_exists, name, base_dn)
        if found:
            keep("ou", name, Status.EXISTS)
        elif found is False:
            emit(Operation(OpKind.CREATE_OU, name, path=base_dn))

    # Group phase
    for g in desired.groups:
        found = lookup("group", g.name, group_key(g.name), inspector.group_exists, g.name)
        if found:
            keep("group", g.name, Status.EXISTS)
        elif found is False:
            emit(
                Operation(OpKind.CREATE_GROUP, g.name, path=ou_dn(g.ou_name, base_dn), group_type=g.type),
                after=(ou_key(g.ou_name),),
            )

    # User-and-membership phase
    for u in desired.users:
        ukey = user_key(u.name)
        found = lookup("user", u.name, ukey, inspector.user_exists, u.name)
        if found:
            keep("user", u.name, Status.EXISTS)
        elif found is False:
            emit(
                Operation(OpKind.CREATE_USER, u.name, path=ou_dn(u.ou_name, base_dn)),
                after=(ou_key(u.ou_name),),
            )

        for group in u.member_of:
            op = Operation(OpKind.ADD_MEMBER, group, member=u.name)
            after = (group_key(group), ukey)
            if any(k in pending or k in failed for k in after):
                # nothing to read: the pair is new or cannot be written
                emit(op, after)
                continue
            member = lookup("membership", op.display_name, op.key, inspector.is_member, group, u.name)
            if member:
                keep("membership", op.display_name, Status.MEMBER)
            elif member is False:
                emit(op, after)

    log.info(
        "Plan: %d write(s), %d entit(ies) already in place, %d not plannable",
        p.writes, len(p.unchanged), len(p.failed),
    )
    return p


class Reconciler:
    """Plans against the session's directory; usable as the executor's batch source.

    ``base_dn`` falls back to the directory's own root when empty. With
    ``dry_run`` the plan is kept but no operation is handed to the executor.
    """

    def __init__(self, desired: DesiredState, base_dn: str = "", dry_run: bool = False) -> None:
        self.desired = desired
        self.base_dn = base_dn
        self.dry_run = dry_run
        self.plan: Plan | None = None

    def __call__(self, directory: DirectoryService) -> list[Operation]:
        base_dn = self.base_dn or directory.root_dn()
        log.info("Reconciling %d group(s), %d user(s) under %s",
                 len(self.desired.groups), len(self.desired.users), base_dn)
        self.plan = plan(DirectoryInspector(directory), self.desired, base_dn)
        for op in self.plan.operations:
            log.debug("planned %s", op)
        if self.dry_run:
            return []
        return list(self.plan.operations)
