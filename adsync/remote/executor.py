from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Sequence, Union

from ..directory.base import DirectoryService
from ..directory.ldap import LdapDirectory, ldap_session
from ..directory.powershell import PowerShellDirectory
from ..env_settings import EnvSettings, get_env
from ..errors import ConnectivityError, DirectoryOperationError, InvalidParametersError
from ..reconcile.operations import OpKind, Operation, Outcome, Status
from .credentials import Credential, bind_principal
from .session import WinRMShell
from .targets import resolve_target

log = logging.getLogger(__name__)

Batch = Union[Sequence[Operation], Callable[[DirectoryService], Sequence[Operation]]]


@contextmanager
def open_session(
    target: str,
    credential: Credential | None = None,
    settings: EnvSettings | None = None,
) -> Iterator[DirectoryService]:
    """One session to the domain controller ``target``, released on exit."""
    s = settings or get_env()
    host = resolve_target(target, s.domain, s.dns_server)
    if not host:
        raise ConnectivityError("empty domain controller address")

    if s.backend == "ldap":
        if credential is None:
            raise InvalidParametersError("the ldap backend needs a username and password")
        principal = bind_principal(credential.username, s.domain)
        with ldap_session(host, principal, credential.password, s) as conn:
            yield LdapDirectory(conn, base_dn=s.base_dn, domain=s.domain)
        return

    with WinRMShell(host, credential, s) as shell:
        yield PowerShellDirectory(shell)


def _apply(directory: DirectoryService, op: Operation) -> None:
    if op.kind is OpKind.CREATE_OU:
        directory.create_ou(op.name, op.path)
    elif op.kind is OpKind.CREATE_GROUP:
        directory.create_group(op.name, op.path, op.group_type)
    elif op.kind is OpKind.CREATE_USER:
        directory.create_user(op.name, op.path)
    elif op.kind is OpKind.ADD_MEMBER:
        directory.add_group_member(op.name, op.member)
    else:
        raise ValueError(f"unknown operation {op.kind}")


def execute(
    directory: DirectoryService,
    operations: Sequence[Operation],
) -> tuple[list[Outcome], ConnectivityError | None]:
    """Run the batch in order.

    A DirectoryOperationError fails that operation and skips whatever depends
    on it. A ConnectivityError stops the batch: the current and remaining
    operations are reported as aborted and the error is returned.
    """
    results: list[Outcome] = []
    failed: set[str] = set()

    for i, op in enumerate(operations):
        blocked = [k for k in op.depends_on if k in failed]
        if blocked:
            failed.add(op.key)
            log.warning("%s skipped: %s did not succeed", op, blocked[0])
            results.append(Outcome.of(op, Status.SKIPPED, f"depends on {blocked[0]}"))
            continue

        try:
            _apply(directory, op)
        except DirectoryOperationError as e:
            failed.add(op.key)
            log.error("%s failed: %s", op, e)
            results.append(Outcome.of(op, Status.FAILED, str(e)))
            continue
        except ConnectivityError as e:
            log.error("%s: connection lost, %d operation(s) not run: %s", op, len(operations) - i, e)
            results.extend(Outcome.of(rest, Status.ABORTED, str(e)) for rest in operations[i:])
            return results, e

        status = Status.ADDED if op.kind is OpKind.ADD_MEMBER else Status.CREATED
        log.info("%s: %s", op, status.value)
        results.append(Outcome.of(op, status))

    return results, None


def run(
    target: str,
    credential: Credential | None,
    operations: Batch,
    settings: EnvSettings | None = None,
) -> tuple[list[Outcome], ConnectivityError | None]:
    """Open one session, execute the batch in it, release the session.

    ``operations`` may be a callable; it gets the session's directory and
    returns the batch, so reads and writes share the session.
    """
    try:
        with open_session(target, credential, settings) as directory:
            ops = operations(directory) if callable(operations) else operations
            return execute(directory, list(ops))
    except ConnectivityError as e:
        log.error("%s: %s", target, e)
        return [], e
