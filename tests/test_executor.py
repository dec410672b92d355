from contextlib import contextmanager

import pytest

from adsync.env_settings import EnvSettings
from adsync.errors import ConnectivityError, DirectoryOperationError, InvalidParametersError
from adsync.reconcile import OpKind, Operation, Status
from adsync.reconcile.operations import ou_key, user_key
from adsync.remote import execute, open_session, run

from conftest import BASE_DN, FakeDirectory


def ops_for_alice():
    return [
        Operation(OpKind.CREATE_OU, "Sales", path=BASE_DN),
        Operation(OpKind.CREATE_USER, "Alice", path=f"OU=Sales,{BASE_DN}", depends_on=(ou_key("Sales"),)),
        Operation(OpKind.ADD_MEMBER, "Staff", member="Alice", depends_on=(user_key("Alice"),)),
    ]


class DroppingDirectory(FakeDirectory):
    """Loses the connection on the n-th write."""

    def __init__(self, drop_at: int) -> None:
        super().__init__()
        self.drop_at = drop_at

    def _write(self, call):
        if len(self.writes) == self.drop_at:
            raise ConnectivityError("connection reset")
        super()._write(call)


def test_execute_reports_per_operation(directory):
    directory.seed_group("Staff", "Staff")
    results, error = execute(directory, ops_for_alice())
    assert error is None
    assert [r.status for r in results] == [Status.CREATED, Status.CREATED, Status.ADDED]


def test_skip_propagates_through_chain(directory):
    directory.fail_on["CreateOU(Sales)"] = DirectoryOperationError("denied")
    results, error = execute(directory, ops_for_alice())
    assert error is None
    assert [r.status for r in results] == [Status.FAILED, Status.SKIPPED, Status.SKIPPED]
    assert results[1].message == "depends on ou:sales"


def test_connectivity_loss_aborts_rest_of_batch():
    directory = DroppingDirectory(drop_at=1)
    results, error = execute(directory, ops_for_alice())
    assert isinstance(error, ConnectivityError)
    assert [r.status for r in results] == [Status.CREATED, Status.ABORTED, Status.ABORTED]


class SessionSpy:
    def __init__(self, directory=None, fail_open=False):
        self.directory = directory or FakeDirectory()
        self.fail_open = fail_open
        self.opened = 0
        self.closed = 0

    @contextmanager
    def __call__(self, target, credential=None, settings=None):
        if self.fail_open:
            raise ConnectivityError(f"{target}: unreachable")
        self.opened += 1
        try:
            yield self.directory
        finally:
            self.closed += 1


def test_run_uses_one_session_and_releases_it(monkeypatch):
    spy = SessionSpy()
    monkeypatch.setattr("adsync.remote.executor.open_session", spy)

    results, error = run("dc01", None, ops_for_alice()[:2])

    assert error is None
    assert len(results) == 2
    assert (spy.opened, spy.closed) == (1, 1)


def test_run_passes_session_directory_to_batch_callable(monkeypatch):
    spy = SessionSpy()
    monkeypatch.setattr("adsync.remote.executor.open_session", spy)
    seen = []

    def batch(directory):
        seen.append(directory)
        return []

    run("dc01", None, batch)
    assert seen == [spy.directory]


def test_run_reports_unreachable_host(monkeypatch):
    monkeypatch.setattr("adsync.remote.executor.open_session", SessionSpy(fail_open=True))
    results, error = run("dc01", None, ops_for_alice())
    assert results == []
    assert isinstance(error, ConnectivityError)


def test_run_releases_session_when_batch_raises(monkeypatch):
    spy = SessionSpy()
    monkeypatch.setattr("adsync.remote.executor.open_session", spy)

    def batch(directory):
        raise DirectoryOperationError("lookup refused")

    with pytest.raises(DirectoryOperationError):
        run("dc01", None, batch)
    assert spy.closed == 1


def test_ldap_backend_requires_credential():
    settings = EnvSettings(backend="ldap", domain="corp.example.com")
    with pytest.raises(InvalidParametersError):
        with open_session("10.0.0.5", None, settings):
            pass
