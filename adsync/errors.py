"""Error taxonomy.

Load-time and connectivity errors are fatal to a run. A
``DirectoryOperationError`` concerns one entity only: the reconciler records
it and carries on with independent records.
"""

from __future__ import annotations


class AdsyncError(Exception):
    """Base class for all errors raised by adsync."""


class LoadError(AdsyncError):
    """An input table was rejected; nothing from it is loaded."""

    def __init__(self, message: str, path: str = "", line: int | None = None) -> None:
        self.path = path
        self.line = line
        where = path
        if path and line is not None:
            where = f"{path}:{line}"
        super().__init__(f"{where}: {message}" if where else message)


class MalformedInputError(LoadError):
    """A required column, key or parseable value is missing."""


class DuplicateKeyError(LoadError):
    """Two records of one input table share a key."""

    def __init__(self, key: str, path: str = "", line: int | None = None, first_line: int | None = None) -> None:
        self.key = key
        self.first_line = first_line
        msg = f"duplicate key '{key}'"
        if first_line is not None:
            msg += f" (first seen on line {first_line})"
        super().__init__(msg, path=path, line=line)


class InvalidParametersError(AdsyncError):
    """Run parameters failed startup validation."""


class ConnectivityError(AdsyncError):
    """The session to the directory host cannot be established or broke."""


class DirectoryOperationError(AdsyncError):
    """A single directory read or write was rejected, e.g. a naming conflict."""
