"""CSV loader for the desired state.

Both tables are read completely and validated before anything is returned:
one bad row rejects the whole file.
"""

from __future__ import annotations

import csv
import logging
from typing import Callable, Iterator, TypeVar

from pydantic import ValidationError

from ..errors import DuplicateKeyError, MalformedInputError
from .models import DesiredState, GroupRecord, GroupType, UserRecord

log = logging.getLogger(__name__)

GROUP_COLUMNS = ("GroupName", "OUName", "Type")
USER_COLUMNS = ("UserName", "OUName", "MemberOf")

R = TypeVar("R", GroupRecord, UserRecord)


def _read_rows(path: str, required: tuple[str, ...]) -> Iterator[tuple[int, dict[str, str]]]:
    """Yield (line_no, row) with keys normalised to the canonical column names."""
    try:
        # utf-8-sig: Export-Csv writes a BOM
        f = open(path, newline="", encoding="utf-8-sig")
    except OSError as e:
        raise MalformedInputError(f"cannot read file: {e.strerror or e}", path=path) from e

    with f:
        reader = csv.reader(f)
        try:
            header = next(reader)
        except StopIteration:
            raise MalformedInputError("file is empty, header row expected", path=path, line=1) from None
        except (csv.Error, UnicodeDecodeError) as e:
            raise MalformedInputError(f"unreadable header: {e}", path=path, line=1) from e

        canonical = {c.lower(): c for c in required}
        columns = [canonical.get((h or "").strip().lower(), "") for h in header]
        missing = [c for c in required if c not in columns]
        if missing:
            raise MalformedInputError(f"missing column(s): {', '.join(missing)}", path=path, line=1)

        try:
            for raw in reader:
                if not any((cell or "").strip() for cell in raw):
                    continue
                row = {}
                for col, cell in zip(columns, raw):
                    if col:
                        row[col] = (cell or "").strip()
                yield reader.line_num, row
        except (csv.Error, UnicodeDecodeError) as e:
            raise MalformedInputError(f"unreadable row: {e}", path=path, line=reader.line_num) from e


def _validation_message(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg', '')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def _load(path: str, columns: tuple[str, ...], key_column: str, build: Callable[[dict[str, str]], R]) -> list[R]:
    records: list[R] = []
    first_seen: dict[str, int] = {}

    for line_no, row in _read_rows(path, columns):
        key = row.get(key_column, "")
        if not key:
            raise MalformedInputError(f"empty {key_column}", path=path, line=line_no)
        try:
            rec = build(row)
        except ValidationError as e:
            raise MalformedInputError(_validation_message(e), path=path, line=line_no) from e
        except ValueError as e:
            raise MalformedInputError(str(e), path=path, line=line_no) from e

        if rec.key in first_seen:
            raise DuplicateKeyError(key, path=path, line=line_no, first_line=first_seen[rec.key])
        first_seen[rec.key] = line_no
        records.append(rec)

    log.info("Loaded %d record(s) from %s", len(records), path)
    return records


def _build_group(row: dict[str, str]) -> GroupRecord:
    return GroupRecord(
        name=row["GroupName"],
        ou_name=row.get("OUName", ""),
        type=GroupType.parse(row.get("Type", "")),
    )


def _build_user(row: dict[str, str]) -> UserRecord:
    return UserRecord(
        name=row["UserName"],
        ou_name=row.get("OUName", ""),
        member_of=row.get("MemberOf", ""),
    )


def load_groups(path: str) -> list[GroupRecord]:
    """Read the groups table (GroupName, OUName, Type)."""
    return _load(path, GROUP_COLUMNS, "GroupName", _build_group)


def load_users(path: str) -> list[UserRecord]:
    """Read the users table (UserName, OUName, MemberOf)."""
    return _load(path, USER_COLUMNS, "UserName", _build_user)


def load_desired_state(groups_path: str, users_path: str) -> DesiredState:
    return DesiredState(groups=tuple(load_groups(groups_path)), users=tuple(load_users(users_path)))
