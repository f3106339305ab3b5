"""Named snapshots of past calculations.

A snapshot keeps the full input together with the summary and derived values
of one run so a later year can use its general income as the previous year's
figure. Names are unique across the store.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from threading import Lock
from typing import Any, Callable, Iterable, Iterator, Mapping
from uuid import uuid4

_LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class DuplicateSnapshotNameError(ValueError):
    """Raised when a snapshot name is already taken."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Snapshot name already exists: {name}")


@dataclass(frozen=True)
class SnapshotRecord:
    """Persisted snapshot of a calculation input and its results."""

    id: str
    year: int
    name: str
    input: Mapping[str, Any]
    summary: Mapping[str, Any]
    derived: Mapping[str, Any]
    previous_year_total_income: int
    created_at: datetime
    updated_at: datetime
    schema_version: int = SCHEMA_VERSION

    def to_dict(self, *, include_payload: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "schema_version": self.schema_version,
            "year": self.year,
            "name": self.name,
            "previous_year_total_income": self.previous_year_total_income,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_payload:
            data["input"] = dict(self.input)
            data["summary"] = dict(self.summary)
            data["derived"] = dict(self.derived)
        return data


def snapshot_name_prefix(year: int, today: date) -> str:
    return f"{year}年度_納税金額試算_{today:%Y%m%d}-"


def next_snapshot_name(year: int, today: date, existing: Iterable[str]) -> str:
    """Return the next free ``{year}年度_納税金額試算_{YYYYMMDD}-NNN`` name."""

    prefix = snapshot_name_prefix(year, today)
    numbers = [
        int(suffix)
        for suffix in (name[len(prefix):] for name in existing if name.startswith(prefix))
        if suffix.isdigit()
    ]
    return f"{prefix}{max(numbers, default=0) + 1:03d}"


def _normalise_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Snapshot name must not be empty")
    return cleaned


def _previous_total(derived: Mapping[str, Any]) -> int:
    return int(derived.get("total_income_general") or 0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySnapshotRepository:
    """Thread-safe in-memory snapshot storage."""

    def __init__(
        self,
        *,
        max_items: int | None = 500,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_items is not None and max_items <= 0:
            raise ValueError("max_items must be positive when provided")

        self._max_items = max_items
        self._clock = clock or _utcnow
        self._records: "OrderedDict[str, SnapshotRecord]" = OrderedDict()
        self._lock = Lock()

    def _ensure_unique_locked(self, name: str, exclude_id: str | None = None) -> None:
        for record in self._records.values():
            if record.name == name and record.id != exclude_id:
                _LOGGER.warning("Rejected duplicate snapshot name %r", name)
                raise DuplicateSnapshotNameError(name)

    def _cleanup_locked(self) -> None:
        if self._max_items is not None:
            while len(self._records) > self._max_items:
                self._records.popitem(last=False)

    def save(
        self,
        name: str,
        year: int,
        input: Mapping[str, Any],
        summary: Mapping[str, Any],
        derived: Mapping[str, Any],
    ) -> SnapshotRecord:
        cleaned = _normalise_name(name)
        now = self._clock()
        record = SnapshotRecord(
            id=uuid4().hex,
            year=int(year),
            name=cleaned,
            input=dict(input),
            summary=dict(summary),
            derived=dict(derived),
            previous_year_total_income=_previous_total(derived),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._ensure_unique_locked(cleaned)
            self._records[record.id] = record
            self._cleanup_locked()
        _LOGGER.info("Saved snapshot %s (%s)", record.id, cleaned)
        return record

    def get(self, snapshot_id: str) -> SnapshotRecord:
        with self._lock:
            record = self._records.get(snapshot_id)
        if record is None:
            raise KeyError(snapshot_id)
        return record

    def list(self) -> list[SnapshotRecord]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda record: record.updated_at, reverse=True)

    def rename(self, snapshot_id: str, name: str) -> SnapshotRecord:
        cleaned = _normalise_name(name)
        with self._lock:
            record = self._records.get(snapshot_id)
            if record is None:
                raise KeyError(snapshot_id)
            self._ensure_unique_locked(cleaned, exclude_id=snapshot_id)
            renamed = replace(record, name=cleaned, updated_at=self._clock())
            self._records[snapshot_id] = renamed
        return renamed

    def delete(self, snapshot_id: str) -> None:
        with self._lock:
            self._records.pop(snapshot_id, None)

    def generate_name(self, year: int, today: date | None = None) -> str:
        reference = today or self._clock().date()
        with self._lock:
            names = [record.name for record in self._records.values()]
        return next_snapshot_name(year, reference, names)


class SQLiteSnapshotRepository:
    """SQLite-backed snapshot repository."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        max_items: int | None = 2000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_items is not None and max_items <= 0:
            raise ValueError("max_items must be positive when provided")

        self._path = str(path)
        self._max_items = max_items
        self._clock = clock or _utcnow
        self._lock = Lock()
        self._initialise()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""

        connection = sqlite3.connect(self._path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA journal_mode=WAL")
            connection.execute("PRAGMA synchronous=NORMAL")
            with connection:
                yield connection
        finally:
            connection.close()

    def _initialise(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    id TEXT PRIMARY KEY,
                    schema_version INTEGER NOT NULL,
                    year INTEGER NOT NULL,
                    name TEXT NOT NULL UNIQUE,
                    input TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    derived TEXT NOT NULL,
                    previous_year_total_income INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    @staticmethod
    def _parse_timestamp(value: str) -> datetime:
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @classmethod
    def _decode_record(cls, row: sqlite3.Row) -> SnapshotRecord:
        return SnapshotRecord(
            id=row["id"],
            schema_version=row["schema_version"],
            year=row["year"],
            name=row["name"],
            input=json.loads(row["input"]),
            summary=json.loads(row["summary"]),
            derived=json.loads(row["derived"]),
            previous_year_total_income=row["previous_year_total_income"],
            created_at=cls._parse_timestamp(row["created_at"]),
            updated_at=cls._parse_timestamp(row["updated_at"]),
        )

    def _ensure_unique_locked(
        self, connection: sqlite3.Connection, name: str, exclude_id: str | None = None
    ) -> None:
        row = connection.execute(
            "SELECT id FROM snapshots WHERE name = ? AND id != ?",
            (name, exclude_id or ""),
        ).fetchone()
        if row is not None:
            _LOGGER.warning("Rejected duplicate snapshot name %r", name)
            raise DuplicateSnapshotNameError(name)

    def _cleanup_locked(self, connection: sqlite3.Connection) -> None:
        if self._max_items is None:
            return
        excess = connection.execute(
            "SELECT COUNT(*) - ? FROM snapshots", (self._max_items,)
        ).fetchone()[0]
        if excess is not None and excess > 0:
            connection.execute(
                "DELETE FROM snapshots WHERE id IN ("
                "SELECT id FROM snapshots ORDER BY created_at ASC LIMIT ?"
                ")",
                (excess,),
            )

    def save(
        self,
        name: str,
        year: int,
        input: Mapping[str, Any],
        summary: Mapping[str, Any],
        derived: Mapping[str, Any],
    ) -> SnapshotRecord:
        cleaned = _normalise_name(name)
        now = self._clock()
        record = SnapshotRecord(
            id=uuid4().hex,
            year=int(year),
            name=cleaned,
            input=dict(input),
            summary=dict(summary),
            derived=dict(derived),
            previous_year_total_income=_previous_total(derived),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            with self._connect() as connection:
                self._ensure_unique_locked(connection, cleaned)
                connection.execute(
                    "INSERT INTO snapshots (id, schema_version, year, name, input, summary,"
                    " derived, previous_year_total_income, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.id,
                        record.schema_version,
                        record.year,
                        record.name,
                        json.dumps(record.input, ensure_ascii=False),
                        json.dumps(record.summary, ensure_ascii=False),
                        json.dumps(record.derived, ensure_ascii=False),
                        record.previous_year_total_income,
                        record.created_at.isoformat(),
                        record.updated_at.isoformat(),
                    ),
                )
                self._cleanup_locked(connection)
        _LOGGER.info("Saved snapshot %s (%s)", record.id, cleaned)
        return record

    def get(self, snapshot_id: str) -> SnapshotRecord:
        with self._lock:
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT * FROM snapshots WHERE id = ?", (snapshot_id,)
                ).fetchone()
        if row is None:
            raise KeyError(snapshot_id)
        return self._decode_record(row)

    def list(self) -> list[SnapshotRecord]:
        with self._lock:
            with self._connect() as connection:
                rows = connection.execute(
                    "SELECT * FROM snapshots ORDER BY updated_at DESC, created_at DESC"
                ).fetchall()
        return [self._decode_record(row) for row in rows]

    def rename(self, snapshot_id: str, name: str) -> SnapshotRecord:
        cleaned = _normalise_name(name)
        with self._lock:
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT * FROM snapshots WHERE id = ?", (snapshot_id,)
                ).fetchone()
                if row is None:
                    raise KeyError(snapshot_id)
                self._ensure_unique_locked(connection, cleaned, exclude_id=snapshot_id)
                updated_at = self._clock()
                connection.execute(
                    "UPDATE snapshots SET name = ?, updated_at = ? WHERE id = ?",
                    (cleaned, updated_at.isoformat(), snapshot_id),
                )
        return replace(self._decode_record(row), name=cleaned, updated_at=updated_at)

    def delete(self, snapshot_id: str) -> None:
        with self._lock:
            with self._connect() as connection:
                connection.execute("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))

    def generate_name(self, year: int, today: date | None = None) -> str:
        reference = today or self._clock().date()
        prefix = snapshot_name_prefix(year, reference)
        with self._lock:
            with self._connect() as connection:
                rows = connection.execute(
                    "SELECT name FROM snapshots WHERE substr(name, 1, ?) = ?",
                    (len(prefix), prefix),
                ).fetchall()
        return next_snapshot_name(year, reference, (row["name"] for row in rows))


SnapshotRepository = InMemorySnapshotRepository | SQLiteSnapshotRepository


__all__ = [
    "DuplicateSnapshotNameError",
    "InMemorySnapshotRepository",
    "SCHEMA_VERSION",
    "SQLiteSnapshotRepository",
    "SnapshotRecord",
    "SnapshotRepository",
    "next_snapshot_name",
    "snapshot_name_prefix",
]
