"""Unit tests for snapshot repositories."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from jptaxsim.backend.app.services.snapshot_service import (
    DuplicateSnapshotNameError,
    InMemorySnapshotRepository,
    SQLiteSnapshotRepository,
    next_snapshot_name,
    snapshot_name_prefix,
)

DERIVED = {"total_income_general": 3_560_000, "taxable_income_general": 2_380_000}
SUMMARY = {"year": 2024, "income_tax_general": 140_500}


class FakeClock:
    """Deterministic clock that advances one minute per call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


@pytest.fixture(params=["memory", "sqlite"])
def repository(request: pytest.FixtureRequest, tmp_path: Path):
    clock = FakeClock(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc))
    if request.param == "memory":
        return InMemorySnapshotRepository(clock=clock)
    return SQLiteSnapshotRepository(tmp_path / "snapshots.db", clock=clock)


def _save(repo, name: str, year: int = 2024):
    return repo.save(name, year, {"year": year}, SUMMARY, DERIVED)


def test_save_and_get_round_trip(repository) -> None:
    record = _save(repository, "  令和6年 試算  ")

    loaded = repository.get(record.id)

    assert loaded.name == "令和6年 試算"
    assert loaded.year == 2024
    assert loaded.previous_year_total_income == 3_560_000
    assert dict(loaded.summary) == SUMMARY
    assert loaded.created_at == record.created_at


def test_get_missing_snapshot_raises_key_error(repository) -> None:
    with pytest.raises(KeyError):
        repository.get("missing")


def test_duplicate_names_are_rejected(repository) -> None:
    _save(repository, "試算A")

    with pytest.raises(DuplicateSnapshotNameError) as excinfo:
        _save(repository, "試算A")

    assert excinfo.value.name == "試算A"
    assert len(repository.list()) == 1


def test_blank_names_are_rejected(repository) -> None:
    with pytest.raises(ValueError):
        _save(repository, "   ")


def test_list_orders_by_most_recent_update(repository) -> None:
    first = _save(repository, "first")
    second = _save(repository, "second")

    assert [record.id for record in repository.list()] == [second.id, first.id]

    repository.rename(first.id, "first (renamed)")

    assert [record.name for record in repository.list()] == ["first (renamed)", "second"]


def test_rename_checks_uniqueness_against_other_snapshots(repository) -> None:
    first = _save(repository, "first")
    _save(repository, "second")

    renamed = repository.rename(first.id, "first")
    assert renamed.name == "first"
    assert renamed.updated_at > renamed.created_at

    with pytest.raises(DuplicateSnapshotNameError):
        repository.rename(first.id, "second")


def test_rename_missing_snapshot_raises_key_error(repository) -> None:
    with pytest.raises(KeyError):
        repository.rename("missing", "name")


def test_delete_removes_snapshot(repository) -> None:
    record = _save(repository, "gone")

    repository.delete(record.id)
    repository.delete(record.id)

    with pytest.raises(KeyError):
        repository.get(record.id)


def test_generate_name_increments_the_daily_counter(repository) -> None:
    today = date(2025, 3, 1)

    assert repository.generate_name(2024, today) == "2024年度_納税金額試算_20250301-001"

    _save(repository, "2024年度_納税金額試算_20250301-001")
    _save(repository, "2024年度_納税金額試算_20250301-007")
    _save(repository, "2024年度_納税金額試算_20250228-009")

    assert repository.generate_name(2024, today) == "2024年度_納税金額試算_20250301-008"
    assert repository.generate_name(2025, today) == "2025年度_納税金額試算_20250301-001"


def test_generate_name_defaults_to_the_clock_date(repository) -> None:
    assert repository.generate_name(2024).startswith("2024年度_納税金額試算_20250301-")


@pytest.mark.parametrize("backend", ["memory", "sqlite"])
def test_capacity_evicts_oldest_snapshots(backend: str, tmp_path: Path) -> None:
    clock = FakeClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
    if backend == "memory":
        repo = InMemorySnapshotRepository(max_items=2, clock=clock)
    else:
        repo = SQLiteSnapshotRepository(tmp_path / "capped.db", max_items=2, clock=clock)

    oldest = _save(repo, "one")
    _save(repo, "two")
    _save(repo, "three")

    assert {record.name for record in repo.list()} == {"two", "three"}
    with pytest.raises(KeyError):
        repo.get(oldest.id)


def test_invalid_capacity_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        InMemorySnapshotRepository(max_items=0)
    with pytest.raises(ValueError):
        SQLiteSnapshotRepository(tmp_path / "bad.db", max_items=-1)


def test_sqlite_repository_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "persist.db"
    record = _save(SQLiteSnapshotRepository(path), "kept")

    reopened = SQLiteSnapshotRepository(path)

    assert reopened.get(record.id).name == "kept"
    assert reopened.get(record.id).derived["taxable_income_general"] == 2_380_000


def test_sqlite_repository_closes_its_connections(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    opened: list[sqlite3.Connection] = []
    connect = sqlite3.connect

    def tracking_connect(*args, **kwargs) -> sqlite3.Connection:
        connection = connect(*args, **kwargs)
        opened.append(connection)
        return connection

    monkeypatch.setattr(sqlite3, "connect", tracking_connect)
    repo = SQLiteSnapshotRepository(tmp_path / "closed.db")
    record = _save(repo, "first")
    repo.rename(record.id, "renamed")
    repo.list()
    repo.delete(record.id)

    assert len(opened) >= 5
    for connection in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            connection.execute("SELECT 1")


def test_to_dict_can_omit_payload() -> None:
    repo = InMemorySnapshotRepository()
    record = _save(repo, "summary only")

    listed = record.to_dict(include_payload=False)
    full = record.to_dict()

    assert "input" not in listed and "summary" not in listed
    assert full["input"] == {"year": 2024}
    assert full["schema_version"] == 1
    assert listed["created_at"] == record.created_at.isoformat()


def test_name_helpers() -> None:
    today = date(2024, 12, 31)

    assert snapshot_name_prefix(2024, today) == "2024年度_納税金額試算_20241231-"
    assert next_snapshot_name(2024, today, ["other", "2024年度_納税金額試算_20241231-abc"]) == (
        "2024年度_納税金額試算_20241231-001"
    )
