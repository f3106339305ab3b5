"""Unit coverage for the project version lookup."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path

import pytest

from jptaxsim.backend import version
from jptaxsim.backend.version import PACKAGE_NAME, get_project_version


@pytest.fixture(autouse=True)
def _fresh_version_cache():
    get_project_version.cache_clear()  # type: ignore[attr-defined]
    yield
    get_project_version.cache_clear()  # type: ignore[attr-defined]


def test_installed_distribution_version_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    requested: list[str] = []

    def fake_version(package: str) -> str:
        requested.append(package)
        return "9.9.9"

    monkeypatch.setattr(metadata, "version", fake_version)

    assert get_project_version() == "9.9.9"
    assert requested == [PACKAGE_NAME]


def test_source_checkout_reads_the_project_table(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        "\n".join(
            [
                "[tool.jptaxsim]",
                'version = "0.0.0-tool"',
                "",
                "[project]",
                'name = "jptaxsim"',
                'version = "1.2.3"',
            ]
        ),
        encoding="utf-8",
    )

    def not_installed(_: str) -> str:
        raise metadata.PackageNotFoundError

    monkeypatch.setattr(metadata, "version", not_installed)
    monkeypatch.setattr(version, "PYPROJECT_PATH", pyproject)

    assert get_project_version() == "1.2.3"


def test_pyproject_without_project_version_is_an_error(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[project]\nname = "jptaxsim"\n', encoding="utf-8")

    with pytest.raises(RuntimeError, match="No \\[project\\] version"):
        version._read_version_from_pyproject(pyproject)


def test_repository_pyproject_declares_a_version() -> None:
    assert version._read_version_from_pyproject(version.PYPROJECT_PATH)
