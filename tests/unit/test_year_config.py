"""Unit coverage for year configuration discovery, inheritance and fallback."""

from __future__ import annotations

from pathlib import Path
from shutil import copy2

import pytest
import yaml

from jptaxsim.backend.config import year_config
from jptaxsim.backend.config.year_config import ConfigurationError


@pytest.fixture()
def isolated_config_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Return a temporary configuration directory patched into ``year_config``."""

    original_directory = year_config.CONFIG_DIRECTORY
    for filename in ("2024.yaml", "2025.yaml", "2026.yaml"):
        copy2(original_directory / filename, tmp_path / filename)

    manifest_path = tmp_path / "manifest.yaml"
    manifest_path.write_text(
        yaml.safe_dump(
            {
                "default_year": 2024,
                "years": [{"year": 2024}, {"year": 2025}, {"year": 2026}],
            },
            sort_keys=False,
        ),
        encoding="utf-8",
    )

    monkeypatch.setattr(year_config, "CONFIG_DIRECTORY", tmp_path)
    monkeypatch.setattr(year_config, "MANIFEST_FILE", manifest_path)
    year_config.load_year_configuration.cache_clear()
    year_config.load_manifest.cache_clear()

    yield tmp_path

    year_config.load_year_configuration.cache_clear()
    year_config.load_manifest.cache_clear()


def _append_manifest_year(directory: Path, entry: dict) -> None:
    manifest_path = directory / "manifest.yaml"
    manifest = yaml.safe_load(manifest_path.read_text(encoding="utf-8"))
    manifest.setdefault("years", []).append(entry)
    manifest_path.write_text(
        yaml.safe_dump(manifest, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )
    year_config.load_manifest.cache_clear()


def test_available_years_follow_the_manifest() -> None:
    years = year_config.available_years()

    assert tuple(years) == (2024, 2025, 2026, 2027)
    assert year_config.default_year() == 2024


def test_available_years_discovers_new_manifest_entry(
    isolated_config_directory: Path,
) -> None:
    """A new year needs a rule file and a manifest entry, nothing else."""

    (isolated_config_directory / "2030.yaml").write_text(
        "year: 2030\ninherits_from: 2026\n", encoding="utf-8"
    )
    _append_manifest_year(isolated_config_directory, {"year": 2030})

    assert year_config.available_years() == (2024, 2025, 2026, 2030)
    config = year_config.load_year_configuration(2030)
    assert config.year == 2030
    assert config.pension.national_pension_monthly.value == 17_920


def test_available_years_ignores_stray_files(isolated_config_directory: Path) -> None:
    (isolated_config_directory / "legacy.yaml").write_text("meta: {}\n")
    (isolated_config_directory / "2025.backup").write_text("meta: {}\n")

    year_config.load_manifest.cache_clear()

    assert year_config.available_years() == (2024, 2025, 2026)


def test_child_year_overrides_only_declared_keys() -> None:
    rules_2024 = year_config.load_year_configuration(2024)
    rules_2025 = year_config.load_year_configuration(2025)

    assert rules_2025.inherits_from == 2024
    assert rules_2025.income_tax.salary_income_deduction.minimum == 650_000
    assert rules_2025.income_tax.rate_table == rules_2024.income_tax.rate_table
    assert rules_2025.resident_tax.municipality == rules_2024.resident_tax.municipality
    assert rules_2025.pension.national_pension_monthly.value == 17_510


def test_inherited_tables_are_replaced_not_merged_per_row() -> None:
    rules_2027 = year_config.load_year_configuration(2027)
    brackets = rules_2027.income_tax.basic_deduction.brackets

    assert [row.deduction for row in brackets[:2]] == [950_000, 580_000]
    assert len(brackets) == 6


def test_provisional_year_flags_pension_for_update() -> None:
    rules_2027 = year_config.load_year_configuration(2027)

    assert rules_2027.meta.get("provisional") is True
    assert rules_2027.pension.national_pension_monthly.needs_update is True


def test_merge_inherited_is_one_level_deep() -> None:
    parent = {
        "year": 2024,
        "resident_tax": {"income_rate": 0.1, "per_capita": 5000},
        "blue_deduction": {"book": 550_000, "electronic": 650_000},
    }
    child = {
        "year": 2025,
        "inherits_from": 2024,
        "resident_tax": {"per_capita": 6000},
        "blue_deduction": {"electronic": 700_000},
    }

    merged = year_config.merge_inherited(parent, child)

    assert merged["year"] == 2025
    assert merged["resident_tax"] == {"income_rate": 0.1, "per_capita": 6000}
    assert merged["blue_deduction"] == {"electronic": 700_000}


def test_resolve_rules_falls_back_to_default_year() -> None:
    rules = year_config.resolve_rules(1999)

    assert rules.year == year_config.default_year()


def test_unknown_year_is_not_loadable() -> None:
    with pytest.raises(FileNotFoundError):
        year_config.load_year_configuration(1999)


def test_inheritance_cycle_is_rejected(isolated_config_directory: Path) -> None:
    (isolated_config_directory / "2031.yaml").write_text(
        "year: 2031\ninherits_from: 2032\n", encoding="utf-8"
    )
    (isolated_config_directory / "2032.yaml").write_text(
        "year: 2032\ninherits_from: 2031\n", encoding="utf-8"
    )
    _append_manifest_year(isolated_config_directory, {"year": 2031})
    _append_manifest_year(isolated_config_directory, {"year": 2032})

    with pytest.raises(ConfigurationError, match="cycle"):
        year_config.load_year_configuration(2031)


def test_missing_parent_year_is_reported(isolated_config_directory: Path) -> None:
    (isolated_config_directory / "2040.yaml").write_text(
        "year: 2040\ninherits_from: 2039\n", encoding="utf-8"
    )
    _append_manifest_year(isolated_config_directory, {"year": 2040})

    with pytest.raises(ConfigurationError, match="undeclared"):
        year_config.load_year_configuration(2040)
