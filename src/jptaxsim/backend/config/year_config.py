"""Rule table loader wrapping the shared schema models.

Each fiscal year lives in its own YAML file listed by ``manifest.yaml``. A year
may declare ``inherits_from`` to reuse a base year's tables: every top-level
section missing from the child is taken from the resolved parent, and for
mapping sections the child's keys replace the parent's keys one level down.
Bracket rows are never merged individually.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml
from pydantic import ValidationError

from .schema import (
    BasicDeductionTable,
    BlueDeductionConfig,
    ConfigurationError,
    EarthquakeDeductionConfig,
    Formula,
    FormulaBracket,
    FormulaKind,
    IncomeBracket,
    IncomeTaxConfig,
    LifeInsuranceBracket,
    LifeInsuranceConfig,
    LifeInsuranceRegime,
    MedicalDeductionConfig,
    NationalHealthInsuranceConfig,
    NhiComponentConfig,
    PensionConfig,
    RateTableRow,
    ResidentTaxConfig,
    RuleDefaults,
    RuleManifest,
    RuleManifestEntry,
    RuleYear,
    SalaryIncomeDeductionTable,
    StockTaxConfig,
)

_LOGGER = logging.getLogger(__name__)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"

# Sections replaced wholesale by a child year instead of merged key by key.
_REPLACED_SECTIONS = frozenset({"earthquake_deduction", "blue_deduction"})
_SCALAR_KEYS = frozenset({"year", "inherits_from"})


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_manifest() -> RuleManifest:
    """Load and cache the rule manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Rule manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return RuleManifest.model_validate(raw_manifest)
    except ValidationError as error:  # pragma: no cover - defensive
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def manifest_entries() -> Sequence[RuleManifestEntry]:
    """Expose the configured manifest entries."""

    return load_manifest().years


def merge_inherited(parent: Mapping[str, Any], child: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay ``child`` onto ``parent`` one level deep."""

    merged: dict[str, Any] = dict(parent)
    for key, value in child.items():
        parent_value = parent.get(key)
        if (
            key not in _SCALAR_KEYS
            and key not in _REPLACED_SECTIONS
            and isinstance(value, Mapping)
            and isinstance(parent_value, Mapping)
        ):
            merged[key] = {**parent_value, **value}
        else:
            merged[key] = value
    return merged


def _read_raw_year(year: int) -> dict[str, Any]:
    try:
        manifest_entry = load_manifest().get_entry(year)
    except KeyError as exc:
        raise FileNotFoundError(f"Rules for year {year} not declared in manifest") from exc

    config_file = CONFIG_DIRECTORY / manifest_entry.resolved_filename
    if not config_file.exists():
        raise FileNotFoundError(f"Rule file for year {year} missing: {config_file.name}")

    raw_config = _load_yaml(config_file)
    raw_config.setdefault("year", year)
    return raw_config


def _resolve_raw(year: int, trail: tuple[int, ...] = ()) -> dict[str, Any]:
    raw_config = _read_raw_year(year)
    base_year = raw_config.get("inherits_from")
    if base_year is None:
        return raw_config

    base_year = int(base_year)
    if base_year == year or base_year in trail:
        chain = " -> ".join(str(entry) for entry in (*trail, year, base_year))
        raise ConfigurationError(f"Rule inheritance cycle detected: {chain}")

    try:
        parent = _resolve_raw(base_year, (*trail, year))
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Rules for {year} inherit from undeclared year {base_year}"
        ) from exc
    return merge_inherited(parent, raw_config)


@lru_cache(maxsize=8)
def load_year_configuration(year: int) -> RuleYear:
    """Load the fully resolved rule table for ``year`` from disk."""

    raw_config = _resolve_raw(year)

    try:
        configuration = RuleYear.model_validate(raw_config)
    except ValidationError as error:
        raise ConfigurationError(f"Rule validation failed for {year}: {error}") from error

    if configuration.year != year:
        raise ConfigurationError(
            f"Rule year mismatch: expected {year}, found {configuration.year}"
        )

    return configuration


def available_years() -> Sequence[int]:
    """Return the fiscal years declared in the manifest."""

    return load_manifest().supported_years


def default_year() -> int:
    """Return the year used when an unsupported year is requested."""

    return load_manifest().default_year


def resolve_rules(year: int) -> RuleYear:
    """Return the rule table for ``year``, falling back to the default year."""

    if year not in available_years():
        fallback = default_year()
        _LOGGER.debug("No rules for year %s; falling back to %s", year, fallback)
        return load_year_configuration(fallback)
    return load_year_configuration(year)


__all__ = [
    "BasicDeductionTable",
    "BlueDeductionConfig",
    "CONFIG_DIRECTORY",
    "ConfigurationError",
    "EarthquakeDeductionConfig",
    "Formula",
    "FormulaBracket",
    "FormulaKind",
    "IncomeBracket",
    "IncomeTaxConfig",
    "LifeInsuranceBracket",
    "LifeInsuranceConfig",
    "LifeInsuranceRegime",
    "MANIFEST_FILE",
    "MedicalDeductionConfig",
    "NationalHealthInsuranceConfig",
    "NhiComponentConfig",
    "PensionConfig",
    "RateTableRow",
    "ResidentTaxConfig",
    "RuleDefaults",
    "RuleManifest",
    "RuleManifestEntry",
    "RuleYear",
    "SalaryIncomeDeductionTable",
    "StockTaxConfig",
    "available_years",
    "default_year",
    "load_manifest",
    "load_year_configuration",
    "manifest_entries",
    "merge_inherited",
    "resolve_rules",
]
