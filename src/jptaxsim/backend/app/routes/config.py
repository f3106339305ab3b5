"""Expose the resolved per-year rule tables.

The front-end shows bracket tables and the municipality in use next to the
form, so these endpoints return the same data the calculators read.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from jptaxsim.backend.app.http import not_found
from jptaxsim.backend.app.localization import get_translator
from jptaxsim.backend.config.year_config import (
    ConfigurationError,
    RuleYear,
    available_years,
    default_year,
    load_manifest,
    load_year_configuration,
)
from jptaxsim.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the configuration manifest."""

    manifest = load_manifest()
    return {
        "version": get_project_version(),
        "supported_years": list(manifest.supported_years),
        "default_year": default_year(),
    }


def _serialise_rules(config: RuleYear) -> dict[str, Any]:
    payload = config.model_dump(mode="json", by_alias=True)
    pension = config.pension.national_pension_monthly
    payload["flags"] = {
        "pension_needs_update": pension.needs_update,
        "provisional": bool(config.meta.get("provisional", False)),
    }
    return payload


def _year_summary(year: int) -> dict[str, Any]:
    config = load_year_configuration(year)
    return {
        "year": year,
        "inherits_from": config.inherits_from,
        "municipality": config.resident_tax.municipality,
        "meta": dict(config.meta),
    }


@blueprint.get("/meta")
def get_application_metadata() -> tuple[Any, int]:
    """Expose lightweight application metadata such as the version identifier."""

    return jsonify(get_configuration_metadata()), 200


@blueprint.get("/years")
def list_years() -> tuple[Any, int]:
    """Return all configured years with lightweight metadata."""

    metadata = get_configuration_metadata()
    payload = {
        "years": [_year_summary(year) for year in available_years()],
        "default_year": metadata["default_year"],
        "supported_years": metadata["supported_years"],
    }
    return jsonify(payload), 200


@blueprint.get("/<int:year>")
def get_year(year: int) -> tuple[Any, int]:
    """Return the fully resolved rule table for ``year``."""

    if year not in available_years():
        return not_found(f"No rules configured for {year}")

    try:
        config = load_year_configuration(year)
    except (ConfigurationError, FileNotFoundError) as exc:  # pragma: no cover
        return not_found(str(exc))

    translator = get_translator(request.args.get("locale"))
    payload = {
        "year": year,
        "locale": translator.locale,
        "rules": _serialise_rules(config),
    }
    return jsonify(payload), 200
