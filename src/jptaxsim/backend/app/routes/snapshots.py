"""Endpoints for saving, listing and renaming calculation snapshots."""

from __future__ import annotations

import logging
import os
from http import HTTPStatus
from pathlib import Path
from typing import Any, Mapping

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import BadRequest

from jptaxsim.backend.app.http import duplicate_name, not_found
from jptaxsim.backend.app.services.calculation_service import calculate_tax
from jptaxsim.backend.app.services.snapshot_service import (
    DuplicateSnapshotNameError,
    InMemorySnapshotRepository,
    SQLiteSnapshotRepository,
    SnapshotRepository,
)
from jptaxsim.backend.config.year_config import default_year

blueprint = Blueprint("snapshots", __name__, url_prefix="/api/v1/snapshots")

logger = logging.getLogger(__name__)

EXTENSION_KEY = "jptaxsim.snapshots"


def _parse_positive_int(value: str | None, *, env: str) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %s", env, value)
        return None
    if parsed <= 0:
        logger.warning("Ignoring non-positive value for %s: %s", env, value)
        return None
    return parsed


def build_repository() -> SnapshotRepository:
    """Create the repository selected by the environment."""

    capacity = _parse_positive_int(
        os.getenv("JPTAXSIM_SNAPSHOT_CAPACITY"), env="JPTAXSIM_SNAPSHOT_CAPACITY"
    )

    kwargs: dict[str, Any] = {}
    if capacity is not None:
        kwargs["max_items"] = capacity

    db_path = os.getenv("JPTAXSIM_SNAPSHOT_DB")
    if db_path:
        return SQLiteSnapshotRepository(Path(db_path).expanduser(), **kwargs)

    return InMemorySnapshotRepository(**kwargs)


def init_snapshot_store(app: Flask) -> None:
    app.extensions[EXTENSION_KEY] = build_repository()


def get_snapshot_repository() -> SnapshotRepository:
    return current_app.extensions[EXTENSION_KEY]


def _json_body() -> Mapping[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, Mapping):
        raise BadRequest("Request JSON must be an object")
    return payload


def _duplicate(error: DuplicateSnapshotNameError) -> tuple[Any, int]:
    return duplicate_name(error.name, str(error))


@blueprint.get("")
def list_snapshots() -> tuple[Any, int]:
    records = get_snapshot_repository().list()
    payload = {"snapshots": [record.to_dict(include_payload=False) for record in records]}
    return jsonify(payload), HTTPStatus.OK


@blueprint.post("")
def create_snapshot() -> tuple[Any, int]:
    """Calculate the submitted input and store it under a unique name."""

    body = _json_body()
    tax_input = body.get("input")
    if not isinstance(tax_input, Mapping):
        raise BadRequest("Request body must include an 'input' mapping")

    repository = get_snapshot_repository()
    result = calculate_tax(tax_input, snapshot_lookup=repository.get)
    year = result["summary"]["year"]
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        name = repository.generate_name(year)

    try:
        record = repository.save(
            name, year, dict(tax_input), result["summary"], result["derived"]
        )
    except DuplicateSnapshotNameError as error:
        return _duplicate(error)

    return jsonify(record.to_dict()), HTTPStatus.CREATED


@blueprint.get("/name-suggestion")
def suggest_name() -> tuple[Any, int]:
    year = request.args.get("year", default=default_year(), type=int)
    name = get_snapshot_repository().generate_name(year)
    return jsonify({"year": year, "name": name}), HTTPStatus.OK


@blueprint.get("/<string:snapshot_id>")
def get_snapshot(snapshot_id: str) -> tuple[Any, int]:
    try:
        record = get_snapshot_repository().get(snapshot_id)
    except KeyError:
        return not_found("Snapshot not found")
    return jsonify(record.to_dict()), HTTPStatus.OK


@blueprint.patch("/<string:snapshot_id>")
def rename_snapshot(snapshot_id: str) -> tuple[Any, int]:
    name = _json_body().get("name")
    if not isinstance(name, str):
        raise BadRequest("Request body must include a 'name' string")

    try:
        record = get_snapshot_repository().rename(snapshot_id, name)
    except KeyError:
        return not_found("Snapshot not found")
    except DuplicateSnapshotNameError as error:
        return _duplicate(error)
    return jsonify(record.to_dict(include_payload=False)), HTTPStatus.OK


@blueprint.delete("/<string:snapshot_id>")
def delete_snapshot(snapshot_id: str) -> tuple[str, int]:
    get_snapshot_repository().delete(snapshot_id)
    return "", HTTPStatus.NO_CONTENT
