"""REST endpoints for tax calculations."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from jptaxsim.backend.app.services.calculation_service import calculate_tax
from jptaxsim.backend.app.services.samples import create_demo_input
from jptaxsim.backend.config.year_config import default_year
from jptaxsim.backend.services.request_parser import (
    parse_calculation_payload,
    resolve_locale,
)
from jptaxsim.backend.services.response_builder import (
    build_calculation_response,
    build_demo_response,
)

from .snapshots import get_snapshot_repository

blueprint = Blueprint("calculations", __name__, url_prefix="/api/v1")


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Create a tax calculation using the submitted JSON payload."""

    payload = parse_calculation_payload(request)
    result = calculate_tax(payload, snapshot_lookup=get_snapshot_repository().get)

    return build_calculation_response(result)


@blueprint.get("/calculations/demo")
def demo_calculation() -> tuple[Any, int]:
    """Return the demo household input together with its calculation."""

    year = request.args.get("year", default=default_year(), type=int)
    demo = create_demo_input(year).model_copy(update={"locale": resolve_locale(request)})
    result = calculate_tax(demo)

    return build_demo_response(demo, result)
