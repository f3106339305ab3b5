"""Serialise calculation results into Flask responses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Tuple

from flask import jsonify

if TYPE_CHECKING:
    from jptaxsim.backend.app.models import TaxInput

ResponseTuple = Tuple[Any, int]


def build_calculation_response(
    payload: Mapping[str, Any], *, status: int = 200
) -> ResponseTuple:
    """Return a Flask JSON response for the calculation ``payload``."""

    return jsonify(payload), status


def build_demo_response(tax_input: "TaxInput", result: Mapping[str, Any]) -> ResponseTuple:
    """Pair the demo household with its calculation so a form can be prefilled."""

    return build_calculation_response(
        {"input": tax_input.model_dump(mode="json"), "result": result}
    )


__all__ = ["ResponseTuple", "build_calculation_response", "build_demo_response"]
