"""Unit tests for calculation request parsing helpers."""

from __future__ import annotations

import pytest
from flask import Flask, request
from werkzeug.exceptions import BadRequest

from jptaxsim.backend.services.request_parser import (
    parse_calculation_payload,
    resolve_locale,
)


def test_parse_payload_uses_accept_language(app: Flask) -> None:
    """Accept-Language header should supply the locale when absent."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json={"year": 2024},
        headers={"Accept-Language": "en-US,en;q=0.9,ja;q=0.8"},
    ):
        payload = parse_calculation_payload(request)

    assert payload["locale"] == "en"


def test_parse_payload_preserves_explicit_locale(app: Flask) -> None:
    """Explicit locale fields should be normalised without overrides."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json={"year": 2024, "locale": "EN"},
        headers={"Accept-Language": "ja"},
    ):
        payload = parse_calculation_payload(request)

    assert payload["locale"] == "en"


def test_parse_payload_defaults_to_japanese(app: Flask) -> None:
    with app.test_request_context(
        "/api/v1/calculations", method="POST", json={"year": 2024}
    ):
        payload = parse_calculation_payload(request)

    assert payload["locale"] == "ja"


def test_parse_payload_rejects_non_object(app: Flask) -> None:
    """Non-object JSON payloads should trigger BadRequest responses."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json=["not", "an", "object"],
    ):
        with pytest.raises(BadRequest):
            parse_calculation_payload(request)


def test_parse_payload_rejects_invalid_json(app: Flask) -> None:
    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        data="{not json",
        content_type="application/json",
    ):
        with pytest.raises(BadRequest):
            parse_calculation_payload(request)


def test_resolve_locale_reads_query_string(app: Flask) -> None:
    with app.test_request_context("/api/v1/calculations/demo?locale=en"):
        assert resolve_locale(request) == "en"
