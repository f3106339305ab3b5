"""Cross-origin access for the form frontend calling the calculation API."""

from typing import Any

import pytest
from flask.testing import FlaskClient

from jptaxsim.backend.app import create_app

FORM_ORIGIN = "https://form.jptaxsim.test"
DISALLOWED_ORIGIN = "https://blocked.test"


@pytest.fixture()
def cors_client(monkeypatch: pytest.MonkeyPatch) -> FlaskClient:
    monkeypatch.setenv("JPTAXSIM_ALLOWED_ORIGINS", f" {FORM_ORIGIN} ,,")
    monkeypatch.delenv("JPTAXSIM_SNAPSHOT_DB", raising=False)

    app = create_app()
    app.config.update(TESTING=True)

    with app.test_client() as client:
        yield client


def test_calculation_response_allows_the_form_origin(
    cors_client: FlaskClient, salaried_payload: dict[str, Any]
) -> None:
    response = cors_client.post(
        "/api/v1/calculations", json=salaried_payload, headers={"Origin": FORM_ORIGIN}
    )

    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") == FORM_ORIGIN


def test_json_post_preflight_is_accepted(cors_client: FlaskClient) -> None:
    response = cors_client.options(
        "/api/v1/calculations",
        headers={
            "Origin": FORM_ORIGIN,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") == FORM_ORIGIN
    assert "POST" in response.headers.get("Access-Control-Allow-Methods", "")
    assert "content-type" in response.headers.get("Access-Control-Allow-Headers", "").lower()


@pytest.mark.parametrize("method", ["PATCH", "DELETE"])
def test_snapshot_edit_preflight_is_accepted(cors_client: FlaskClient, method: str) -> None:
    response = cors_client.options(
        "/api/v1/snapshots/some-id",
        headers={"Origin": FORM_ORIGIN, "Access-Control-Request-Method": method},
    )

    assert response.headers.get("Access-Control-Allow-Origin") == FORM_ORIGIN
    assert method in response.headers.get("Access-Control-Allow-Methods", "")


def test_disallowed_origin_gets_no_cors_headers(
    cors_client: FlaskClient, salaried_payload: dict[str, Any]
) -> None:
    response = cors_client.post(
        "/api/v1/calculations", json=salaried_payload, headers={"Origin": DISALLOWED_ORIGIN}
    )

    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") is None


def test_health_check_is_outside_the_cors_scope(cors_client: FlaskClient) -> None:
    response = cors_client.get("/health", headers={"Origin": FORM_ORIGIN})

    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") is None


def test_missing_allow_list_warns_and_blocks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JPTAXSIM_ALLOWED_ORIGINS", raising=False)

    with pytest.warns(UserWarning, match="No allowed origins"):
        app = create_app()

    response = app.test_client().get(
        "/api/v1/config/years", headers={"Origin": FORM_ORIGIN}
    )
    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") is None
