"""Shared fixtures: an isolated Flask app and a salaried household payload."""

import sys
from copy import deepcopy
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from jptaxsim.backend.app import create_app  # noqa: E402

SNAPSHOT_ENV_VARS = ("JPTAXSIM_SNAPSHOT_DB", "JPTAXSIM_SNAPSHOT_CAPACITY")

SALARIED_PAYLOAD: dict[str, Any] = {
    "year": 2024,
    "salary": {
        "enabled": True,
        "sources": [{"id": "A", "name": "本業", "annual": 5_000_000}],
        "main_source_id": "A",
    },
    "insurance": {
        "mode": "employee_only",
        "employee": {"input_mode": "manual", "amount": 700_000},
    },
    "previous_year": {"mode": "use_current"},
}


@pytest.fixture()
def app(monkeypatch: pytest.MonkeyPatch) -> Flask:
    """Return an app whose snapshots live in memory for the test only."""

    for name in SNAPSHOT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    application = create_app()
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture()
def salaried_payload() -> dict[str, Any]:
    """A 5,000,000 yen salary with manual employee insurance of 700,000 yen."""

    return deepcopy(SALARIED_PAYLOAD)
