"""Application factory for jptaxsim backend services."""

import os
from warnings import warn

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from .http import input_invalid, problem_response
from .routes import register_routes
from .routes.config import get_configuration_metadata
from .routes.snapshots import init_snapshot_store
from .services.validation import InputValidationError


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert an environment variable into a normalised set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app() -> Flask:
    """Create and configure the Flask application instance."""

    app = Flask(__name__)
    app.json.ensure_ascii = False

    allowed_origins = _parse_allowed_origins(os.getenv("JPTAXSIM_ALLOWED_ORIGINS"))

    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=1,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type"],
    )

    init_snapshot_store(app)
    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Simple health check endpoint for infrastructure monitoring."""

        payload = {"status": "ok", **get_configuration_metadata()}
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        """Return consistent JSON responses for malformed payloads."""

        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(InputValidationError)
    def handle_input_validation_error(error: InputValidationError):
        """Report field-level problems so the form can mark each input."""

        return input_invalid(
            str(error),
            [issue.model_dump() for issue in error.errors],
            [issue.model_dump() for issue in error.warnings],
        )

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Gracefully surface domain validation errors to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    return app
