"""Expose translation catalogues to front-end consumers."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from jptaxsim.backend.app.localization import load_translations

blueprint = Blueprint("translations", __name__, url_prefix="/api/v1/translations")


@blueprint.get("/")
def get_default_translations():
    """Return translations for the requested or default locale."""

    payload = load_translations(request.args.get("locale"))
    return jsonify(payload), 200


@blueprint.get("/<locale>")
def get_locale_translations(locale: str):
    payload = load_translations(locale)
    return jsonify(payload), 200
