"""Tests for the localisation catalogue helpers."""

from __future__ import annotations

import json
from pathlib import Path

from jptaxsim.backend.app.localization import (
    get_translator,
    load_translations,
    normalise_locale,
)

TRANSLATIONS_ROOT = Path(__file__).resolve().parents[2] / "src" / "jptaxsim" / "translations"


def _read_backend_value(locale: str, key: str) -> str:
    payload = json.loads(
        TRANSLATIONS_ROOT.joinpath(f"{locale}.json").read_text(encoding="utf-8")
    )
    return str(payload["backend"][key])


def test_get_translator_loads_shared_catalogue() -> None:
    """The translator should pull labels from the shared JSON catalogue."""

    translator = get_translator("en")

    expected = _read_backend_value("en", "trace.income.business.title")
    assert translator("trace.income.business.title") == expected


def test_get_translator_falls_back_to_default_locale() -> None:
    """Unknown locales should fall back to the Japanese catalogue."""

    translator = get_translator("fr")

    assert translator.locale == "ja"
    expected = _read_backend_value("ja", "trace.income.business.title")
    assert translator("trace.income.business.title") == expected


def test_translator_fills_placeholders() -> None:
    translator = get_translator("en")

    message = translator("warnings.np.needs_update", year=2027)

    assert "2027" in message
    assert "{year}" not in message


def test_translator_returns_key_for_unknown_message() -> None:
    assert get_translator("ja")("no.such.key") == "no.such.key"


def test_normalise_locale_accepts_regional_variants() -> None:
    assert normalise_locale("en-US") == "en"
    assert normalise_locale("ja_JP") == "ja"
    assert normalise_locale(None) == "ja"
    assert normalise_locale("de") == "ja"


def test_load_translations_exposes_catalogue_payload() -> None:
    """The API helper should expose both backend and frontend catalogues."""

    payload = load_translations("en")

    assert payload["locale"] == "en"
    assert {"en", "ja"} <= set(payload["available_locales"])
    assert payload["backend"]["notes.blue.book"] == _read_backend_value(
        "en", "notes.blue.book"
    )
    assert isinstance(payload["frontend"], dict)
    assert payload["fallback"]["locale"] == "ja"
    assert payload["fallback"]["backend"]["notes.blue.book"] == _read_backend_value(
        "ja", "notes.blue.book"
    )


def test_catalogues_share_the_same_keys() -> None:
    ja = json.loads(TRANSLATIONS_ROOT.joinpath("ja.json").read_text(encoding="utf-8"))
    en = json.loads(TRANSLATIONS_ROOT.joinpath("en.json").read_text(encoding="utf-8"))

    assert set(ja["backend"]) == set(en["backend"])
    assert set(ja["frontend"]) == set(en["frontend"])
