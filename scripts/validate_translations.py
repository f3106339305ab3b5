#!/usr/bin/env python3
"""Check that every translation catalogue matches the Japanese base catalogue."""

from __future__ import annotations

import argparse
import json
import re
import sys
from collections import defaultdict
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
TRANSLATIONS_DIR = REPO_ROOT / "src" / "jptaxsim" / "translations"
BASE_LOCALE = "ja"

PLACEHOLDER_PATTERN = re.compile(r"{\s*([a-zA-Z0-9_]+)\s*}")


class ValidationError(Exception):
    """Raised when validation detects unrecoverable issues."""


def _flatten_messages(tree: dict, prefix: str = "") -> dict[str, str]:
    items: dict[str, str] = {}
    for key, value in tree.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            items.update(_flatten_messages(value, path))
        else:
            items[path] = "" if value is None else str(value)
    return items


def load_catalogues(directory: Path = TRANSLATIONS_DIR) -> dict[str, dict[str, dict[str, str]]]:
    if not directory.is_dir():
        raise ValidationError(f"Missing translations directory: {directory}")

    catalogues: dict[str, dict[str, dict[str, str]]] = {}
    for path in sorted(directory.glob("*.json")):
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

        backend = payload.get("backend") or {}
        frontend = payload.get("frontend") or {}
        if not isinstance(backend, dict) or not isinstance(frontend, dict):
            raise ValidationError(
                f"Translation payload must define backend/frontend mappings: {path}"
            )
        catalogues[path.stem] = {
            "backend": _flatten_messages(backend),
            "frontend": _flatten_messages(frontend),
        }

    if not catalogues:
        raise ValidationError("No translation catalogues discovered")
    return catalogues


def missing_keys(catalogues: dict[str, dict[str, dict[str, str]]]) -> list[str]:
    issues: list[str] = []
    base = catalogues.get(BASE_LOCALE)
    if base is None:
        return [f"Base locale '{BASE_LOCALE}' is missing"]

    for section in ("backend", "frontend"):
        expected = set(base[section])
        for locale, payload in sorted(catalogues.items()):
            present = set(payload[section])
            missing = expected - present
            extra = present - expected
            if missing:
                issues.append(
                    f"Locale '{locale}' missing {len(missing)} {section} keys: "
                    f"{', '.join(sorted(missing))}"
                )
            if extra:
                issues.append(
                    f"Locale '{locale}' has {len(extra)} unknown {section} keys: "
                    f"{', '.join(sorted(extra))}"
                )
    return issues


def placeholder_inconsistencies(
    catalogues: dict[str, dict[str, dict[str, str]]],
) -> list[str]:
    placeholders: dict[tuple[str, str], dict[str, frozenset[str]]] = defaultdict(dict)
    for locale, sections in catalogues.items():
        for section, messages in sections.items():
            for key, message in messages.items():
                placeholders[(section, key)][locale] = frozenset(
                    PLACEHOLDER_PATTERN.findall(message)
                )

    issues: list[str] = []
    for (section, key), locale_map in sorted(placeholders.items()):
        if len(set(locale_map.values())) <= 1:
            continue
        details = ", ".join(
            f"{locale}={{{', '.join(sorted(values))}}}"
            for locale, values in sorted(locale_map.items())
        )
        issues.append(f"{section}:{key} placeholders differ: {details}")
    return issues


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--directory",
        type=Path,
        default=TRANSLATIONS_DIR,
        help="Directory holding the <locale>.json catalogues",
    )
    args = parser.parse_args(argv)

    try:
        catalogues = load_catalogues(args.directory)
    except ValidationError as error:
        print(error, file=sys.stderr)
        return 1

    issues = missing_keys(catalogues) + placeholder_inconsistencies(catalogues)
    for issue in issues:
        print(f"- {issue}")
    if issues:
        return 1

    print(f"{len(catalogues)} catalogues OK: {', '.join(sorted(catalogues))}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
