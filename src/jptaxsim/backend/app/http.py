"""JSON error bodies returned by the calculation and snapshot endpoints.

Every failure is reported as ``{"error": <code>, "message": ...}`` with
endpoint specific extras, e.g. the field issues of an ``input_invalid``
response or the clashing name of a ``duplicate_name`` conflict.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from flask import jsonify


@dataclass(frozen=True)
class ProblemResponse:
    error: str
    status: int
    message: str | None = None
    extra: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        if self.extra:
            payload.update(self.extra)
        return payload

    def to_response(self) -> tuple[Any, int]:
        return jsonify(self.as_dict()), int(self.status)


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    return ProblemResponse(error=error, status=status, message=message, extra=extra or None)


def not_found(message: str) -> tuple[Any, int]:
    return problem_response(
        "not_found", status=HTTPStatus.NOT_FOUND, message=message
    ).to_response()


def duplicate_name(name: str, message: str) -> tuple[Any, int]:
    """Report a snapshot name that is already taken."""

    return problem_response(
        "duplicate_name", status=HTTPStatus.CONFLICT, message=message, name=name
    ).to_response()


def input_invalid(
    message: str,
    errors: Iterable[Mapping[str, Any]],
    warnings: Iterable[Mapping[str, Any]] = (),
) -> tuple[Any, int]:
    """Report field issues so a form can mark each offending input.

    ``errors`` and ``warnings`` are ``{"field", "message"}`` mappings; the
    warnings are returned too so the client does not need a second request.
    """

    return problem_response(
        "input_invalid",
        status=HTTPStatus.UNPROCESSABLE_ENTITY,
        message=message,
        errors=[dict(issue) for issue in errors],
        warnings=[dict(issue) for issue in warnings],
    ).to_response()


__all__ = [
    "ProblemResponse",
    "duplicate_name",
    "input_invalid",
    "not_found",
    "problem_response",
]
