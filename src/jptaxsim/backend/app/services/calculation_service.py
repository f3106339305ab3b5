"""Orchestrate request validation, rule resolution and the tax calculators.

Each calculator is a plain function of the input, the rule table, the trace
recorder and the figures produced by the stages before it. This module threads
those figures through in order and packages the result, so the HTTP layer only
needs :func:`calculate_tax`.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from jptaxsim.backend.app.localization import get_translator
from jptaxsim.backend.app.models import (
    CalculationResponse,
    DerivedValues,
    EngineOutput,
    ResponseMeta,
    Summary,
    TaxInput,
    format_validation_error,
)
from jptaxsim.backend.config.year_config import RuleYear, resolve_rules

from .calculators import (
    calculate_deductions,
    calculate_donation,
    calculate_income,
    calculate_insurance,
    calculate_taxes,
)
from .previous_year import SnapshotLookup, resolve_previous_year
from .trace import TraceRecorder
from .validation import InputValidationError, validate_input

_LOGGER = logging.getLogger(__name__)


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("JPTAXSIM_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def calculate_all(
    tax_input: TaxInput,
    rules: RuleYear | None = None,
    *,
    previous_year_total_income: int | None = None,
) -> EngineOutput:
    """Run every calculator for ``tax_input`` and return the full trace.

    ``previous_year_total_income`` is the resolved figure fed to national
    health insurance estimates (see :func:`resolve_previous_year`); ``None``
    means the current year's general income is used.
    """

    if rules is None:
        rules = resolve_rules(tax_input.year)

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    trace = TraceRecorder(get_translator(tax_input.locale))

    with _profile_section("income", timings):
        income = calculate_income(tax_input, rules, trace)
    with _profile_section("insurance", timings):
        insurance = calculate_insurance(
            tax_input, rules, trace, income, previous_year_total_income
        )
    with _profile_section("deductions", timings):
        deductions = calculate_deductions(tax_input, rules, trace, income, insurance)
    with _profile_section("taxes", timings):
        taxes = calculate_taxes(tax_input, rules, trace, income, deductions)
    with _profile_section("donation", timings):
        donation = calculate_donation(tax_input, rules, trace, taxes, insurance)

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_all timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    summary = Summary(
        year=tax_input.year,
        income_tax_general=taxes.income_tax_total,
        resident_tax_total=taxes.resident_total,
        separate_tax_stock=taxes.separate_tax,
        social_insurance_deduction=deductions.social_insurance,
        furusato_donation_limit=donation.donation_limit,
        adopted_limit=donation.adopted_limit,
    )
    derived = DerivedValues(
        taxable_income_general=taxes.taxable_general,
        resident_income_part=taxes.resident_income_part,
        income_tax_rate=taxes.income_tax_rate,
        total_income_general=income.total_general,
        social_insurance_total=insurance.si,
        nhi_total=insurance.nhi,
        np_total=insurance.np,
        np_months_pay=insurance.np_pay_months,
        np_months_exempt=insurance.np_exempt_months,
        furusato_donation_limit=donation.donation_limit,
    )
    return EngineOutput(calc_lines=trace.lines, summary=summary, derived=derived)


def _parse_payload(payload: Mapping[str, Any] | TaxInput) -> TaxInput:
    if isinstance(payload, TaxInput):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Payload must be a mapping")
    if "year" not in payload:
        raise ValueError("Payload must include a tax year")
    try:
        return TaxInput.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


def calculate_tax(
    payload: Mapping[str, Any] | TaxInput,
    *,
    snapshot_lookup: SnapshotLookup | None = None,
) -> dict[str, Any]:
    """Validate ``payload``, run the calculation and return a JSON-ready dict.

    Raises :class:`ValueError` for malformed payloads and
    :class:`InputValidationError` when field checks report errors.
    """

    tax_input = _parse_payload(payload)

    validation = validate_input(tax_input)
    if not validation.is_valid:
        raise InputValidationError(validation)

    previous_total = resolve_previous_year(tax_input, snapshot_lookup)
    rules = resolve_rules(tax_input.year)
    output = calculate_all(tax_input, rules, previous_year_total_income=previous_total)

    response = CalculationResponse(
        calc_lines=output.calc_lines,
        summary=output.summary,
        derived=output.derived,
        warnings=validation.warnings,
        meta=ResponseMeta(
            year=tax_input.year,
            rule_year=rules.year,
            locale=get_translator(tax_input.locale).locale,
            previous_year_total_income=previous_total,
        ),
    )
    return response.model_dump(mode="json")


__all__ = ["calculate_all", "calculate_tax"]
