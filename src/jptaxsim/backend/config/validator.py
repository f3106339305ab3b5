"""Semantic validation helpers for fiscal year rule tables.

Schema-level checks (types, bracket ordering) happen while loading. The checks
here catch values that parse fine but are almost certainly data entry
mistakes, and report them in a contributor-friendly format.
"""

from __future__ import annotations

import argparse
from typing import Iterable, Sequence

from .schema import (
    FormulaKind,
    LifeInsuranceRegime,
    NationalHealthInsuranceConfig,
    RateTableRow,
    RuleYear,
)
from .year_config import available_years, load_year_configuration


def _format_scope(scope: str, message: str) -> str:
    return f"[{scope}] {message}"


def _validate_rate(scope: str, value: float) -> list[str]:
    if value < 0 or value > 1:
        return [_format_scope(scope, f"rate {value} must be between 0 and 1")]
    return []


def _validate_rate_table(rows: Sequence[RateTableRow]) -> list[str]:
    errors: list[str] = []
    previous_rate: float | None = None

    for index, row in enumerate(rows):
        if previous_rate is not None and row.rate < previous_rate:
            errors.append(
                _format_scope(
                    "income_tax.rate_table",
                    f"row {index} rate must not decrease along the table",
                )
            )
        previous_rate = row.rate
        if not row.label.strip():
            errors.append(
                _format_scope("income_tax.rate_table", f"row {index} is missing a label")
            )

    # Adjacent quick-calculation rows must agree at their shared boundary.
    for lower, upper in zip(rows, rows[1:]):
        if lower.upper_bound is None:
            continue
        boundary = lower.upper_bound + 1000
        lower_tax = boundary * lower.rate - lower.deduction
        upper_tax = boundary * upper.rate - upper.deduction
        if abs(lower_tax - upper_tax) > 1000:
            errors.append(
                _format_scope(
                    "income_tax.rate_table",
                    f"quick-calculation deduction discontinuity near {boundary}",
                )
            )

    return errors


def _validate_salary_deduction(config: RuleYear) -> list[str]:
    errors: list[str] = []
    table = config.income_tax.salary_income_deduction
    for index, row in enumerate(table.brackets):
        formula = row.formula
        if formula.kind is FormulaKind.LINEAR and (formula.rate or 0) > 1:
            errors.append(
                _format_scope(
                    "income_tax.salary_income_deduction",
                    f"row {index} coefficient exceeds 100% of salary",
                )
            )
        if row.upper_bound is not None and formula.evaluate(row.upper_bound) < 0:
            errors.append(
                _format_scope(
                    "income_tax.salary_income_deduction",
                    f"row {index} evaluates to a negative deduction",
                )
            )
    return errors


def _validate_life_insurance(scope: str, regime: LifeInsuranceRegime) -> list[str]:
    errors: list[str] = []
    if regime.total_cap < 0:
        errors.append(_format_scope(scope, "total cap must be non-negative"))

    for category in ("general", "nursing_medical", "pension"):
        brackets = regime.brackets_for(category)
        ceiling = brackets[-1].formula.evaluate(0)
        if ceiling > regime.total_cap:
            errors.append(
                _format_scope(
                    f"{scope}.{category}",
                    "per-category ceiling exceeds the regime total cap",
                )
            )
    return errors


def _validate_nhi(config: NationalHealthInsuranceConfig) -> list[str]:
    errors: list[str] = []
    for name, component in config.components.items():
        scope = f"national_health_insurance.{name}"
        errors.extend(_validate_rate(scope, component.income_rate))
        if component.per_capita < 0:
            errors.append(_format_scope(scope, "per-capita amount must be non-negative"))
        if component.cap <= 0:
            errors.append(_format_scope(scope, "annual cap must be positive"))
    if not config.care.age_banded:
        errors.append(
            _format_scope(
                "national_health_insurance.care",
                "care component must only count members aged 40-64",
            )
        )
    return errors


def _validate_sources(urls: Iterable[str], scope: str) -> list[str]:
    errors: list[str] = []
    for url in urls:
        if not str(url).startswith(("http://", "https://")):
            errors.append(_format_scope(scope, f"source '{url}' must be an absolute URL"))
    return errors


def validate_year_configuration(config: RuleYear) -> list[str]:
    """Return a list of validation issues for the provided rule table."""

    errors: list[str] = []

    errors.extend(_validate_rate_table(config.income_tax.rate_table))
    errors.extend(_validate_salary_deduction(config))

    pension = config.pension.national_pension_monthly
    if pension.value is None and not pension.needs_update:
        errors.append(
            _format_scope(
                "pension.national_pension_monthly",
                "missing value must be flagged with needs_update",
            )
        )
    errors.extend(
        _validate_sources(pension.sources, "pension.national_pension_monthly")
    )

    errors.extend(_validate_rate("resident_tax.income_rate", config.resident_tax.income_rate))
    errors.extend(_validate_rate("separate_tax.stock.rate", config.separate_tax.stock.rate))

    medical = config.medical_deduction
    errors.extend(_validate_rate("medical_deduction.threshold_rate", medical.threshold_rate))
    if medical.cap < medical.threshold_fixed:
        errors.append(
            _format_scope("medical_deduction", "cap must not be below the fixed threshold")
        )

    errors.extend(
        _validate_life_insurance(
            "life_insurance_deduction.national",
            config.life_insurance_deduction.national,
        )
    )
    errors.extend(
        _validate_life_insurance(
            "life_insurance_deduction.resident",
            config.life_insurance_deduction.resident,
        )
    )

    earthquake = config.earthquake_deduction
    if earthquake.resident_cap > earthquake.cap:
        errors.append(
            _format_scope(
                "earthquake_deduction",
                "resident cap must not exceed the national cap",
            )
        )

    blue = config.blue_deduction
    if blue.electronic < blue.book:
        errors.append(
            _format_scope(
                "blue_deduction",
                "electronic bookkeeping deduction must not be below the book amount",
            )
        )

    errors.extend(_validate_nhi(config.national_health_insurance))
    errors.extend(_validate_rate("defaults.si_rate", config.defaults.si_rate))

    meta_sources = config.meta.get("sources") or ()
    errors.extend(_validate_sources(meta_sources, "meta.sources"))

    return errors


def validate_all_years(years: Sequence[int] | None = None) -> dict[int, list[str]]:
    """Validate all configured years and return issues keyed by year."""

    targets = years or available_years()
    results: dict[int, list[str]] = {}

    for year in targets:
        config = load_year_configuration(year)
        results[int(year)] = validate_year_configuration(config)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate configured fiscal year rule tables and report issues "
            "helpful to contributors."
        )
    )
    parser.add_argument(
        "years",
        nargs="*",
        type=int,
        help="Specific years to validate (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    years = args.years or available_years()

    if not years:
        parser.print_help()
        return 1

    exit_code = 0

    for year in years:
        try:
            config = load_year_configuration(year)
        except FileNotFoundError as error:
            print(f"[{year}] failed to load rules: {error}")
            exit_code = 1
            continue

        issues = validate_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{year}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{year}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
