"""Unit tests for the calculation service."""

from __future__ import annotations

import math
from copy import deepcopy
from typing import Any

import pytest

from jptaxsim.backend.app.models import TaxInput
from jptaxsim.backend.app.services.calculation_service import calculate_all, calculate_tax
from jptaxsim.backend.app.services.snapshot_service import InMemorySnapshotRepository
from jptaxsim.backend.app.services.validation import InputValidationError

SALARIED_2024: dict[str, Any] = {
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


def build_payload(**overrides: Any) -> dict[str, Any]:
    payload = deepcopy(SALARIED_2024)
    payload.update(deepcopy(overrides))
    return payload


def _result_by_key(result: dict[str, Any], key: str) -> Any:
    for line in result["calc_lines"]:
        if line["result_key"] == key:
            return line["result"]
    raise AssertionError(f"No line recorded for {key}")


def test_salaried_taxpayer_end_to_end() -> None:
    result = calculate_tax(build_payload())

    summary = result["summary"]
    assert summary["year"] == 2024
    assert summary["income_tax_general"] == 140_500
    assert summary["resident_tax_total"] == 248_000
    assert summary["separate_tax_stock"] == 0
    assert summary["social_insurance_deduction"] == 700_000

    deductible = math.floor(math.floor(243_000 * 0.2) / (1 - 0.1 - 0.1))
    assert summary["furusato_donation_limit"] == deductible + 2_000
    assert summary["adopted_limit"] == summary["furusato_donation_limit"]

    derived = result["derived"]
    assert derived["total_income_general"] == 3_560_000
    assert derived["taxable_income_general"] == 2_380_000
    assert derived["resident_income_part"] == 243_000
    assert derived["income_tax_rate"] == 0.1
    assert derived["social_insurance_total"] == 700_000
    assert derived["nhi_total"] == 0
    assert derived["np_total"] == 0

    assert _result_by_key(result, "income.salary.deduction") == 1_440_000
    assert _result_by_key(result, "deduction.basic.resident") == 430_000
    assert result["meta"] == {
        "year": 2024,
        "rule_year": 2024,
        "locale": "ja",
        "previous_year_total_income": None,
    }
    assert result["warnings"] == []


@pytest.mark.parametrize(("mode", "expected"), [("electronic", 3_150_000), ("book", 3_250_000)])
def test_business_only_taxpayer(mode: str, expected: int) -> None:
    payload = {
        "year": 2024,
        "business": {
            "enabled": True,
            "sales": 5_000_000,
            "expenses": 1_200_000,
            "blue_return": {"enabled": True, "mode": mode},
        },
        "insurance": {"mode": "national_only", "national": {}},
        "previous_year": {"mode": "manual", "total_income": 5_000_000},
    }

    result = calculate_tax(payload)

    assert result["derived"]["total_income_general"] == expected
    assert result["derived"]["nhi_total"] == 696_600
    assert result["derived"]["np_total"] == 16_980 * 12
    assert result["meta"]["previous_year_total_income"] == 5_000_000


def test_calc_line_ids_restart_for_every_calculation() -> None:
    first = calculate_tax(build_payload())
    second = calculate_tax(build_payload())

    ids = [line["id"] for line in first["calc_lines"]]
    assert ids[0] == "line-1"
    assert ids == [f"line-{index}" for index in range(1, len(ids) + 1)]
    assert [line["id"] for line in second["calc_lines"]] == ids


def test_calculation_is_deterministic() -> None:
    assert calculate_tax(build_payload()) == calculate_tax(build_payload())


def test_income_tax_does_not_fall_as_salary_rises() -> None:
    totals = []
    for annual in (2_000_000, 5_000_000, 8_000_000, 15_000_000, 30_000_000):
        payload = build_payload()
        payload["salary"]["sources"][0]["annual"] = annual
        totals.append(calculate_tax(payload)["summary"]["income_tax_general"])

    assert totals == sorted(totals)


def test_trace_follows_the_calculation_order() -> None:
    result = calculate_tax(build_payload())

    sections = [line["section"] for line in result["calc_lines"]]
    first_seen = list(dict.fromkeys(section.split(".")[0] for section in sections))
    assert first_seen == ["income", "insurance", "deduction", "taxable", "tax", "furusato"]


def test_locale_changes_titles_only() -> None:
    ja = calculate_tax(build_payload(locale="ja"))
    en = calculate_tax(build_payload(locale="en"))

    assert ja["summary"] == en["summary"]
    assert ja["calc_lines"][0]["title"] != en["calc_lines"][0]["title"]
    assert en["meta"]["locale"] == "en"


def test_previous_year_from_snapshot_feeds_nhi() -> None:
    repository = InMemorySnapshotRepository()
    record = repository.save(
        "2024", 2024, {}, {}, {"total_income_general": 100_000_000}
    )
    payload = {
        "year": 2025,
        "insurance": {"mode": "national_only", "national": {"nhi": {"mode": "estimate"}}},
        "previous_year": {"mode": "from_save", "snapshot_id": record.id},
    }

    result = calculate_tax(payload, snapshot_lookup=repository.get)

    assert result["derived"]["nhi_total"] == 1_090_000
    assert result["meta"]["previous_year_total_income"] == 100_000_000


BUSINESS_2025: dict[str, Any] = {
    "year": 2025,
    "business": {"enabled": True, "sales": 5_000_000, "expenses": 1_000_000},
    "insurance": {"mode": "national_only", "national": {"nhi": {"mode": "estimate"}}},
}


def _nhi_basis(result: dict[str, Any]) -> Any:
    for line in result["calc_lines"]:
        if line["result_key"] == "insurance.nhi.base.income":
            return line["terms"][0]["value"]
    raise AssertionError("NHI income line missing")


@pytest.mark.parametrize(
    "previous_year",
    [
        {"mode": "use_current", "total_income": 90_000_000},
        {"mode": "from_save", "snapshot_id": "gone", "total_income": 90_000_000},
    ],
)
def test_unresolved_previous_year_uses_current_income(previous_year: dict[str, Any]) -> None:
    repository = InMemorySnapshotRepository()
    payload = {**deepcopy(BUSINESS_2025), "previous_year": previous_year}

    result = calculate_tax(payload, snapshot_lookup=repository.get)

    assert result["derived"]["total_income_general"] == 4_000_000
    assert _nhi_basis(result) == 4_000_000
    assert result["meta"]["previous_year_total_income"] is None

    manual = calculate_tax(
        {**deepcopy(BUSINESS_2025), "previous_year": {"mode": "manual", "total_income": 4_000_000}}
    )
    assert result["derived"]["nhi_total"] == manual["derived"]["nhi_total"]


def test_warnings_are_returned_with_the_result() -> None:
    result = calculate_tax(build_payload(family={"dependent_count": 0, "preschool_count": 1}))

    assert [issue["field"] for issue in result["warnings"]] == ["family.dependent_count"]


def test_blocking_validation_errors_raise() -> None:
    payload = build_payload(previous_year={"mode": "none"})

    with pytest.raises(InputValidationError) as excinfo:
        calculate_tax(payload)

    assert [issue.field for issue in excinfo.value.errors] == ["previous_year.mode"]


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        (["not", "a", "mapping"], "mapping"),
        ({"salary": {}}, "tax year"),
        ({"year": 2024, "unexpected": True}, "unexpected"),
        ({"year": 2024, "deductions": {"ideco": -1}}, "cannot be negative"),
    ],
)
def test_malformed_payloads_raise_value_error(payload: Any, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        calculate_tax(payload)


def test_calculate_all_falls_back_to_default_rules() -> None:
    tax_input = TaxInput.model_validate({**build_payload(), "year": 1999})

    output = calculate_all(tax_input)

    assert output.summary.year == 1999
    assert output.summary.income_tax_general == 140_500


def test_np_months_are_reported_in_derived_values() -> None:
    payload = build_payload(
        insurance={
            "mode": "national_only",
            "national": {
                "nhi": {"mode": "manual", "amount": 200_000},
                "np": {"pay_months": 9, "exempt_months": 3},
            },
        }
    )

    derived = calculate_tax(payload)["derived"]

    assert derived["np_months_pay"] == 9
    assert derived["np_months_exempt"] == 3
    assert derived["np_total"] == 16_980 * 9
    assert derived["nhi_total"] == 200_000
