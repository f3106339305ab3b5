"""Unit tests for the hometown donation limit."""

from __future__ import annotations

from typing import Any

from jptaxsim.backend.app.localization import get_translator
from jptaxsim.backend.app.models import InsuranceTotals, TaxInput, TaxTotals
from jptaxsim.backend.app.services.calculators.donation import (
    SELF_PAY,
    adopted_limit,
    calculate_donation,
    deductible_limit,
)
from jptaxsim.backend.app.services.trace import TraceRecorder
from jptaxsim.backend.config.year_config import load_year_configuration


def _taxes(income_part: int, income_rate: float, resident_rate: float) -> TaxTotals:
    return TaxTotals(
        taxable_general=0,
        income_tax_rate=income_rate,
        income_tax_general=0,
        income_tax_total=0,
        resident_rate=resident_rate,
        resident_taxable=0,
        resident_income_part=income_part,
        resident_total=0,
        separate_tax=0,
    )


def _input(**sections: Any) -> TaxInput:
    return TaxInput.model_validate({"year": 2024, **sections})


def test_deductible_limit_solves_for_the_special_share_cap() -> None:
    assert deductible_limit(100_000, 0.5, 0.25) == 80_000
    assert deductible_limit(0, 0.5, 0.25) == 0


def test_deductible_limit_is_zero_without_headroom() -> None:
    assert deductible_limit(100_000, 0.75, 0.25) == 0


def test_adopted_limit_prefers_the_lowest_positive_quote() -> None:
    assert adopted_limit(82_000, [90_000, 0, 70_000]) == 70_000
    assert adopted_limit(82_000, [90_000, 110_000]) == 82_000
    assert adopted_limit(82_000, []) == 82_000
    assert adopted_limit(82_000, [0]) == 82_000


def test_calculate_donation_records_limit_and_breakdown() -> None:
    rules = load_year_configuration(2024)
    trace = TraceRecorder(get_translator("ja"))
    tax_input = _input(comparison_sites=[{"id": "s1", "name": "A", "amount": 75_000}])

    result = calculate_donation(
        tax_input, rules, trace, _taxes(100_000, 0.5, 0.25), InsuranceTotals()
    )

    assert result.deductible == 80_000
    assert result.donation_limit == 80_000 + SELF_PAY
    assert result.adopted_limit == 75_000
    assert trace.find("furusato.breakdown.income_tax").result == 40_000
    assert trace.find("furusato.breakdown.resident_base").result == 20_000
    assert trace.find("furusato.breakdown.resident_special").result == 20_000
    deductible_line = trace.find("furusato.deductible.limit")
    assert deductible_line.notes == [
        get_translator("ja")("notes.furusato.special_check", status="OK")
    ]


def test_special_share_above_cap_is_flagged_not_clamped() -> None:
    rules = load_year_configuration(2024)
    translator = get_translator("en")
    trace = TraceRecorder(translator)

    result = calculate_donation(
        _input(), rules, trace, _taxes(10_000, 0.33, 0.1), InsuranceTotals()
    )

    assert result.deductible == 3_508
    assert trace.find("furusato.breakdown.income_tax").result == 1_157
    assert trace.find("furusato.breakdown.resident_base").result == 350
    assert trace.find("furusato.breakdown.resident_special").result == 2_001
    assert trace.find("furusato.deductible.limit").notes == [
        translator("notes.furusato.special_check", status="NG")
    ]


def test_nhi_relief_reference_lines_are_added_when_nhi_is_paid() -> None:
    rules = load_year_configuration(2024)
    trace = TraceRecorder(get_translator("ja"))

    calculate_donation(
        _input(), rules, trace, _taxes(100_000, 0.5, 0.25), InsuranceTotals(nhi=100_000)
    )

    assert trace.find("diff.nhi.reduction_info").display == "info"
    assert trace.find("diff.nhi.reduction70").result == -70_000
    assert trace.find("diff.nhi.reduction50").result == -50_000
    assert trace.find("diff.nhi.reduction20").result == -20_000


def test_nhi_relief_lines_are_skipped_without_nhi() -> None:
    rules = load_year_configuration(2024)
    trace = TraceRecorder(get_translator("ja"))

    calculate_donation(
        _input(), rules, trace, _taxes(100_000, 0.5, 0.25), InsuranceTotals(si=500_000)
    )

    assert not [line for line in trace.lines if line.section == "diff"]


def test_nhi_relief_rounds_the_remaining_share() -> None:
    rules = load_year_configuration(2024)
    trace = TraceRecorder(get_translator("ja"))

    calculate_donation(
        _input(), rules, trace, _taxes(100_000, 0.5, 0.25), InsuranceTotals(nhi=45)
    )

    # 45 * 0.7 rounds to 31, while 45 less its 30% remainder rounds to 32.
    assert trace.find("diff.nhi.reduction70").result == -32
    assert trace.find("diff.nhi.reduction50").result == -23
