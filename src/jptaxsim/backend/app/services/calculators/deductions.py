"""Income deductions for the national and resident tax regimes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from jptaxsim.backend.app.models import (
    DeductionTotals,
    IncomeTotals,
    InsuranceTotals,
    TaxInput,
)
from jptaxsim.backend.config.year_config import (
    BasicDeductionTable,
    Formula,
    FormulaKind,
    LifeInsuranceBracket,
    MedicalDeductionConfig,
    RuleYear,
)

from .utils import floor_yen, format_yen, select_bracket

if TYPE_CHECKING:
    from jptaxsim.backend.app.services.trace import TraceRecorder

LIFE_CATEGORIES = ("general", "nursing_medical", "pension")
_REGIME_KEYS = {"national": "income_tax", "resident": "resident_tax"}


def basic_deduction(total_income: int, table: BasicDeductionTable) -> int:
    row = select_bracket(total_income, table.brackets)
    return row.deduction if row is not None else 0


def resident_basic_deduction(total_income: int, rules: RuleYear, national_basic: int) -> int:
    """Return the resident tax basic deduction.

    Years without their own resident table use the national amount minus a
    fixed offset.
    """

    resident = rules.resident_tax
    if resident.basic_deduction is not None:
        return basic_deduction(total_income, resident.basic_deduction)
    return max(0, national_basic - resident.basic_deduction_offset)


def life_insurance_category(paid: int, brackets: Sequence[LifeInsuranceBracket]) -> int:
    """Return the deduction for one life insurance category."""

    row = select_bracket(paid, brackets)
    if row is None:
        return 0
    return floor_yen(row.formula.evaluate(paid))


def medical_deduction(
    tax_input: TaxInput, total_income: int, config: MedicalDeductionConfig
) -> tuple[int, int]:
    """Return ``(deduction, threshold)`` for the medical expense deduction."""

    medical = tax_input.deductions.medical
    paid = medical.treatment + medical.transport + medical.other
    net_paid = max(0, paid - medical.reimbursed)
    threshold = min(config.threshold_fixed, floor_yen(total_income * config.threshold_rate))
    if not medical.enabled:
        return 0, threshold
    return max(0, min(config.cap, net_paid - threshold)), threshold


def describe_formula(formula: Formula, trace: TraceRecorder) -> str:
    """Render a life insurance tier formula as readable text."""

    if formula.kind is FormulaKind.FIXED:
        return trace.text("formula.fixed", value=format_yen(formula.value or 0))

    rate = formula.rate or 0.0
    if rate == 1 and not formula.add:
        return trace.text("formula.full")
    divisor = 1 / rate if rate else 0
    if divisor and float(divisor).is_integer():
        return trace.text(
            "formula.divided", divisor=int(divisor), add=format_yen(formula.add)
        )
    return trace.text("formula.scaled", rate=rate, add=format_yen(formula.add))


def _life_regime(
    tax_input: TaxInput, rules: RuleYear, trace: TraceRecorder, regime: str
) -> int:
    config = getattr(rules.life_insurance_deduction, regime)
    regime_key = _REGIME_KEYS[regime]
    regime_label = trace.text(f"labels.regime.{regime_key}")
    paid = tax_input.deductions.life_insurance

    amounts: dict[str, int] = {}
    for category in LIFE_CATEGORIES:
        category_paid = getattr(paid, category)
        brackets = config.brackets_for(category)
        amount = life_insurance_category(category_paid, brackets)
        amounts[category] = amount
        row = select_bracket(category_paid, brackets)
        trace.add(
            "deduction",
            "trace.deduction.life_category",
            [trace.yen("premium_paid", category_paid), trace.yen("deduction_amount", amount)],
            expression=describe_formula(row.formula, trace) if row is not None else None,
            result=amount,
            result_key=f"deduction.life_insurance.{category}.{regime_key}",
            category=trace.text(f"labels.life.{category}"),
            regime=regime_label,
        )

    total = min(config.total_cap, sum(amounts.values()))
    trace.add(
        "deduction",
        "trace.deduction.life_total",
        [
            *(
                trace.yen("", amounts[category], label=trace.text(f"labels.life.{category}"))
                for category in LIFE_CATEGORIES
            ),
            trace.yen("cap", config.total_cap),
        ],
        result=total,
        result_key=f"deduction.life_insurance.{regime_key}",
        regime=regime_label,
        cap=format_yen(config.total_cap),
    )
    return total


def _earthquake(
    tax_input: TaxInput, trace: TraceRecorder, regime: str, cap: int
) -> int:
    paid = tax_input.deductions.earthquake
    amount = min(cap, paid)
    regime_key = _REGIME_KEYS[regime]
    trace.add(
        "deduction",
        "trace.deduction.earthquake",
        [trace.yen("amount_paid", paid), trace.yen("cap", cap)],
        result=amount,
        result_key=f"deduction.earthquake.{regime_key}",
        regime=trace.text(f"labels.regime.{regime_key}"),
        cap=format_yen(cap),
    )
    return amount


def calculate_deductions(
    tax_input: TaxInput,
    rules: RuleYear,
    trace: TraceRecorder,
    income: IncomeTotals,
    insurance: InsuranceTotals,
) -> DeductionTotals:
    """Compute every income deduction and record the derivation."""

    total_income = income.total_general
    basic = basic_deduction(total_income, rules.income_tax.basic_deduction)
    resident_basic = resident_basic_deduction(total_income, rules, basic)

    trace.add(
        "deduction",
        "trace.deduction.basic",
        [trace.yen("total_income", total_income)],
        result=basic,
        result_key="deduction.basic",
    )
    trace.add(
        "deduction",
        "trace.deduction.basic_resident",
        [trace.yen("total_income", total_income), trace.yen("basic_deduction", basic)],
        expression=(
            None
            if rules.resident_tax.basic_deduction is not None
            else trace.text(
                "trace.deduction.basic_resident.offset_expression",
                offset=format_yen(rules.resident_tax.basic_deduction_offset),
            )
        ),
        result=resident_basic,
        result_key="deduction.basic.resident",
    )

    social = insurance.social_insurance
    trace.add(
        "deduction",
        "trace.deduction.social_insurance",
        [
            trace.yen("si", insurance.si),
            trace.yen("nhi", insurance.nhi),
            trace.yen("np", insurance.np),
        ],
        result=social,
        result_key="deduction.social_insurance.total",
    )

    elective = tax_input.deductions
    for key, amount in (
        ("ideco", elective.ideco),
        ("small_biz_mutual_aid", elective.small_biz_mutual_aid),
        ("safety_mutual_aid", elective.safety_mutual_aid),
    ):
        trace.add(
            "deduction",
            f"trace.deduction.{key}",
            [trace.yen("contribution", amount)],
            result=amount,
            result_key=f"deduction.{key}",
        )

    life_national = _life_regime(tax_input, rules, trace, "national")
    life_resident = _life_regime(tax_input, rules, trace, "resident")

    earthquake_config = rules.earthquake_deduction
    earthquake_national = _earthquake(tax_input, trace, "national", earthquake_config.cap)
    earthquake_resident = _earthquake(
        tax_input, trace, "resident", earthquake_config.resident_cap
    )

    medical_config = rules.medical_deduction
    medical, threshold = medical_deduction(tax_input, total_income, medical_config)
    medical_input = elective.medical
    if medical_input.enabled:
        trace.add(
            "deduction",
            "trace.deduction.medical",
            [
                trace.yen("treatment", medical_input.treatment),
                trace.yen("transport", medical_input.transport),
                trace.yen("other", medical_input.other),
                trace.yen("reimbursed", medical_input.reimbursed),
                trace.yen("total_income", total_income),
                trace.yen("threshold", threshold),
                trace.yen("cap", medical_config.cap),
            ],
            result=medical,
            result_key="deduction.medical",
        )
    else:
        trace.add(
            "deduction",
            "trace.deduction.medical_off",
            display="info",
            result_key="deduction.medical.off",
        )

    totals = DeductionTotals(
        basic=basic,
        resident_basic=resident_basic,
        social_insurance=social,
        ideco=elective.ideco,
        small_biz_mutual_aid=elective.small_biz_mutual_aid,
        safety_mutual_aid=elective.safety_mutual_aid,
        life_national=life_national,
        life_resident=life_resident,
        earthquake_national=earthquake_national,
        earthquake_resident=earthquake_resident,
        medical=medical,
    )

    trace.add(
        "deduction",
        "trace.deduction.total",
        [
            trace.yen("basic_deduction", basic),
            trace.yen("social_insurance", social),
            trace.yen("ideco", elective.ideco),
            trace.yen("small_biz_mutual_aid", elective.small_biz_mutual_aid),
            trace.yen("safety_mutual_aid", elective.safety_mutual_aid),
            trace.yen("medical", medical),
            trace.yen("life_income_tax", life_national),
            trace.yen("earthquake_income_tax", earthquake_national),
        ],
        result=totals.national_total,
        result_key="deduction.total",
    )

    return totals


__all__ = [
    "LIFE_CATEGORIES",
    "basic_deduction",
    "calculate_deductions",
    "describe_formula",
    "life_insurance_category",
    "medical_deduction",
    "resident_basic_deduction",
]
