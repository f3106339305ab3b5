"""Hometown (furusato) donation limit.

The resident tax special share of the donation deduction may not exceed
``SPECIAL_SHARE_RATE`` of the resident tax income part. Solving for the
donation that exactly exhausts that cap gives::

    deductible = floor(floor(income_part * 0.2) / (1 - income_rate - resident_rate))

and the donation limit adds the ``SELF_PAY`` floor every donor carries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jptaxsim.backend.app.models import DonationResult, InsuranceTotals, TaxInput, TaxTotals
from jptaxsim.backend.config.year_config import RuleYear

from .utils import floor_yen, format_percentage, format_yen, round_yen

if TYPE_CHECKING:
    from jptaxsim.backend.app.services.trace import TraceRecorder

SPECIAL_SHARE_RATE = 0.2
SELF_PAY = 2000


def deductible_limit(income_part: int, income_rate: float, resident_rate: float) -> int:
    """Return the largest donation base whose special share fits the cap."""

    special_cap = floor_yen(income_part * SPECIAL_SHARE_RATE)
    denominator = 1 - income_rate - resident_rate
    if denominator <= 0:
        return 0
    return floor_yen(special_cap / denominator)


def adopted_limit(donation_limit: int, comparison_amounts: list[int]) -> int:
    """Return the lower of the computed limit and the smallest positive quote."""

    quotes = [amount for amount in comparison_amounts if amount > 0]
    if not quotes:
        return donation_limit
    return min(donation_limit, min(quotes))


def calculate_donation(
    tax_input: TaxInput,
    rules: RuleYear,
    trace: TraceRecorder,
    taxes: TaxTotals,
    insurance: InsuranceTotals,
) -> DonationResult:
    """Solve the donation limit and record the derivation."""

    income_part = taxes.resident_income_part
    income_rate = taxes.income_tax_rate
    resident_rate = taxes.resident_rate

    special_cap = floor_yen(income_part * SPECIAL_SHARE_RATE)
    deductible = deductible_limit(income_part, income_rate, resident_rate)
    donation_limit = deductible + SELF_PAY
    national_share = floor_yen(deductible * income_rate)
    resident_base_share = floor_yen(deductible * resident_rate)
    # Reported as-is; a special share above the cap is flagged, not clamped.
    resident_special_share = deductible - national_share - resident_base_share
    within_cap = "OK" if resident_special_share <= special_cap else "NG"

    deductible_term = trace.yen("deductible", deductible, key="furusato.deductible.limit")
    rate_label = format_percentage(resident_rate)

    trace.add(
        "furusato.limit",
        "trace.furusato.deductible",
        [
            trace.yen("resident_income_part", income_part),
            trace.rate("special_share_rate", SPECIAL_SHARE_RATE, display="20%(0.20)"),
            trace.rate("income_tax_rate", income_rate),
            trace.rate("resident_base_rate", resident_rate),
        ],
        result=deductible,
        result_key="furusato.deductible.limit",
        notes=[trace.text("notes.furusato.special_check", status=within_cap)],
        rate=rate_label,
    )
    trace.add(
        "furusato.limit",
        "trace.furusato.donation_limit",
        [deductible_term, trace.yen("self_pay", SELF_PAY)],
        result=donation_limit,
        result_key="furusato.donation.limit",
    )
    trace.add(
        "furusato.breakdown",
        "trace.furusato.income_tax",
        [deductible_term, trace.rate("income_tax_rate", income_rate)],
        result=national_share,
        result_key="furusato.breakdown.income_tax",
    )
    trace.add(
        "furusato.breakdown",
        "trace.furusato.resident_base",
        [deductible_term, trace.rate("resident_base_rate", resident_rate)],
        result=resident_base_share,
        result_key="furusato.breakdown.resident_base",
        rate=rate_label,
    )
    trace.add(
        "furusato.breakdown",
        "trace.furusato.resident_special",
        [
            deductible_term,
            trace.yen(
                "income_tax_credit", national_share, key="furusato.breakdown.income_tax"
            ),
            trace.yen(
                "resident_base_share",
                resident_base_share,
                key="furusato.breakdown.resident_base",
            ),
        ],
        result=resident_special_share,
        result_key="furusato.breakdown.resident_special",
        notes=[trace.text("notes.furusato.special_cap", cap=format_yen(special_cap))],
    )

    comparison_amounts = [site.amount for site in tax_input.comparison_sites]
    adopted = adopted_limit(donation_limit, comparison_amounts)
    quotes = [amount for amount in comparison_amounts if amount > 0]
    lowest_quote = min(quotes) if quotes else 0
    trace.add(
        "furusato.limit",
        "trace.furusato.comparison",
        [
            trace.yen(
                "site_minimum",
                lowest_quote,
                display=format_yen(lowest_quote) if quotes else trace.text("labels.not_entered"),
            ),
            trace.yen("this_tool", donation_limit),
        ],
        result=adopted,
        result_key="furusato.adopted",
        notes=[trace.text("notes.furusato.adopt_lower")],
    )

    _record_nhi_relief(rules, trace, insurance.nhi)

    return DonationResult(
        deductible=deductible, donation_limit=donation_limit, adopted_limit=adopted
    )


def _record_nhi_relief(rules: RuleYear, trace: TraceRecorder, nhi_total: int) -> None:
    """Add reference-only lines for the statutory NHI relief tiers."""

    if nhi_total <= 0:
        return

    trace.add(
        "diff",
        "trace.diff.nhi_relief_info",
        display="info",
        result_key="diff.nhi.reduction_info",
        notes=[trace.text("notes.nhi.relief_reference")],
    )
    for tier in rules.national_health_insurance.relief_tiers:
        reduction = round_yen(nhi_total - nhi_total * (1 - tier))
        if reduction <= 0:
            continue
        percent = round_yen(tier * 100)
        trace.add(
            "diff",
            "trace.diff.nhi_relief",
            [
                trace.yen("nhi", nhi_total),
                trace.rate("relief_rate", tier, display=f"{percent}%"),
                trace.rate("remaining_rate", 1 - tier, display=f"{100 - percent}%"),
            ],
            result=-reduction,
            result_key=f"diff.nhi.reduction{percent}",
            notes=[trace.text("notes.nhi.relief_tier", percent=percent, remaining=100 - percent)],
            percent=percent,
            remaining=100 - percent,
        )


__all__ = [
    "SELF_PAY",
    "SPECIAL_SHARE_RATE",
    "adopted_limit",
    "calculate_donation",
    "deductible_limit",
]
