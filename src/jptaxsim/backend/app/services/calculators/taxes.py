"""National income tax, separate stock tax and resident tax."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jptaxsim.backend.app.models import DeductionTotals, IncomeTotals, TaxInput, TaxTotals
from jptaxsim.backend.config.year_config import RateTableRow, RuleYear

from .utils import floor_thousand, floor_yen, format_yen, select_bracket

if TYPE_CHECKING:
    from jptaxsim.backend.app.services.trace import TraceRecorder


def taxable_income(total_income: int, deductions: int) -> int:
    """Return taxable income with fractions below 1,000 yen dropped."""

    return floor_thousand(max(0, total_income - deductions))


def income_tax_row(taxable: int, rules: RuleYear) -> RateTableRow:
    rate_table = rules.income_tax.rate_table
    row = select_bracket(taxable, rate_table)
    return row if row is not None else rate_table[-1]


def progressive_income_tax(taxable: int, rate: float, row: RateTableRow) -> int:
    """Apply the quick-calculation table: ``taxable * rate - deduction``."""

    return max(0, floor_yen(taxable * rate - row.deduction))


def calculate_taxes(
    tax_input: TaxInput,
    rules: RuleYear,
    trace: TraceRecorder,
    income: IncomeTotals,
    deductions: DeductionTotals,
) -> TaxTotals:
    """Compute every tax amount and record the derivation."""

    overrides = tax_input.overrides
    total_income = income.total_general
    national_deductions = deductions.national_total

    taxable = taxable_income(total_income, national_deductions)
    trace.add(
        "taxable",
        "trace.tax.taxable",
        [
            trace.yen("total_income_general", total_income),
            trace.yen("deduction_total", national_deductions),
            trace.yen("calculated", max(0, total_income - national_deductions)),
        ],
        result=taxable,
        result_key="taxable.general",
        notes=[trace.text("notes.thousand_floor")],
    )

    row = income_tax_row(taxable, rules)
    income_rate = (
        overrides.income_tax_rate if overrides.income_tax_rate is not None else row.rate
    )
    income_tax_general = progressive_income_tax(taxable, income_rate, row)

    trace.add(
        "tax.income",
        "trace.tax.income_marginal",
        [
            trace.label("bracket", row.label),
            trace.rate("tax_rate", income_rate),
            trace.yen("quick_deduction", row.deduction),
        ],
        display="info",
        result_key="tax.income.marginal_rate",
    )
    trace.add(
        "tax.income",
        "trace.tax.income_general",
        [
            trace.yen("taxable_general", taxable),
            trace.rate("tax_rate", income_rate),
            trace.yen("quick_deduction", row.deduction),
        ],
        result=income_tax_general,
        result_key="tax.income.general",
    )

    resident = rules.resident_tax
    resident_rate = (
        overrides.resident_income_rate
        if overrides.resident_income_rate is not None
        else resident.income_rate
    )
    resident_deductions = deductions.resident_total
    resident_taxable = taxable_income(total_income, resident_deductions)
    resident_income_part = floor_yen(resident_taxable * resident_rate)

    stock = rules.separate_tax.stock
    separate_base = income.stock_separate_base
    separate_local = floor_yen(separate_base * stock.shares.local)
    resident_total = resident_income_part + resident.per_capita + separate_local

    trace.add(
        "tax.resident",
        "trace.tax.resident_marginal",
        [
            trace.label("municipality", resident.municipality),
            trace.rate("resident_rate", resident_rate),
        ],
        display="info",
        result_key="tax.resident.marginal_rate",
    )
    trace.add(
        "tax.resident",
        "trace.tax.resident_income_amount",
        [
            trace.yen("salary_income", income.salary_income),
            trace.yen("business_income", income.business_income),
            trace.yen("stock_general", income.stock_general_income),
        ],
        result=total_income,
        result_key="tax.resident.income_amount",
    )
    trace.add(
        "tax.resident",
        "trace.tax.resident_taxable",
        [
            trace.yen("income_amount", total_income),
            trace.yen("basic_deduction_resident", deductions.resident_basic),
            trace.yen("social_insurance", deductions.social_insurance),
            trace.yen("ideco", deductions.ideco),
            trace.yen("small_biz_mutual_aid", deductions.small_biz_mutual_aid),
            trace.yen("safety_mutual_aid", deductions.safety_mutual_aid),
            trace.yen("life_resident_tax", deductions.life_resident),
            trace.yen("earthquake_resident_tax", deductions.earthquake_resident),
            trace.yen("medical", deductions.medical),
            trace.yen("deduction_total", resident_deductions),
        ],
        result=resident_taxable,
        result_key="tax.resident.taxable_income",
        notes=[
            trace.text("notes.thousand_floor"),
            trace.text("notes.resident_regime_amounts"),
        ],
    )
    trace.add(
        "tax.resident",
        "trace.tax.resident_income_part",
        [
            trace.label("municipality", resident.municipality),
            trace.yen("resident_taxable", resident_taxable),
            trace.rate("resident_rate", resident_rate),
        ],
        result=resident_income_part,
        result_key="tax.resident.income_part",
        rate=f"{resident_rate * 100:g}%",
    )
    trace.add(
        "tax.resident",
        "trace.tax.resident_total",
        [
            trace.yen("income_part", resident_income_part),
            trace.yen("per_capita", resident.per_capita),
            trace.yen("separate_local", separate_local),
        ],
        result=resident_total,
        result_key="tax.resident.total",
    )

    separate_rate = (
        overrides.separate_tax_rate
        if overrides.separate_tax_rate is not None
        else stock.rate
    )
    separate_tax = floor_yen(separate_base * separate_rate)
    separate_national = floor_yen(separate_base * stock.shares.national)
    separate_surtax = floor_yen(separate_base * stock.shares.surtax)
    income_tax_total = income_tax_general + separate_national + separate_surtax

    trace.add(
        "tax.income",
        "trace.tax.income_total",
        [
            trace.yen("income_tax_general", income_tax_general),
            trace.yen("separate_national", separate_national),
            trace.yen("separate_surtax", separate_surtax),
        ],
        result=income_tax_total,
        result_key="tax.income.total",
    )
    trace.add(
        "tax.separate",
        "trace.tax.separate_stock",
        [
            trace.yen("dividend_separate", income.stock_separate_dividend),
            trace.yen("capital_gain_separate", income.stock_separate_capital_gain),
            trace.rate("tax_rate", separate_rate, digits=3),
        ],
        result=separate_tax,
        result_key="tax.separate.stock",
        notes=[
            trace.text("notes.separate.header", rate=f"{stock.rate * 100:.3f}%"),
            trace.text(
                "notes.separate.national",
                rate=f"{stock.shares.national * 100:.2f}%",
                amount=format_yen(separate_national),
            ),
            trace.text(
                "notes.separate.surtax",
                rate=f"{stock.shares.surtax * 100:.3f}%",
                amount=format_yen(separate_surtax),
            ),
            trace.text(
                "notes.separate.local",
                rate=f"{stock.shares.local * 100:.2f}%",
                amount=format_yen(separate_local),
            ),
        ],
        rate=f"{separate_rate * 100:.3f}%",
    )

    return TaxTotals(
        taxable_general=taxable,
        income_tax_rate=income_rate,
        income_tax_general=income_tax_general,
        income_tax_total=income_tax_total,
        resident_rate=resident_rate,
        resident_taxable=resident_taxable,
        resident_income_part=resident_income_part,
        resident_total=resident_total,
        separate_tax=separate_tax,
    )


__all__ = [
    "calculate_taxes",
    "income_tax_row",
    "progressive_income_tax",
    "taxable_income",
]
