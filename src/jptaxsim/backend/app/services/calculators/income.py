"""Income aggregation across salary, business and stock income."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jptaxsim.backend.app.models import IncomeTotals, TaxInput
from jptaxsim.backend.config.year_config import RuleYear, SalaryIncomeDeductionTable

from .utils import floor_yen, select_bracket

if TYPE_CHECKING:
    from jptaxsim.backend.app.services.trace import TraceRecorder


def salary_income_deduction(gross: int, table: SalaryIncomeDeductionTable) -> int:
    """Return the employment income deduction for ``gross`` salary."""

    row = select_bracket(gross, table.brackets)
    if row is None:
        return table.minimum
    return max(table.minimum, floor_yen(row.formula.evaluate(gross)))


def calculate_income(
    tax_input: TaxInput, rules: RuleYear, trace: TraceRecorder
) -> IncomeTotals:
    """Aggregate the year's income and record each step on ``trace``."""

    salary = tax_input.salary
    salary_gross = sum(source.annual for source in salary.sources) if salary.enabled else 0

    # One line per payer, even when salary is switched off, so the form and the
    # trace stay aligned.
    for source in salary.sources:
        trace.add(
            "income.salary",
            "trace.income.salary_source",
            [trace.yen("annual", source.annual)],
            result=source.annual,
            result_key=f"income.salary.source.{source.id}.annual",
            name=source.name or source.id,
        )

    trace.add(
        "income.salary",
        "trace.income.salary_gross",
        [
            trace.yen("annual", source.annual, label=source.name or source.id)
            for source in salary.sources
        ],
        result=salary_gross,
        result_key="income.salary.gross_total",
    )

    deduction_table = rules.income_tax.salary_income_deduction
    salary_deduction = (
        salary_income_deduction(salary_gross, deduction_table) if salary.enabled else 0
    )
    salary_income = max(0, salary_gross - salary_deduction) if salary.enabled else 0

    trace.add(
        "income.salary",
        "trace.income.salary_deduction",
        [
            trace.yen("salary_gross", salary_gross),
            trace.yen("minimum_guarantee", deduction_table.minimum),
        ],
        result=salary_deduction,
        result_key="income.salary.deduction",
    )
    trace.add(
        "income.salary",
        "trace.income.salary_income",
        [
            trace.yen("salary_gross", salary_gross),
            trace.yen("salary_deduction", salary_deduction),
        ],
        result=salary_income,
        result_key="income.salary.income",
    )

    business = tax_input.business
    blue = business.blue_return
    blue_deduction = (
        rules.blue_deduction.amount_for(blue.mode)
        if business.enabled and blue.enabled
        else 0
    )
    business_income = (
        business.sales - business.expenses - blue_deduction if business.enabled else 0
    )
    blue_note = f"notes.blue.{blue.mode}" if blue.enabled else "notes.blue.none"

    trace.add(
        "income.business",
        "trace.income.business",
        [
            trace.yen("sales", business.sales),
            trace.yen("expenses", business.expenses),
            trace.yen("blue_deduction", blue_deduction),
        ],
        result=business_income,
        result_key="income.business.income",
        notes=[trace.text(blue_note)],
    )

    dividend = tax_input.stocks.dividend
    capital_gain = tax_input.stocks.capital_gain
    totals = IncomeTotals(
        salary_gross=salary_gross,
        salary_deduction=salary_deduction,
        salary_income=salary_income,
        blue_deduction=blue_deduction,
        business_income=business_income,
        stock_general_dividend=dividend.amount if dividend.tax_mode == "general" else 0,
        stock_general_capital_gain=(
            capital_gain.amount if capital_gain.tax_mode == "general" else 0
        ),
        stock_separate_dividend=dividend.amount if dividend.tax_mode == "separate" else 0,
        stock_separate_capital_gain=(
            capital_gain.amount if capital_gain.tax_mode == "separate" else 0
        ),
    )

    trace.add(
        "income.stock.general",
        "trace.income.stock_general",
        [
            trace.yen("dividend_general", totals.stock_general_dividend),
            trace.yen("capital_gain_general", totals.stock_general_capital_gain),
        ],
        result=totals.stock_general_income,
        result_key="income.stock.general_income",
    )
    trace.add(
        "income.general",
        "trace.income.general_total",
        [
            trace.yen("salary_income", salary_income),
            trace.yen("business_income", business_income),
            trace.yen("stock_general", totals.stock_general_income),
        ],
        result=totals.total_general,
        result_key="income.general.total",
    )

    return totals


__all__ = ["calculate_income", "salary_income_deduction"]
