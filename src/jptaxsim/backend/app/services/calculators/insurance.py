"""Social insurance premiums under the three enrollment topologies.

Employee-scheme premiums are either typed in or estimated as a fixed share of
a reference salary. National health insurance (NHI) is estimated per component
from the previous year's general income and the household head count, and the
national pension is a flat monthly amount times the paid months. Mixed years
are split into employee and national blocks whose months add up to twelve.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from jptaxsim.backend.app.models import (
    EmployeeBlock,
    IncomeTotals,
    InsuranceTotals,
    NationalBlock,
    NhiHousehold,
    TaxInput,
)
from jptaxsim.backend.config.year_config import NationalHealthInsuranceConfig, RuleYear

from .utils import format_percentage, format_yen, prorate, round_yen

if TYPE_CHECKING:
    from jptaxsim.backend.app.services.trace import TraceRecorder


@dataclass(frozen=True)
class NhiComponentEstimate:
    """Prorated NHI figures for one component."""

    name: str
    income_rate: float
    per_capita: int
    heads: int
    income_raw: float
    income_part: float
    flat_part: float
    cap: float
    annual_cap: int
    amount: int


@dataclass(frozen=True)
class NhiEstimate:
    months: int
    previous_income: int
    components: tuple[NhiComponentEstimate, ...]

    @property
    def total(self) -> int:
        return sum(component.amount for component in self.components)


def resolve_reference_salary(
    tax_input: TaxInput, source_id: str | None, manual: int | None
) -> int:
    """Return the salary an employee-scheme estimate is based on.

    A designated payer wins when it exists, then a manual amount, then the sum
    of every salary source.
    """

    salary = tax_input.salary
    if source_id:
        for source in salary.sources:
            if source.id == source_id:
                return source.annual
    if manual is not None:
        return manual
    return sum(source.annual for source in salary.sources) if salary.enabled else 0


def estimate_employee_annual(reference_salary: int, rate: float) -> int:
    return round_yen(reference_salary * rate)


def estimate_nhi(
    previous_income: int,
    household: NhiHousehold,
    config: NationalHealthInsuranceConfig,
    months: int = 12,
) -> NhiEstimate:
    """Estimate NHI premiums for ``months`` of enrollment."""

    ratio = months / 12
    components: list[NhiComponentEstimate] = []
    for name, component in config.components.items():
        heads = (
            household.members_40_64
            if component.age_banded
            else household.members_including_taxpayer
        )
        cap = component.cap * ratio
        income_raw = previous_income * component.income_rate * ratio
        income_part = min(income_raw, cap)
        flat_part = heads * component.per_capita * ratio
        components.append(
            NhiComponentEstimate(
                name=name,
                income_rate=component.income_rate,
                per_capita=component.per_capita,
                heads=heads,
                income_raw=income_raw,
                income_part=income_part,
                flat_part=flat_part,
                cap=cap,
                annual_cap=component.cap,
                amount=round_yen(min(income_part + flat_part, cap)),
            )
        )
    return NhiEstimate(
        months=months, previous_income=previous_income, components=tuple(components)
    )


def _record_nhi_estimate(
    trace: TraceRecorder,
    estimate: NhiEstimate,
    *,
    scope: str,
    key_prefix: str,
    total_key: str,
    notes: list[str],
) -> None:
    months = estimate.months
    for component in estimate.components:
        label = trace.text(f"labels.nhi.{component.name}")
        cap_label = format_yen(component.annual_cap)
        heads_key = (
            "members_40_64" if component.name == "care" else "members_including_taxpayer"
        )
        trace.add(
            "insurance.nhi",
            "trace.insurance.nhi_income",
            [
                trace.yen("previous_income", estimate.previous_income),
                trace.rate(
                    "income_rate",
                    component.income_rate,
                    display=format_percentage(component.income_rate),
                ),
                trace.months("months", months),
                trace.yen("calculated", component.income_raw),
                trace.yen("cap", component.cap),
            ],
            result=component.income_part,
            result_key=f"{key_prefix}.{component.name}.income",
            scope=scope,
            component=label,
            rate=format_percentage(component.income_rate),
            cap=cap_label,
            months=months,
        )
        trace.add(
            "insurance.nhi",
            "trace.insurance.nhi_equal",
            [
                trace.count(heads_key, component.heads),
                trace.yen(
                    "per_capita",
                    component.per_capita,
                    display=trace.text(
                        "units.per_person", amount=format_yen(component.per_capita)
                    ),
                ),
                trace.months("months", months),
            ],
            result=component.flat_part,
            result_key=f"{key_prefix}.{component.name}.equal",
            scope=scope,
            component=label,
            heads=trace.text(f"terms.{heads_key}"),
            per_capita=format_yen(component.per_capita),
            months=months,
        )
        trace.add(
            "insurance.nhi",
            "trace.insurance.nhi_component",
            [
                trace.yen("income_part", component.income_part),
                trace.yen("equal_part", component.flat_part),
                trace.yen("cap", component.cap),
            ],
            result=component.amount,
            result_key=f"{key_prefix}.{component.name}",
            notes=[trace.text("notes.rounding_half_up")],
            scope=scope,
            component=label,
            cap=cap_label,
            months=months,
        )

    trace.add(
        "insurance.nhi",
        "trace.insurance.nhi_estimate_total",
        [
            trace.yen("", component.amount, label=trace.text(f"labels.nhi.{component.name}"))
            for component in estimate.components
        ],
        result=estimate.total,
        result_key=total_key,
        notes=notes,
        scope=scope,
    )


def _employee_only(
    tax_input: TaxInput, rules: RuleYear, trace: TraceRecorder
) -> InsuranceTotals:
    employee = tax_input.insurance.employee
    if employee is None:
        return InsuranceTotals()

    if employee.input_mode == "manual":
        amount = employee.amount or 0
        trace.add(
            "insurance.si",
            "trace.insurance.si_manual",
            [trace.yen("si_total", amount)],
            result=amount,
            result_key="insurance.si.employee.manual",
        )
        return InsuranceTotals(si=amount)

    reference = resolve_reference_salary(
        tax_input,
        employee.salary_source_id or tax_input.salary.main_source_id,
        employee.base_salary_manual,
    )
    rate = rules.defaults.si_rate
    annual = estimate_employee_annual(reference, rate)
    trace.add(
        "insurance.si",
        "trace.insurance.si_estimate",
        [trace.yen("main_salary_annual", reference), trace.rate("estimate_rate", rate)],
        result=annual,
        result_key="insurance.si.employee.annual_estimated",
    )
    return InsuranceTotals(si=annual)


def _national_only(
    tax_input: TaxInput, rules: RuleYear, trace: TraceRecorder, previous_income: int
) -> InsuranceTotals:
    national = tax_input.insurance.national
    if national is None:
        return InsuranceTotals()

    if national.nhi.mode == "manual":
        nhi = national.nhi.amount or 0
        trace.add(
            "insurance.nhi",
            "trace.insurance.nhi_manual",
            [trace.yen("nhi", nhi)],
            result=nhi,
            result_key="insurance.nhi.manual",
        )
    else:
        config = rules.national_health_insurance
        estimate = estimate_nhi(previous_income, tax_input.insurance.nhi_household, config)
        nhi = estimate.total
        _record_nhi_estimate(
            trace,
            estimate,
            scope=trace.text("labels.nhi_estimate"),
            key_prefix="insurance.nhi",
            total_key="insurance.nhi.estimate.total",
            notes=[
                trace.text("notes.nhi.estimate_basis", municipality=config.municipality),
                trace.text("notes.nhi.estimate_caveat"),
            ],
        )

    monthly = _pension_monthly(national.np.monthly_override, rules)
    pay_months = national.np.pay_months
    return InsuranceTotals(
        nhi=nhi,
        np=monthly * pay_months,
        np_pay_months=pay_months,
        np_exempt_months=national.np.exempt_months,
    )


def _employee_block(
    tax_input: TaxInput,
    rules: RuleYear,
    trace: TraceRecorder,
    block: EmployeeBlock,
    block_number: int,
) -> InsuranceTotals:
    totals = InsuranceTotals()
    for index, sub in enumerate(block.breakdown, start=1):
        key_prefix = f"insurance.si.block{block_number}.sub{index}"
        if sub.mode == "manual":
            amount = sub.amount or 0
            trace.add(
                "insurance.si",
                "trace.insurance.si_block_manual",
                [trace.months("months", sub.months)],
                result=amount,
                result_key=f"{key_prefix}.amount",
                block=block_number,
            )
            totals.si += amount
            continue

        reference = resolve_reference_salary(
            tax_input,
            sub.base_salary_source_id or tax_input.salary.main_source_id,
            sub.base_salary_manual,
        )
        rate = rules.defaults.si_rate
        annual = estimate_employee_annual(reference, rate)
        amount = prorate(annual, sub.months)
        trace.add(
            "insurance.si",
            "trace.insurance.si_block_estimate",
            [trace.yen("main_salary", reference), trace.rate("estimate_rate", rate)],
            result=annual,
            result_key=f"{key_prefix}.annual_estimated",
            block=block_number,
        )
        trace.add(
            "insurance.si",
            "trace.insurance.si_block_prorated",
            [trace.yen("estimated_annual", annual), trace.months("months", sub.months)],
            result=amount,
            result_key=f"{key_prefix}.amount",
            notes=[trace.text("notes.prorate_rounding")],
            block=block_number,
        )
        totals.si += amount
    return totals


def _national_block(
    tax_input: TaxInput,
    rules: RuleYear,
    trace: TraceRecorder,
    block: NationalBlock,
    block_number: int,
    previous_income: int,
) -> InsuranceTotals:
    totals = InsuranceTotals()
    config = rules.national_health_insurance
    for index, sub in enumerate(block.nhi_breakdown, start=1):
        key_prefix = f"insurance.nhi.block{block_number}.sub{index}"
        if sub.mode == "manual":
            amount = sub.amount or 0
            trace.add(
                "insurance.nhi",
                "trace.insurance.nhi_block_manual",
                [trace.months("months", sub.months)],
                result=amount,
                result_key=f"{key_prefix}.amount",
                block=block_number,
            )
            totals.nhi += amount
            continue

        estimate = estimate_nhi(
            previous_income, tax_input.insurance.nhi_household, config, sub.months
        )
        _record_nhi_estimate(
            trace,
            estimate,
            scope=trace.text("labels.nhi_block_estimate", block=block_number),
            key_prefix=key_prefix,
            total_key=f"{key_prefix}.amount",
            notes=[
                trace.text(
                    "notes.nhi.block_basis",
                    municipality=config.municipality,
                    months=sub.months,
                )
            ],
        )
        totals.nhi += estimate.total

    monthly = _pension_monthly(block.np_monthly_override, rules)
    np_total = monthly * block.np_pay_months
    trace.add(
        "insurance.np",
        "trace.insurance.np_block",
        [
            trace.yen("monthly", monthly),
            trace.months("pay_months", block.np_pay_months),
            trace.months("exempt_months", block.np_exempt_months),
        ],
        result=np_total,
        result_key=f"insurance.np.block{block_number}.amount",
        block=block_number,
    )
    totals.np += np_total
    totals.np_pay_months += block.np_pay_months
    totals.np_exempt_months += block.np_exempt_months
    return totals


def _mixed(
    tax_input: TaxInput, rules: RuleYear, trace: TraceRecorder, previous_income: int
) -> InsuranceTotals:
    totals = InsuranceTotals()
    mixed = tax_input.insurance.mixed
    blocks = mixed.blocks if mixed is not None else []
    for number, block in enumerate(blocks, start=1):
        if isinstance(block, EmployeeBlock):
            totals.merge(_employee_block(tax_input, rules, trace, block, number))
        else:
            totals.merge(
                _national_block(tax_input, rules, trace, block, number, previous_income)
            )
    return totals


def _pension_monthly(override: int | None, rules: RuleYear) -> int:
    if override is not None:
        return override
    return rules.pension.national_pension_monthly.value or 0


def _display_pension_monthly(tax_input: TaxInput, rules: RuleYear) -> int:
    insurance = tax_input.insurance
    override: int | None = None
    if insurance.mode == "national_only" and insurance.national is not None:
        override = insurance.national.np.monthly_override
    elif insurance.mode == "mixed" and insurance.mixed is not None:
        override = next(
            (
                block.np_monthly_override
                for block in insurance.mixed.blocks
                if isinstance(block, NationalBlock) and block.np_monthly_override is not None
            ),
            None,
        )
    return _pension_monthly(override, rules)


def calculate_insurance(
    tax_input: TaxInput,
    rules: RuleYear,
    trace: TraceRecorder,
    income: IncomeTotals,
    previous_income: int | None = None,
) -> InsuranceTotals:
    """Compute the year's social insurance premiums.

    ``previous_income`` is the previous year's general income used by NHI
    estimates; when it is ``None`` the current year's general income is used.
    """

    if previous_income is None:
        previous_income = income.total_general

    trace.add(
        "insurance.si",
        "trace.insurance.rules",
        display="info",
        notes=[trace.text("notes.nhi.relief_not_applied")],
    )

    mode = tax_input.insurance.mode
    if mode == "employee_only":
        totals = _employee_only(tax_input, rules, trace)
    elif mode == "national_only":
        totals = _national_only(tax_input, rules, trace, previous_income)
    else:
        totals = _mixed(tax_input, rules, trace, previous_income)

    trace.add(
        "insurance.np",
        "trace.insurance.np_months",
        [
            trace.months("pay_months", totals.np_pay_months),
            trace.months("exempt_months", totals.np_exempt_months),
        ],
        display="info",
        result_key="insurance.np.months",
    )
    trace.add(
        "insurance.si",
        "trace.insurance.si_total",
        result=totals.si,
        result_key="insurance.si.total",
    )
    trace.add(
        "insurance.nhi",
        "trace.insurance.nhi_total",
        result=totals.nhi,
        result_key="insurance.nhi.total",
    )

    pension = rules.pension.national_pension_monthly
    monthly = _display_pension_monthly(tax_input, rules)
    warnings = []
    if pension.needs_update:
        warnings.append(trace.text("warnings.np.needs_update", year=rules.year))
    trace.add(
        "insurance.np",
        "trace.insurance.np_total",
        [
            trace.yen("monthly", monthly),
            trace.months("pay_months", totals.np_pay_months),
            trace.label(
                "reference_year",
                tax_input.year,
                display=trace.text("units.year", value=tax_input.year),
            ),
        ],
        result=totals.np,
        result_key="insurance.np.total",
        notes=[
            trace.text(
                "notes.np.monthly_source", amount=format_yen(monthly), year=tax_input.year
            )
        ],
        warnings=warnings,
    )

    return totals


__all__ = [
    "NhiComponentEstimate",
    "NhiEstimate",
    "calculate_insurance",
    "estimate_employee_annual",
    "estimate_nhi",
    "resolve_reference_salary",
]
