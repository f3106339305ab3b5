"""Typed request/response models shared across the calculation services.

Requests and responses are Pydantic models (see :mod:`.api`). The figures the
calculators hand to each other are lightweight dataclasses defined here so
each stage can stay a plain function of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass

from .api import (
    BlueReturnInput,
    BusinessInput,
    CalcLine,
    CalculationResponse,
    ComparisonSite,
    DeductionsInput,
    DerivedValues,
    EmployeeBlock,
    EmployeeBreakdown,
    EmployeeInsuranceInput,
    EngineOutput,
    FamilyInput,
    InsuranceInput,
    LifeInsurancePaid,
    MedicalInput,
    MixedBlock,
    MixedInsuranceInput,
    NationalBlock,
    NationalInsuranceInput,
    NationalPensionInput,
    NhiBreakdown,
    NhiHousehold,
    NhiInput,
    OverridesInput,
    PreviousYearDeductions,
    PreviousYearHousehold,
    PreviousYearIncomeBreakdown,
    PreviousYearInput,
    PreviousYearManual,
    PreviousYearTaxCredits,
    ResponseMeta,
    SalaryInput,
    SalarySource,
    StockEntry,
    StocksInput,
    Summary,
    TaxInput,
    Term,
    ValidationIssue,
    format_validation_error,
)

__all__ = [
    "IncomeTotals",
    "InsuranceTotals",
    "DeductionTotals",
    "TaxTotals",
    "DonationResult",
    "BlueReturnInput",
    "BusinessInput",
    "CalcLine",
    "CalculationResponse",
    "ComparisonSite",
    "DeductionsInput",
    "DerivedValues",
    "EmployeeBlock",
    "EmployeeBreakdown",
    "EmployeeInsuranceInput",
    "EngineOutput",
    "FamilyInput",
    "InsuranceInput",
    "LifeInsurancePaid",
    "MedicalInput",
    "MixedBlock",
    "MixedInsuranceInput",
    "NationalBlock",
    "NationalInsuranceInput",
    "NationalPensionInput",
    "NhiBreakdown",
    "NhiHousehold",
    "NhiInput",
    "OverridesInput",
    "PreviousYearDeductions",
    "PreviousYearHousehold",
    "PreviousYearIncomeBreakdown",
    "PreviousYearInput",
    "PreviousYearManual",
    "PreviousYearTaxCredits",
    "ResponseMeta",
    "SalaryInput",
    "SalarySource",
    "StockEntry",
    "StocksInput",
    "Summary",
    "TaxInput",
    "Term",
    "ValidationIssue",
    "format_validation_error",
]


@dataclass(frozen=True)
class IncomeTotals:
    """Aggregated income figures for the year."""

    salary_gross: int = 0
    salary_deduction: int = 0
    salary_income: int = 0
    blue_deduction: int = 0
    business_income: int = 0
    stock_general_dividend: int = 0
    stock_general_capital_gain: int = 0
    stock_separate_dividend: int = 0
    stock_separate_capital_gain: int = 0

    @property
    def stock_general_income(self) -> int:
        return self.stock_general_dividend + self.stock_general_capital_gain

    @property
    def stock_separate_base(self) -> int:
        return self.stock_separate_dividend + self.stock_separate_capital_gain

    @property
    def total_general(self) -> int:
        return self.salary_income + self.business_income + self.stock_general_income


@dataclass
class InsuranceTotals:
    """Tracks cumulative premiums across enrollment periods."""

    si: int = 0
    nhi: int = 0
    np: int = 0
    np_pay_months: int = 0
    np_exempt_months: int = 0

    @property
    def social_insurance(self) -> int:
        return self.si + self.nhi + self.np

    def merge(self, other: InsuranceTotals) -> None:
        self.si += other.si
        self.nhi += other.nhi
        self.np += other.np
        self.np_pay_months += other.np_pay_months
        self.np_exempt_months += other.np_exempt_months


@dataclass(frozen=True)
class DeductionTotals:
    """Income deductions for the national and resident tax regimes."""

    basic: int
    resident_basic: int
    social_insurance: int
    ideco: int
    small_biz_mutual_aid: int
    safety_mutual_aid: int
    life_national: int
    life_resident: int
    earthquake_national: int
    earthquake_resident: int
    medical: int

    @property
    def _shared(self) -> int:
        return (
            self.social_insurance
            + self.ideco
            + self.small_biz_mutual_aid
            + self.safety_mutual_aid
            + self.medical
        )

    @property
    def national_total(self) -> int:
        return self._shared + self.basic + self.life_national + self.earthquake_national

    @property
    def resident_total(self) -> int:
        return (
            self._shared
            + self.resident_basic
            + self.life_resident
            + self.earthquake_resident
        )


@dataclass(frozen=True)
class TaxTotals:
    """Tax amounts and the rates used to compute them."""

    taxable_general: int
    income_tax_rate: float
    income_tax_general: int
    income_tax_total: int
    resident_rate: float
    resident_taxable: int
    resident_income_part: int
    resident_total: int
    separate_tax: int


@dataclass(frozen=True)
class DonationResult:
    deductible: int
    donation_limit: int
    adopted_limit: int
