"""Pydantic models describing the public API surface."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

__all__ = [
    "FamilyInput",
    "SalarySource",
    "SalaryInput",
    "BlueReturnInput",
    "BusinessInput",
    "StockEntry",
    "StocksInput",
    "LifeInsurancePaid",
    "MedicalInput",
    "DeductionsInput",
    "EmployeeInsuranceInput",
    "NhiInput",
    "NationalPensionInput",
    "NationalInsuranceInput",
    "EmployeeBreakdown",
    "EmployeeBlock",
    "NhiBreakdown",
    "NationalBlock",
    "MixedBlock",
    "MixedInsuranceInput",
    "NhiHousehold",
    "InsuranceInput",
    "OverridesInput",
    "ComparisonSite",
    "PreviousYearIncomeBreakdown",
    "PreviousYearDeductions",
    "PreviousYearTaxCredits",
    "PreviousYearHousehold",
    "PreviousYearManual",
    "PreviousYearInput",
    "TaxInput",
    "Term",
    "CalcLine",
    "Summary",
    "DerivedValues",
    "EngineOutput",
    "ValidationIssue",
    "ResponseMeta",
    "CalculationResponse",
    "format_validation_error",
]

EntryMode = Literal["manual", "estimate"]
TaxMode = Literal["general", "separate"]
Unit = Literal["yen", "pct", "count", "month", "text"]


class _InputModel(BaseModel):
    """Base class for request sections; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")


class FamilyInput(_InputModel):
    """Household composition declared by the taxpayer."""

    taxpayer_age: int = Field(default=40, ge=0, le=130)
    spouse_count: int = Field(default=0, ge=0)
    dependent_count: int = Field(default=0, ge=0)
    dependents_40_64_count: int = Field(default=0, ge=0)
    preschool_count: int = Field(default=0, ge=0)


class SalarySource(_InputModel):
    """One salary payer and its annual gross amount."""

    id: str = Field(min_length=1)
    name: str = ""
    annual: int = 0


class SalaryInput(_InputModel):
    enabled: bool = False
    sources: list[SalarySource] = Field(default_factory=list)
    main_source_id: str | None = None


class BlueReturnInput(_InputModel):
    enabled: bool = False
    mode: Literal["electronic", "book"] = "electronic"


class BusinessInput(_InputModel):
    """Sole-proprietor business figures; sign checks live in the validator."""

    enabled: bool = False
    sales: int = 0
    expenses: int = 0
    blue_return: BlueReturnInput = Field(default_factory=BlueReturnInput)


class StockEntry(_InputModel):
    amount: int = Field(default=0, ge=0)
    tax_mode: TaxMode = "separate"


class StocksInput(_InputModel):
    dividend: StockEntry = Field(default_factory=StockEntry)
    capital_gain: StockEntry = Field(default_factory=StockEntry)


class LifeInsurancePaid(_InputModel):
    """Premiums paid per life insurance category."""

    general: int = Field(default=0, ge=0)
    nursing_medical: int = Field(default=0, ge=0)
    pension: int = Field(default=0, ge=0)


class MedicalInput(_InputModel):
    enabled: bool = False
    treatment: int = Field(default=0, ge=0)
    transport: int = Field(default=0, ge=0)
    other: int = Field(default=0, ge=0)
    reimbursed: int = Field(default=0, ge=0)


class DeductionsInput(_InputModel):
    """Elective deductions and insurance premiums paid."""

    ideco: int = Field(default=0, ge=0)
    small_biz_mutual_aid: int = Field(default=0, ge=0)
    safety_mutual_aid: int = Field(default=0, ge=0)
    life_insurance: LifeInsurancePaid = Field(default_factory=LifeInsurancePaid)
    earthquake: int = Field(default=0, ge=0)
    medical: MedicalInput = Field(default_factory=MedicalInput)


class EmployeeInsuranceInput(_InputModel):
    """Employee-scheme premiums for a full year of employment."""

    input_mode: EntryMode = "estimate"
    amount: int | None = Field(default=None, ge=0)
    salary_source_id: str | None = None
    base_salary_manual: int | None = Field(default=None, ge=0)


class NhiInput(_InputModel):
    mode: EntryMode = "estimate"
    amount: int | None = Field(default=None, ge=0)


class NationalPensionInput(_InputModel):
    pay_months: int = Field(default=12, ge=0, le=12)
    exempt_months: int = Field(default=0, ge=0, le=12)
    monthly_override: int | None = Field(default=None, ge=0)


class NationalInsuranceInput(_InputModel):
    nhi: NhiInput = Field(default_factory=NhiInput)
    np: NationalPensionInput = Field(default_factory=NationalPensionInput)


class EmployeeBreakdown(_InputModel):
    """Sub-period of an employee block with its own premium entry mode."""

    id: str
    mode: EntryMode = "estimate"
    months: int = Field(default=0, ge=0, le=12)
    amount: int | None = Field(default=None, ge=0)
    base_salary_source_id: str | None = None
    base_salary_manual: int | None = Field(default=None, ge=0)


class EmployeeBlock(_InputModel):
    id: str
    type: Literal["employee"] = "employee"
    months: int = 0
    breakdown: list[EmployeeBreakdown] = Field(default_factory=list)


class NhiBreakdown(_InputModel):
    id: str
    mode: EntryMode = "estimate"
    months: int = Field(default=0, ge=0, le=12)
    amount: int | None = Field(default=None, ge=0)


class NationalBlock(_InputModel):
    id: str
    type: Literal["national"] = "national"
    months: int = 0
    nhi_breakdown: list[NhiBreakdown] = Field(default_factory=list)
    np_pay_months: int = Field(default=0, ge=0, le=12)
    np_exempt_months: int = Field(default=0, ge=0, le=12)
    np_monthly_override: int | None = Field(default=None, ge=0)


MixedBlock = Annotated[Union[EmployeeBlock, NationalBlock], Field(discriminator="type")]


class MixedInsuranceInput(_InputModel):
    blocks: list[MixedBlock] = Field(default_factory=list)


class NhiHousehold(_InputModel):
    """Members counted for national health insurance per-head amounts."""

    members_including_taxpayer: int = Field(default=1, ge=0)
    members_40_64: int = Field(default=0, ge=0)
    preschool: int = Field(default=0, ge=0)


class InsuranceInput(_InputModel):
    """Insurance enrollment for the year under one of three topologies."""

    mode: Literal["employee_only", "national_only", "mixed"] = "employee_only"
    employee: EmployeeInsuranceInput | None = None
    national: NationalInsuranceInput | None = None
    mixed: MixedInsuranceInput | None = None
    nhi_household: NhiHousehold = Field(default_factory=NhiHousehold)


class OverridesInput(_InputModel):
    """Optional rate overrides; ``None`` keeps the configured rate."""

    income_tax_rate: float | None = Field(default=None, ge=0, le=1)
    resident_income_rate: float | None = Field(default=None, ge=0, le=1)
    separate_tax_rate: float | None = Field(default=None, ge=0, le=1)


class ComparisonSite(_InputModel):
    """Donation limit quoted by a third-party portal."""

    id: str
    name: str = ""
    amount: int = 0


class PreviousYearIncomeBreakdown(_InputModel):
    salary: int = Field(default=0, ge=0)
    business: int = 0
    real_estate: int = 0
    dividend: int = Field(default=0, ge=0)
    transfer: int = 0
    temporary: int = Field(default=0, ge=0)
    miscellaneous: int = 0


class PreviousYearDeductions(_InputModel):
    basic: int = Field(default=0, ge=0)
    spouse: int = Field(default=0, ge=0)
    dependent: int = Field(default=0, ge=0)
    disabled: int = Field(default=0, ge=0)
    widow: int = Field(default=0, ge=0)
    working_student: int = Field(default=0, ge=0)
    social_insurance: int = Field(default=0, ge=0)
    life_insurance: int = Field(default=0, ge=0)
    earthquake: int = Field(default=0, ge=0)
    medical: int = Field(default=0, ge=0)
    donation: int = Field(default=0, ge=0)


class PreviousYearTaxCredits(_InputModel):
    housing_loan: int = Field(default=0, ge=0)
    dividend: int = Field(default=0, ge=0)
    foreign_tax: int = Field(default=0, ge=0)


class PreviousYearHousehold(_InputModel):
    nhi_members: int = Field(default=1, ge=0)
    members_40_64: int = Field(default=0, ge=0)
    preschool: int = Field(default=0, ge=0)
    household_income: int = Field(default=0, ge=0)


class PreviousYearManual(_InputModel):
    """Prior-year return figures typed in by hand.

    Only ``total_income`` feeds the calculation; the breakdown is kept so a
    saved snapshot can re-display what was entered.
    """

    total_income: int = Field(default=0, ge=0)
    income_breakdown: PreviousYearIncomeBreakdown = Field(
        default_factory=PreviousYearIncomeBreakdown
    )
    deductions: PreviousYearDeductions = Field(default_factory=PreviousYearDeductions)
    tax_credits: PreviousYearTaxCredits = Field(default_factory=PreviousYearTaxCredits)
    household: PreviousYearHousehold = Field(default_factory=PreviousYearHousehold)


class PreviousYearInput(_InputModel):
    """Where the previous year's general income should come from."""

    mode: Literal["none", "from_save", "use_current", "manual"] = "none"
    snapshot_id: str | None = None
    total_income: int | None = Field(default=None, ge=0)
    manual: PreviousYearManual | None = None


class TaxInput(_InputModel):
    """Full declared state of one taxpayer for one fiscal year."""

    year: int
    locale: str = "ja"
    family: FamilyInput = Field(default_factory=FamilyInput)
    salary: SalaryInput = Field(default_factory=SalaryInput)
    business: BusinessInput = Field(default_factory=BusinessInput)
    stocks: StocksInput = Field(default_factory=StocksInput)
    deductions: DeductionsInput = Field(default_factory=DeductionsInput)
    insurance: InsuranceInput = Field(default_factory=InsuranceInput)
    overrides: OverridesInput = Field(default_factory=OverridesInput)
    comparison_sites: list[ComparisonSite] = Field(default_factory=list)
    previous_year: PreviousYearInput = Field(default_factory=PreviousYearInput)

    @field_validator("locale", mode="before")
    @classmethod
    def _default_locale(cls, value: str | None) -> str:
        return value or "ja"


class Term(BaseModel):
    """Named operand shown next to a trace line."""

    model_config = ConfigDict(extra="forbid")

    key: str | None = None
    name: str
    value: int | float | str
    unit: Unit = "yen"
    display_value: str | None = None


class CalcLine(BaseModel):
    """One entry of the calculation trace."""

    model_config = ConfigDict(extra="forbid")

    id: str
    section: str
    title: str
    expression: str
    terms: list[Term] = Field(default_factory=list)
    display: Literal["calc", "info"] = "calc"
    result: int | float | None = None
    result_key: str | None = None
    notes: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class Summary(BaseModel):
    """Headline totals of one calculation."""

    model_config = ConfigDict(extra="forbid")

    year: int
    income_tax_general: int
    resident_tax_total: int
    separate_tax_stock: int
    social_insurance_deduction: int
    furusato_donation_limit: int
    adopted_limit: int


class DerivedValues(BaseModel):
    """Intermediate figures other parts of the system re-use."""

    model_config = ConfigDict(extra="forbid")

    taxable_income_general: int
    resident_income_part: int
    income_tax_rate: float
    total_income_general: int
    social_insurance_total: int
    nhi_total: int
    np_total: int
    np_months_pay: int
    np_months_exempt: int
    furusato_donation_limit: int


class EngineOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    calc_lines: list[CalcLine]
    summary: Summary
    derived: DerivedValues


class ValidationIssue(BaseModel):
    """Field-scoped validation error or warning."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    field: str
    message: str


class ResponseMeta(BaseModel):
    """Metadata returned alongside the calculation output."""

    model_config = ConfigDict(extra="forbid")

    year: int
    rule_year: int
    locale: str
    previous_year_total_income: int | None = None


class CalculationResponse(BaseModel):
    """Full response payload produced by the calculation service."""

    model_config = ConfigDict(extra="forbid")

    calc_lines: list[CalcLine]
    summary: Summary
    derived: DerivedValues
    warnings: list[ValidationIssue] = Field(default_factory=list)
    meta: ResponseMeta


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid calculation payload: {details}"
