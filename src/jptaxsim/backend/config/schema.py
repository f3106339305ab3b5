"""Pydantic models describing the fiscal year rule table schema."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class FormulaKind(str, Enum):
    """Closed set of formula shapes a bracket row may carry."""

    FIXED = "fixed"
    LINEAR = "linear"


class Formula(ImmutableModel):
    """Typed per-row formula evaluated against a single amount.

    ``fixed`` rows return ``value`` regardless of the amount while ``linear``
    rows return ``rate * amount + add``.
    """

    kind: FormulaKind
    value: float | None = None
    rate: float | None = None
    add: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _coerce_scalar(cls, data: Any) -> Any:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return {"kind": FormulaKind.FIXED, "value": data}
        return data

    @model_validator(mode="after")
    def _validate_shape(self) -> Self:
        if self.kind is FormulaKind.FIXED and self.value is None:
            raise ConfigurationError("Fixed formulas require a 'value'")
        if self.kind is FormulaKind.LINEAR and self.rate is None:
            raise ConfigurationError("Linear formulas require a 'rate'")
        return self

    def evaluate(self, amount: float) -> float:
        """Return the formula value for ``amount``; non-finite results count as zero."""

        if self.kind is FormulaKind.FIXED:
            result = float(self.value or 0.0)
        else:
            result = float(self.rate or 0.0) * amount + self.add
        return result if math.isfinite(result) else 0.0


class RateTableRow(ImmutableModel):
    """Progressive income tax row using the quick-calculation subtraction."""

    upper_bound: int | None = Field(default=None, alias="max")
    rate: float
    deduction: int = 0
    label: str = ""

    @model_validator(mode="after")
    def _validate_values(self) -> Self:
        if self.rate < 0 or self.rate > 1:
            raise ConfigurationError("Income tax rates must be between 0 and 1")
        if self.deduction < 0:
            raise ConfigurationError("Quick-calculation deductions must be non-negative")
        return self


class IncomeBracket(ImmutableModel):
    """Fixed deduction amount applicable up to an income threshold."""

    upper_bound: int | None = Field(default=None, alias="max_income")
    deduction: int

    @model_validator(mode="after")
    def _validate_values(self) -> Self:
        if self.deduction < 0:
            raise ConfigurationError("Bracket deductions must be non-negative")
        return self


class FormulaBracket(ImmutableModel):
    """Income-keyed bracket carrying a typed formula."""

    upper_bound: int | None = Field(default=None, alias="max_income")
    formula: Formula


class LifeInsuranceBracket(ImmutableModel):
    """Paid-premium keyed bracket for life insurance deductions."""

    upper_bound: int | None = Field(default=None, alias="max_paid")
    formula: Formula


def validate_bracket_sequence(brackets: Sequence[Any], scope: str) -> None:
    """Ensure ``brackets`` ascend and end with a single open-ended row."""

    if not brackets:
        raise ConfigurationError(f"{scope}: at least one bracket must be defined")
    last_upper: int | None = None
    for index, bracket in enumerate(brackets):
        upper = bracket.upper_bound
        if upper is None and index != len(brackets) - 1:
            raise ConfigurationError(
                f"{scope}: only the final bracket may have an open upper bound"
            )
        if last_upper is not None and upper is not None and upper <= last_upper:
            raise ConfigurationError(f"{scope}: brackets must be in ascending order")
        last_upper = upper if upper is not None else last_upper
    if brackets[-1].upper_bound is not None:
        raise ConfigurationError(f"{scope}: final bracket must have an open upper bound")


class BasicDeductionTable(ImmutableModel):
    """Basic deduction keyed by total income."""

    brackets: Sequence[IncomeBracket]
    notes: Sequence[str] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _validate_brackets(self) -> Self:
        validate_bracket_sequence(self.brackets, "basic_deduction")
        return self


class SalaryIncomeDeductionTable(ImmutableModel):
    """Employment income deduction with a guaranteed minimum."""

    minimum: int
    brackets: Sequence[FormulaBracket]
    notes: Sequence[str] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _validate_brackets(self) -> Self:
        if self.minimum < 0:
            raise ConfigurationError("Salary deduction minimum must be non-negative")
        validate_bracket_sequence(self.brackets, "salary_income_deduction")
        return self


class IncomeTaxConfig(ImmutableModel):
    """National income tax tables."""

    rate_table: Sequence[RateTableRow]
    basic_deduction: BasicDeductionTable
    salary_income_deduction: SalaryIncomeDeductionTable
    dependent_income_threshold: int | None = None

    @model_validator(mode="after")
    def _validate_rate_table(self) -> Self:
        validate_bracket_sequence(self.rate_table, "income_tax.rate_table")
        return self


class MonthlyAmount(ImmutableModel):
    """Monthly contribution amount that may still await confirmation."""

    value: int | None = None
    needs_update: bool = False
    sources: Sequence[str] = Field(default_factory=tuple)


class PensionConfig(ImmutableModel):
    """National pension settings."""

    national_pension_monthly: MonthlyAmount


class ResidentTaxConfig(ImmutableModel):
    """Municipal resident tax settings."""

    municipality: str
    income_rate: float
    per_capita: int
    basic_deduction: BasicDeductionTable | None = None
    basic_deduction_offset: int = 50_000
    note: str | None = None

    @model_validator(mode="after")
    def _validate_values(self) -> Self:
        if self.income_rate < 0 or self.income_rate > 1:
            raise ConfigurationError("Resident tax income rate must be between 0 and 1")
        if self.per_capita < 0:
            raise ConfigurationError("Resident tax per-capita amount must be non-negative")
        return self


class SeparateTaxShares(ImmutableModel):
    """Statutory decomposition of the separate stock tax rate."""

    national: float
    surtax: float
    local: float


class StockTaxConfig(ImmutableModel):
    """Flat-rate taxation of separately taxed stock income."""

    rate: float
    shares: SeparateTaxShares

    @model_validator(mode="after")
    def _validate_shares(self) -> Self:
        total = self.shares.national + self.shares.surtax + self.shares.local
        if not math.isclose(total, self.rate, abs_tol=1e-9):
            raise ConfigurationError(
                "Separate tax shares must add up to the configured stock rate"
            )
        return self


class SeparateTaxConfig(ImmutableModel):
    """Separately taxed income categories."""

    stock: StockTaxConfig


class MedicalDeductionConfig(ImmutableModel):
    """Medical expense deduction threshold and cap."""

    threshold_fixed: int
    threshold_rate: float
    cap: int


class LifeInsuranceRegime(ImmutableModel):
    """Life insurance brackets for one tax regime (national or resident)."""

    total_cap: int
    general: Sequence[LifeInsuranceBracket]
    nursing_medical: Sequence[LifeInsuranceBracket]
    pension: Sequence[LifeInsuranceBracket]

    @model_validator(mode="after")
    def _validate_brackets(self) -> Self:
        for category in ("general", "nursing_medical", "pension"):
            validate_bracket_sequence(
                getattr(self, category), f"life_insurance_deduction.{category}"
            )
        return self

    def brackets_for(self, category: str) -> Sequence[LifeInsuranceBracket]:
        return getattr(self, category)


class LifeInsuranceConfig(ImmutableModel):
    """Life insurance deduction rules per tax regime."""

    national: LifeInsuranceRegime
    resident: LifeInsuranceRegime


class EarthquakeDeductionConfig(ImmutableModel):
    """Earthquake insurance deduction caps."""

    cap: int
    resident_cap: int


class BlueDeductionConfig(ImmutableModel):
    """Blue return special deduction amounts by bookkeeping sub-mode."""

    book: int
    electronic: int

    def amount_for(self, mode: str) -> int:
        return int(getattr(self, mode, 0) or 0)


class NhiComponentConfig(ImmutableModel):
    """One independently capped national health insurance component."""

    income_rate: float
    per_capita: int
    cap: int
    age_banded: bool = False


class NationalHealthInsuranceConfig(ImmutableModel):
    """Municipal national health insurance premium formula."""

    municipality: str
    base: NhiComponentConfig
    support: NhiComponentConfig
    care: NhiComponentConfig
    relief_tiers: Sequence[float] = Field(default_factory=lambda: (0.7, 0.5, 0.2))

    @field_validator("relief_tiers", mode="after")
    @classmethod
    def _validate_relief_tiers(cls, value: Sequence[float]) -> Sequence[float]:
        for tier in value:
            if tier <= 0 or tier >= 1:
                raise ConfigurationError("Relief tiers must be between 0 and 1")
        return tuple(value)

    @property
    def components(self) -> dict[str, NhiComponentConfig]:
        return {"base": self.base, "support": self.support, "care": self.care}


class RuleDefaults(ImmutableModel):
    """Fallback coefficients used by estimate modes."""

    si_rate: float = 0.15


class RuleYear(ImmutableModel):
    """Fully resolved rule table for one fiscal year."""

    year: int
    inherits_from: int | None = None
    meta: Mapping[str, Any] = Field(default_factory=dict)
    income_tax: IncomeTaxConfig
    pension: PensionConfig
    resident_tax: ResidentTaxConfig
    separate_tax: SeparateTaxConfig
    medical_deduction: MedicalDeductionConfig
    life_insurance_deduction: LifeInsuranceConfig
    earthquake_deduction: EarthquakeDeductionConfig
    blue_deduction: BlueDeductionConfig
    national_health_insurance: NationalHealthInsuranceConfig
    defaults: RuleDefaults = Field(default_factory=RuleDefaults)

    @model_validator(mode="before")
    @classmethod
    def _prepare(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Rule file must define a mapping at the top level")
        prepared = dict(data)
        if prepared.get("meta") is None:
            prepared["meta"] = {}
        if prepared.get("defaults") is None:
            prepared["defaults"] = {}
        return prepared


class RuleManifestEntry(ImmutableModel):
    """Entry describing a supported fiscal year in the manifest."""

    year: int
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.year}.yaml"


class RuleManifest(ImmutableModel):
    """Manifest describing the available rule files."""

    default_year: int
    years: Sequence[RuleManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> Self:
        seen: set[int] = set()
        for entry in self.years:
            if entry.year in seen:
                raise ConfigurationError(
                    f"Duplicate year {entry.year} declared in the rule manifest"
                )
            seen.add(entry.year)
        if self.default_year not in seen:
            raise ConfigurationError("Default year must be declared in the rule manifest")
        return self

    def get_entry(self, year: int) -> RuleManifestEntry:
        for entry in self.years:
            if entry.year == year:
                return entry
        raise KeyError(year)

    @computed_field
    @property
    def supported_years(self) -> tuple[int, ...]:
        return tuple(sorted(entry.year for entry in self.years))


__all__ = [
    "BasicDeductionTable",
    "BlueDeductionConfig",
    "ConfigurationError",
    "EarthquakeDeductionConfig",
    "Formula",
    "FormulaBracket",
    "FormulaKind",
    "ImmutableModel",
    "IncomeBracket",
    "IncomeTaxConfig",
    "LifeInsuranceBracket",
    "LifeInsuranceConfig",
    "LifeInsuranceRegime",
    "MedicalDeductionConfig",
    "MonthlyAmount",
    "NationalHealthInsuranceConfig",
    "NhiComponentConfig",
    "PensionConfig",
    "RateTableRow",
    "ResidentTaxConfig",
    "RuleDefaults",
    "RuleManifest",
    "RuleManifestEntry",
    "RuleYear",
    "SalaryIncomeDeductionTable",
    "SeparateTaxConfig",
    "SeparateTaxShares",
    "StockTaxConfig",
    "validate_bracket_sequence",
]
