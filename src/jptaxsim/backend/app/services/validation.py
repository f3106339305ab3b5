"""Field-level checks run before a calculation.

The calculators assume structurally sound input (month counts adding up,
selected payers present). These checks report violations in the shape the
form layer shows next to each field; messages are Japanese because the form is.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from jptaxsim.backend.app.models import EmployeeBlock, TaxInput, ValidationIssue
from jptaxsim.backend.config.year_config import available_years


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, field_name: str, message: str) -> None:
        self.errors.append(ValidationIssue(field=field_name, message=message))

    def warn(self, field_name: str, message: str) -> None:
        self.warnings.append(ValidationIssue(field=field_name, message=message))


class InputValidationError(ValueError):
    """Raised when input validation reports blocking errors."""

    def __init__(self, result: ValidationResult) -> None:
        self.errors = list(result.errors)
        self.warnings = list(result.warnings)
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in self.errors)
        super().__init__(f"Input validation failed: {summary}")


def _validate_year(tax_input: TaxInput, result: ValidationResult) -> None:
    years = available_years()
    if tax_input.year not in years:
        listed = "/".join(str(year) for year in years)
        result.error("year", f"年度は {listed} のいずれかを指定してください。")


def _validate_previous_year(tax_input: TaxInput, result: ValidationResult) -> None:
    previous = tax_input.previous_year
    if previous.mode == "none":
        result.error("previous_year.mode", "前年所得の入力方法を選択してください。")
    if previous.mode == "from_save" and not previous.snapshot_id:
        result.error("previous_year.snapshot_id", "保存データを選択してください。")


def _validate_salary(tax_input: TaxInput, result: ValidationResult) -> None:
    salary = tax_input.salary
    if not salary.enabled:
        return
    if not salary.sources:
        result.error("salary.sources", "給与支払先を1件以上入力してください。")
    if not salary.main_source_id:
        result.error("salary.main_source_id", "主たる給与支払先を選択してください。")
    for index, source in enumerate(salary.sources):
        if source.annual < 0:
            result.error(
                f"salary.sources[{index}].annual", "給与年額は0以上で入力してください。"
            )


def _validate_business(tax_input: TaxInput, result: ValidationResult) -> None:
    business = tax_input.business
    if not business.enabled:
        return
    if business.sales <= 0:
        result.error("business.sales", "事業売上を入力してください。")
    if business.expenses < 0:
        result.error("business.expenses", "経費は0以上で入力してください。")


def _validate_insurance(tax_input: TaxInput, result: ValidationResult) -> None:
    insurance = tax_input.insurance

    if insurance.mode == "mixed":
        blocks = insurance.mixed.blocks if insurance.mixed is not None else []
        if sum(block.months for block in blocks) != 12:
            result.error(
                "insurance.mixed.blocks", "複合ブロックの合計月数は12ヶ月にしてください。"
            )
        for index, block in enumerate(blocks):
            scope = f"insurance.mixed.blocks[{index}]"
            if block.months <= 0 or block.months > 12:
                result.error(f"{scope}.months", "ブロック月数は1〜12で入力してください。")
            if isinstance(block, EmployeeBlock):
                continue
            if sum(sub.months for sub in block.nhi_breakdown) != block.months:
                result.error(
                    f"{scope}.nhi_breakdown",
                    "国保ブロックの国保サブ月数合計がブロック月数と一致していません。",
                )
            if block.np_pay_months + block.np_exempt_months != block.months:
                result.error(
                    f"{scope}.np_pay_months",
                    "国保ブロックの国民年金月数（加入+免除）がブロック月数と一致していません。",
                )

    if insurance.mode == "national_only" and insurance.national is not None:
        pension = insurance.national.np
        if pension.pay_months + pension.exempt_months != 12:
            result.error(
                "insurance.national.np",
                "国民年金の加入月数と免除月数の合計は12ヶ月にしてください。",
            )

    household = insurance.nhi_household
    members = household.members_including_taxpayer
    if members < 1:
        result.error(
            "insurance.nhi_household.members_including_taxpayer",
            "国保加入者数は本人を含め1以上にしてください。",
        )
    if household.members_40_64 > members:
        result.error(
            "insurance.nhi_household.members_40_64",
            "40〜64歳人数が国保加入者数を超えています。",
        )
    if household.preschool > members:
        result.error(
            "insurance.nhi_household.preschool", "未就学児人数が国保加入者数を超えています。"
        )
    if household.members_40_64 + household.preschool > members:
        result.error(
            "insurance.nhi_household",
            "40〜64歳＋未就学児の合計が国保加入者数を超えています。",
        )


def validate_input(tax_input: TaxInput) -> ValidationResult:
    """Return blocking errors and advisory warnings for ``tax_input``."""

    result = ValidationResult()
    _validate_year(tax_input, result)
    _validate_previous_year(tax_input, result)
    _validate_salary(tax_input, result)
    _validate_business(tax_input, result)
    _validate_insurance(tax_input, result)

    family = tax_input.family
    if family.dependent_count < family.dependents_40_64_count + family.preschool_count:
        result.warn("family.dependent_count", "扶養人数より内訳人数が多くなっています。")

    for index, site in enumerate(tax_input.comparison_sites):
        if site.amount < 0:
            result.error(
                f"comparison_sites[{index}]", "仲介サイト上限は0以上で入力してください。"
            )

    return result


__all__ = ["InputValidationError", "ValidationResult", "validate_input"]
