"""Domain-specific calculation helpers."""

from .deductions import calculate_deductions
from .donation import calculate_donation
from .income import calculate_income
from .insurance import calculate_insurance, estimate_nhi
from .taxes import calculate_taxes
from .utils import floor_thousand, format_rate, format_yen, round_yen

__all__ = [
    "calculate_deductions",
    "calculate_donation",
    "calculate_income",
    "calculate_insurance",
    "calculate_taxes",
    "estimate_nhi",
    "floor_thousand",
    "format_rate",
    "format_yen",
    "round_yen",
]
