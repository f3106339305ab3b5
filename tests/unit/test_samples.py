"""Unit tests for the bundled sample inputs."""

from __future__ import annotations

import pytest

from jptaxsim.backend.app.services.calculation_service import calculate_tax
from jptaxsim.backend.app.services.samples import create_demo_input, create_empty_input
from jptaxsim.backend.app.services.validation import validate_input


@pytest.mark.parametrize("year", [2024, 2025, 2026, 2027])
def test_demo_input_is_valid_for_every_year(year: int) -> None:
    demo = create_demo_input(year)

    assert demo.year == year
    assert validate_input(demo).is_valid


def test_demo_input_covers_mixed_insurance() -> None:
    demo = create_demo_input(2024)

    assert demo.insurance.mode == "mixed"
    assert sum(block.months for block in demo.insurance.mixed.blocks) == 12


def test_demo_calculation_produces_positive_totals() -> None:
    result = calculate_tax(create_demo_input(2024))

    summary = result["summary"]
    assert summary["income_tax_general"] > 0
    assert summary["resident_tax_total"] > 0
    assert summary["separate_tax_stock"] > 0
    assert summary["adopted_limit"] <= summary["furusato_donation_limit"]
    assert summary["adopted_limit"] <= 90_000


def test_empty_input_has_no_income() -> None:
    empty = create_empty_input(2025)

    assert empty.year == 2025
    assert empty.salary.enabled is False
    assert empty.business.enabled is False
    assert empty.deductions.medical.enabled is True
    assert empty.previous_year.mode == "none"
