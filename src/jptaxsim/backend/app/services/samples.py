"""Ready-made inputs for the demo endpoint and a blank form."""

from __future__ import annotations

from jptaxsim.backend.app.models import TaxInput


def create_demo_input(year: int) -> TaxInput:
    """Return a mixed salaried/self-employed household for ``year``.

    Half the year is spent under the employee scheme and half under national
    health insurance, which exercises every insurance path at once.
    """

    return TaxInput.model_validate(
        {
            "year": year,
            "family": {
                "taxpayer_age": 42,
                "spouse_count": 0,
                "dependent_count": 1,
                "dependents_40_64_count": 0,
                "preschool_count": 0,
            },
            "salary": {
                "enabled": True,
                "sources": [
                    {"id": "A", "name": "支払先A", "annual": 4_000_000},
                    {"id": "B", "name": "支払先B", "annual": 1_200_000},
                ],
                "main_source_id": "A",
            },
            "business": {
                "enabled": True,
                "sales": 5_000_000,
                "expenses": 1_200_000,
                "blue_return": {"enabled": True, "mode": "electronic"},
            },
            "stocks": {
                "dividend": {"amount": 80_000, "tax_mode": "general"},
                "capital_gain": {"amount": 200_000, "tax_mode": "separate"},
            },
            "deductions": {
                "ideco": 120_000,
                "small_biz_mutual_aid": 240_000,
                "safety_mutual_aid": 200_000,
                "medical": {
                    "enabled": True,
                    "treatment": 40_000,
                    "transport": 10_000,
                    "other": 0,
                    "reimbursed": 0,
                },
                "life_insurance": {
                    "general": 80_000,
                    "nursing_medical": 50_000,
                    "pension": 60_000,
                },
                "earthquake": 30_000,
            },
            "insurance": {
                "mode": "mixed",
                "mixed": {
                    "blocks": [
                        {
                            "id": "emp1",
                            "type": "employee",
                            "months": 6,
                            "breakdown": [
                                {
                                    "id": "emp1a",
                                    "mode": "estimate",
                                    "months": 6,
                                    "base_salary_source_id": "A",
                                }
                            ],
                        },
                        {
                            "id": "nat1",
                            "type": "national",
                            "months": 6,
                            "nhi_breakdown": [
                                {"id": "nat1a", "mode": "estimate", "months": 6}
                            ],
                            "np_pay_months": 5,
                            "np_exempt_months": 1,
                        },
                    ]
                },
                "nhi_household": {
                    "members_including_taxpayer": 3,
                    "members_40_64": 1,
                    "preschool": 0,
                },
            },
            "comparison_sites": [
                {"id": "siteA", "name": "サイトA", "amount": 90_000},
                {"id": "siteB", "name": "サイトB", "amount": 110_000},
            ],
            "previous_year": {"mode": "use_current"},
        }
    )


def create_empty_input(year: int) -> TaxInput:
    """Return a blank form for ``year``.

    Medical expenses are always enabled; with every amount at zero the
    deduction is zero anyway.
    """

    return TaxInput.model_validate(
        {
            "year": year,
            "family": {"taxpayer_age": 0},
            "deductions": {"medical": {"enabled": True}},
            "stocks": {
                "dividend": {"amount": 0, "tax_mode": "general"},
                "capital_gain": {"amount": 0, "tax_mode": "separate"},
            },
        }
    )


__all__ = ["create_demo_input", "create_empty_input"]
