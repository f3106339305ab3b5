#!/usr/bin/env python3
"""Collect baseline calculation timings for jptaxsim."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from time import perf_counter

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from jptaxsim.backend.app.services.calculation_service import calculate_tax  # noqa: E402
from jptaxsim.backend.app.services.samples import create_demo_input  # noqa: E402
from jptaxsim.backend.config.year_config import available_years  # noqa: E402


def measure_year(year: int, iterations: int) -> dict[str, float]:
    """Return timing statistics for repeated demo calculations of ``year``."""

    payload = create_demo_input(year).model_dump(mode="json")
    result = calculate_tax(payload)  # Warm cache
    start = perf_counter()
    for _ in range(iterations):
        calculate_tax(payload)
    elapsed = perf_counter() - start
    return {
        "iterations": iterations,
        "calc_lines": len(result["calc_lines"]),
        "total_ms": elapsed * 1000,
        "average_ms": (elapsed / iterations) * 1000,
    }


def main() -> None:
    iterations = int(os.getenv("JPTAXSIM_PROFILE_ITERATIONS", "75"))
    report = {str(year): measure_year(year, iterations) for year in available_years()}
    print(json.dumps(report, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
