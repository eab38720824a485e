#!/usr/bin/env python3
"""Collect baseline timings for the planner derivation pipeline."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from time import perf_counter

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from plancalc.backend.app.services.store import PlannerStore  # noqa: E402

SAMPLE_PATCHES = (
    {"capacity": {"months_off": 1, "utilization_percent": 75}},
    {"modifiers": {"seasonality_percent": 20, "travel_friction_percent": 35}},
    {"costs": {"fixed_cost_breakdown": {"office": 6000, "insurance": 2400}}},
    {"income_targets": {"basis": "week", "week": 1400}},
    {"tax": {"mode": "dutch2025", "startersaftrek": True}},
    {"services": {"ops": {"units_per_month": 3, "locked_volume": True}}},
)


def _timed(iterations: int, operation) -> dict[str, float]:
    start = perf_counter()
    for index in range(iterations):
        operation(index)
    elapsed = perf_counter() - start
    return {
        "iterations": iterations,
        "total_ms": elapsed * 1000,
        "average_ms": (elapsed / iterations) * 1000,
    }


def measure_patches(store: PlannerStore, iterations: int) -> dict[str, float]:
    """Return timing statistics for repeated store patches."""

    return _timed(
        iterations, lambda index: store.patch(SAMPLE_PATCHES[index % len(SAMPLE_PATCHES)])
    )


def measure_services(store: PlannerStore, iterations: int) -> dict[str, float]:
    """Return timing statistics for on-demand service economics."""

    store.compute_services()  # Warm the catalogue and regime caches
    return _timed(iterations, lambda _index: store.compute_services())


def measure_tax_reserve(store: PlannerStore, iterations: int) -> dict[str, float]:
    return _timed(iterations, lambda _index: store.tax_reserve())


def main() -> None:
    if os.getenv("PLANCALC_PROFILE_DERIVATIONS"):
        logging.basicConfig(level=logging.DEBUG)

    iterations = int(os.getenv("PLANCALC_PROFILE_ITERATIONS", "200"))
    store = PlannerStore()
    report = {
        "patches": measure_patches(store, iterations),
        "services": measure_services(store, iterations),
        "tax_reserve": measure_tax_reserve(store, iterations),
    }
    print(json.dumps(report, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
