"""Grading engine configuration.

Tolerances, rounding precision, search resolution and classification
boundaries used by the aggregator, hierarchy walker and target solver.
Defaults reproduce the UK-style degree calculation and can be overridden
per store.

Deterministic -- pure configuration, no I/O.
"""

from __future__ import annotations

from pydantic import Field

from src.models.common import GradeBase


class GradingConfig(GradeBase, frozen=True):
    """Configuration for grade aggregation and target solving."""

    # |sum(weights) - 100| must be below this for a module to be valid.
    weight_tolerance: float = Field(default=1e-4, gt=0.0)

    # Looser tolerance used by the human-readable validation report.
    report_tolerance: float = Field(default=1e-3, gt=0.0)

    # Bisection steps over [0, 100]; 20 steps resolve to ~1e-4.
    search_iterations: int = Field(default=20, ge=20)

    average_places: int = Field(default=2, ge=0)
    percent_places: int = Field(default=1, ge=0)

    classification_bounds: dict[str, float] = Field(
        default_factory=lambda: {
            "First": 70.0,
            "2:1": 60.0,
            "2:2": 50.0,
            "Third": 40.0,
        },
    )


DEFAULT_CONFIG = GradingConfig()
