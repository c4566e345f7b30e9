"""UK-style degree classification of a final grade."""

from __future__ import annotations

from enum import StrEnum

from src.engine.config import DEFAULT_CONFIG, GradingConfig


class Classification(StrEnum):
    """Five degree bands, best first."""

    FIRST = "First"
    UPPER_SECOND = "2:1"
    LOWER_SECOND = "2:2"
    THIRD = "Third"
    FAIL = "Fail"


def classify(
    grade: float | None,
    config: GradingConfig = DEFAULT_CONFIG,
) -> Classification | None:
    """Map a grade to its band; None when there is no grade yet."""
    if grade is None:
        return None
    bounds = sorted(
        config.classification_bounds.items(), key=lambda kv: kv[1], reverse=True,
    )
    for label, lower in bounds:
        if grade >= lower:
            return Classification(label)
    return Classification.FAIL


def desired_grade_options(config: GradingConfig = DEFAULT_CONFIG) -> list[float]:
    """Selectable target grades: the band boundaries, highest first."""
    return sorted(config.classification_bounds.values(), reverse=True)
