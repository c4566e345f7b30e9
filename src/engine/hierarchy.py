"""Hierarchy walker: module -> year -> final grade aggregation.

Level-specific weight semantics:

- Module: assignments weighted by their percentage ``weight``.
- Year: modules weighted by ``credits`` (arbitrary positive magnitudes).
  Only modules with a defined average take part.
- Final: years weighted by their ``weight``, renormalized over the years
  that have a defined average.

The ``blend_*`` functions return unrounded values and accept overrides so
the target solver can substitute hypothetical module/year averages. The
public selectors round (averages to 2 places, percentages to 1).

Pure deterministic functions, no side effects.
"""

from __future__ import annotations

from collections.abc import Mapping

from src.engine.aggregator import (
    Segments,
    achieved_contribution,
    completion_percent,
    is_weight_sum_valid,
    rescale_segments,
    round_half_up,
    weight_segments,
    weighted_average,
    weighted_mean,
)
from src.engine.config import DEFAULT_CONFIG, GradingConfig
from src.models.grades import GradeSnapshot, Module, Year


# ---------------------------------------------------------------------------
# Module level
# ---------------------------------------------------------------------------


def module_average(module: Module, config: GradingConfig = DEFAULT_CONFIG) -> float | None:
    """Average over graded assignments; None if nothing is graded."""
    return weighted_average(module.assignments, places=config.average_places)


def module_segments(module: Module, config: GradingConfig = DEFAULT_CONFIG) -> Segments:
    return weight_segments(module.assignments, places=config.percent_places)


def module_achieved_score(module: Module, config: GradingConfig = DEFAULT_CONFIG) -> float:
    """Marks secured so far, in module-weight terms (not re-based)."""
    return achieved_contribution(module.assignments, places=config.average_places)


def module_completion_percent(module: Module) -> int:
    return completion_percent(module.assignments)


def is_module_valid(module: Module, config: GradingConfig = DEFAULT_CONFIG) -> bool:
    """Assignment weights sum to 100 within tolerance."""
    return is_weight_sum_valid(module.assignments, tolerance=config.weight_tolerance)


# ---------------------------------------------------------------------------
# Year level
# ---------------------------------------------------------------------------


def blend_year_average(
    year: Year,
    config: GradingConfig = DEFAULT_CONFIG,
    *,
    module_overrides: Mapping[str, float | None] | None = None,
) -> float | None:
    """Credit-weighted mean of module averages (unrounded).

    ``module_overrides`` maps module id -> average to use instead of the
    module's own.
    """
    overrides = module_overrides or {}
    values: list[float] = []
    credits: list[float] = []
    for module in year.modules:
        if module.id in overrides:
            avg = overrides[module.id]
        else:
            avg = module_average(module, config)
        if avg is None:
            continue
        values.append(avg)
        credits.append(module.credits)
    if not values:
        return None
    return weighted_mean(values, credits)


def year_average(year: Year, config: GradingConfig = DEFAULT_CONFIG) -> float | None:
    raw = blend_year_average(year, config)
    if raw is None:
        return None
    return round_half_up(raw, config.average_places)


def year_segments(year: Year, config: GradingConfig = DEFAULT_CONFIG) -> Segments:
    """Module segments weighted by each module's share of the year's credits."""
    total_credits = sum(m.credits for m in year.modules)
    if total_credits == 0:
        return Segments.zero()

    completed = 0.0
    missed = 0.0
    remaining = 0.0
    for module in year.modules:
        seg = module_segments(module, config)
        completed += (seg.completed / 100.0) * module.credits
        missed += (seg.missed / 100.0) * module.credits
        remaining += (seg.remaining / 100.0) * module.credits

    return rescale_segments(completed, missed, remaining, places=config.percent_places)


# ---------------------------------------------------------------------------
# Final grade
# ---------------------------------------------------------------------------


def blend_final_grade(
    snapshot: GradeSnapshot,
    config: GradingConfig = DEFAULT_CONFIG,
    *,
    year_overrides: Mapping[str, float | None] | None = None,
) -> float | None:
    """Year-weighted mean of defined year averages, renormalized (unrounded)."""
    overrides = year_overrides or {}
    values: list[float] = []
    weights: list[float] = []
    for year in snapshot.years:
        if year.id in overrides:
            avg = overrides[year.id]
        else:
            avg = year_average(year, config)
        if avg is None:
            continue
        values.append(avg)
        weights.append(year.weight)
    if not values:
        return None
    return weighted_mean(values, weights)


def final_grade(snapshot: GradeSnapshot, config: GradingConfig = DEFAULT_CONFIG) -> float | None:
    raw = blend_final_grade(snapshot, config)
    if raw is None:
        return None
    return round_half_up(raw, config.average_places)


def total_year_weight(snapshot: GradeSnapshot) -> float:
    """Sum of configured year weights (expected to be 1, not enforced)."""
    return float(sum(y.weight for y in snapshot.years))


def any_invalid_module(snapshot: GradeSnapshot, config: GradingConfig = DEFAULT_CONFIG) -> bool:
    return any(
        not is_module_valid(module, config)
        for year in snapshot.years
        for module in year.modules
    )
