"""Weighted aggregator: fold weighted, partially-complete items into scores.

Works on any item exposing ``weight`` (percentage of its parent), an
optional numeric ``score`` and a ``done`` flag -- assignments within a
module and subtasks within an assignment.

Two metrics are deliberately kept apart:

- ``weighted_average`` re-bases to the graded portion only
  (Exam 60% scored 75 with nothing else graded -> 75).
- ``achieved_contribution`` / ``Segments.completed`` stay in parent-weight
  terms (the same exam secures 45 of the module's 100).

Pure deterministic functions, no side effects.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

import numpy as np

from src.models.grades import Assignment


class WeightedItem(Protocol):
    """Anything with a percentage weight, optional score and done flag."""

    @property
    def weight(self) -> float: ...

    @property
    def score(self) -> float | None: ...

    @property
    def done(self) -> bool: ...


@dataclass(frozen=True)
class Segments:
    """Three-way split of a parent's weight, in percent (sums to 100 or all 0)."""

    completed: float
    missed: float
    remaining: float

    @classmethod
    def zero(cls) -> Segments:
        return cls(completed=0.0, missed=0.0, remaining=0.0)

    @property
    def total(self) -> float:
        return self.completed + self.missed + self.remaining


# ---------------------------------------------------------------------------
# Primitive helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float, places: int) -> float:
    """Round to ``places`` decimals with ties away from zero (68.125 -> 68.13).

    Uses the shortest decimal repr of ``value``, so 12.25 is a tie rather
    than whatever binary neighbour the float happens to hold.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp_percent(value: float) -> float:
    """Clamp a written weight into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float | None:
    """Weighted mean of ``values``; None when the weights sum to zero.

    Weights are arbitrary non-negative magnitudes (credits, year weights)
    and are renormalized by their own sum.
    """
    w = np.asarray(weights, dtype=np.float64)
    total = float(w.sum())
    if total == 0.0:
        return None
    v = np.asarray(values, dtype=np.float64)
    return float(np.dot(v, w / total))


def rescale_segments(
    completed: float,
    missed: float,
    remaining: float,
    *,
    places: int = 1,
) -> Segments:
    """Rescale three raw magnitudes so they sum to 100, then round."""
    total = completed + missed + remaining
    if total == 0:
        return Segments.zero()
    scale = 100.0 / total
    return Segments(
        completed=round_half_up(completed * scale, places),
        missed=round_half_up(missed * scale, places),
        remaining=round_half_up(remaining * scale, places),
    )


def _graded(items: Iterable[WeightedItem]) -> list[WeightedItem]:
    return [i for i in items if i.done and i.score is not None]


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def weighted_average(items: Iterable[WeightedItem], *, places: int = 2) -> float | None:
    """Average over done, scored items, re-based to the graded weight.

    Returns None when no graded weight exists (not zero).
    """
    graded = _graded(items)
    if not graded:
        return None
    weights = np.array([i.weight for i in graded], dtype=np.float64)
    scores = np.array([i.score for i in graded], dtype=np.float64)
    graded_weight = float(weights.sum())
    if graded_weight == 0.0:
        return None
    total_score = float(np.dot(scores, weights / 100.0))
    return round_half_up(total_score / (graded_weight / 100.0), places)


def achieved_contribution(items: Iterable[WeightedItem], *, places: int = 2) -> float:
    """Sum of ``score * weight / 100`` over done, scored items (not re-based)."""
    graded = _graded(items)
    total = sum(float(i.score) * (i.weight / 100.0) for i in graded)
    return round_half_up(total, places)


def weight_segments(items: Iterable[WeightedItem], *, places: int = 1) -> Segments:
    """Split total weight into completed / missed / remaining percentages.

    A done item without a score counts as scoring 0.
    """
    completed = 0.0
    missed = 0.0
    remaining = 0.0
    for item in items:
        if not item.done:
            remaining += item.weight
            continue
        score = item.score if item.score is not None else 0.0
        achieved = (score / 100.0) * item.weight
        completed += achieved
        missed += item.weight - achieved
    return rescale_segments(completed, missed, remaining, places=places)


def total_weight(items: Iterable[WeightedItem]) -> float:
    return float(sum(i.weight for i in items))


def remaining_weight(items: Iterable[WeightedItem]) -> float:
    """Weight of items not yet done."""
    return float(sum(i.weight for i in items if not i.done))


def completion_percent(items: Iterable[WeightedItem]) -> int:
    """Weight of done items, rounded half-up to a whole percent."""
    done = sum(i.weight for i in items if i.done)
    return int(math.floor(done + 0.5))


def is_weight_sum_valid(items: Iterable[WeightedItem], *, tolerance: float = 1e-4) -> bool:
    """True when the weights sum to 100 within ``tolerance``. Report only."""
    return abs(total_weight(items) - 100.0) < tolerance


# ---------------------------------------------------------------------------
# Subtask -> assignment derivation
# ---------------------------------------------------------------------------


def derive_assignment(assignment: Assignment, *, places: int = 2) -> Assignment:
    """Recompute an assignment's score and done flag from its subtasks.

    Every scored subtask contributes ``score * weight / 100`` whether or not
    it is done; ``done`` is true only when all subtasks are done. Subtask
    weights are not normalized and the derived score is not clamped.
    Assignments without subtasks are returned unchanged.
    """
    if not assignment.sub_tasks:
        return assignment

    weighted_score_sum = 0.0
    all_done = True
    for sub_task in assignment.sub_tasks:
        if not sub_task.done:
            all_done = False
        if sub_task.score is not None:
            weighted_score_sum += sub_task.score * sub_task.weight

    return assignment.model_copy(
        update={
            "score": round_half_up(weighted_score_sum / 100.0, places),
            "done": all_done,
        },
    )
