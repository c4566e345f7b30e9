"""Target solver: minimum average still needed to reach a final grade.

For a module with incomplete work, finds the smallest uniform score ``x``
on the remaining assignment weight such that the final grade reaches the
desired value, holding every other module and year fixed.

The final grade is a two-level renormalized blend (credits within a year,
year weights across years, both restricted to entries with a defined
average), so there is no closed-form inverse. The projection is
monotonically non-decreasing in ``x``, which makes bisection over [0, 100]
exact to the search resolution.

Deterministic -- fixed iteration count, always terminates.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from src.engine.aggregator import remaining_weight, round_half_up
from src.engine.config import DEFAULT_CONFIG, GradingConfig
from src.engine.hierarchy import blend_final_grade, blend_year_average
from src.models.grades import GradeSnapshot, Module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentTarget:
    """Required score for one incomplete assignment.

    ``required`` is the module-wide average needed on all remaining work.
    ``solo_required`` is what this assignment alone would need if every
    other incomplete assignment scored 0. Both are ``math.inf`` when even
    perfect scores cannot reach the target.
    """

    assignment_id: str
    required: float
    solo_required: float
    feasible: bool


def _completed_contribution(module: Module) -> float:
    """Un-rebased marks from done assignments (missing score counts as 0)."""
    return sum(
        (a.score or 0.0) * (a.weight / 100.0)
        for a in module.assignments
        if a.done
    )


class TargetSolver:
    """Bisection solver for required module scores."""

    def __init__(self, config: GradingConfig | None = None) -> None:
        self._config = config or DEFAULT_CONFIG

    def projected_final_grade(
        self,
        snapshot: GradeSnapshot,
        year_id: str,
        module_id: str,
        x: float,
    ) -> float | None:
        """Final grade if the module's remaining weight all scored ``x``.

        Returns None when the substitution leaves nothing to average.

        Raises:
            KeyError: If the year or module does not exist.
        """
        year = snapshot.find_year(year_id)
        module = snapshot.find_module(year_id, module_id)

        remaining = remaining_weight(module.assignments)
        module_avg = _completed_contribution(module) + x * (remaining / 100.0)

        year_avg = blend_year_average(
            year, self._config, module_overrides={module.id: module_avg},
        )
        if year_avg is None:
            return None
        return blend_final_grade(
            snapshot, self._config, year_overrides={year.id: year_avg},
        )

    def required_module_score(
        self,
        snapshot: GradeSnapshot,
        year_id: str,
        module_id: str,
        desired: float,
    ) -> float | None:
        """Minimum uniform average on the module's incomplete work.

        Returns None when the module is fully graded (nothing to solve) or
        when the target is unreachable even with 100 on everything left.
        Never returns a value above 100.

        Raises:
            KeyError: If the year or module does not exist.
        """
        module = snapshot.find_module(year_id, module_id)
        if remaining_weight(module.assignments) <= 0:
            return None

        best = self.projected_final_grade(snapshot, year_id, module_id, 100.0)
        if best is None or best < desired:
            logger.debug(
                "Target %.1f unreachable for module %s (best %s)",
                desired, module_id, best,
            )
            return None

        lo, hi = 0.0, 100.0
        for _ in range(self._config.search_iterations):
            mid = (lo + hi) / 2.0
            projected = self.projected_final_grade(snapshot, year_id, module_id, mid)
            if projected is not None and projected >= desired:
                hi = mid
            else:
                lo = mid
        return round_half_up(hi, self._config.percent_places)

    def required_per_assignment(
        self,
        snapshot: GradeSnapshot,
        year_id: str,
        module_id: str,
        desired: float,
    ) -> list[AssignmentTarget]:
        """Per-assignment targets for every incomplete assignment.

        Empty when the module has no remaining weight.

        Raises:
            KeyError: If the year or module does not exist.
        """
        module = snapshot.find_module(year_id, module_id)
        remaining = remaining_weight(module.assignments)
        if remaining <= 0:
            return []

        pending = [a for a in module.assignments if not a.done]
        x = self.required_module_score(snapshot, year_id, module_id, desired)
        if x is None:
            return [
                AssignmentTarget(
                    assignment_id=a.id,
                    required=math.inf,
                    solo_required=math.inf,
                    feasible=False,
                )
                for a in pending
            ]

        places = self._config.percent_places
        targets: list[AssignmentTarget] = []
        for assignment in pending:
            if assignment.weight <= 0:
                solo = math.inf
            else:
                solo = round_half_up(x * (remaining / assignment.weight), places)
            targets.append(
                AssignmentTarget(
                    assignment_id=assignment.id,
                    required=round_half_up(x, places),
                    solo_required=solo,
                    feasible=solo <= 100.0,
                )
            )
        return targets
