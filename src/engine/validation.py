"""Human-readable validation report for a grade snapshot.

Never rejects anything: the messages are surfaced as warnings next to an
import or in the UI, while every computation keeps working with whatever
weights are present.
"""

from __future__ import annotations

from collections.abc import Mapping

from src.engine.config import DEFAULT_CONFIG, GradingConfig
from src.models.grades import GradeSnapshot

NO_YEARS_MESSAGE = "No years found"


def _format_sum(total: float) -> str:
    return f"{total:g}"


def validate_snapshot(
    data: GradeSnapshot | Mapping[str, object] | None,
    config: GradingConfig = DEFAULT_CONFIG,
) -> list[str]:
    """List module weight problems in a snapshot or raw snapshot dict.

    Returns ``["No years found"]`` when there is no ``years`` list, else one
    message per module whose assignment weights do not sum to 100.
    """
    if isinstance(data, GradeSnapshot):
        data = data.model_dump(by_alias=True)

    if not isinstance(data, Mapping) or not isinstance(data.get("years"), (list, tuple)):
        return [NO_YEARS_MESSAGE]

    errors: list[str] = []
    for year in data["years"]:
        if not isinstance(year, Mapping):
            continue
        for module in year.get("modules") or []:
            if not isinstance(module, Mapping):
                continue
            total = 0.0
            for assignment in module.get("assignments") or []:
                if isinstance(assignment, Mapping):
                    total += float(assignment.get("weight") or 0.0)
            if abs(total - 100.0) > config.report_tolerance:
                errors.append(
                    f"{year.get('name', '')} / {module.get('code', '')} "
                    f"assignment weights sum to {_format_sum(total)}%"
                )
    return errors
