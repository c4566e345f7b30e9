"""JSON-compatible serialization of grade snapshots.

The wire format mirrors the domain models exactly (``years`` ->
``modules`` -> ``assignments`` -> ``subTasks``, plus ``activeYearId`` and
``desiredGrade``). Absent optionals are omitted.

A "structure-only" export strips every score, resets every ``done`` flag
and drops ``desiredGrade`` so the file can be shared as a blank template.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date

from pydantic import ValidationError

from src.engine.aggregator import derive_assignment
from src.models.grades import GradeSnapshot


class SnapshotImportError(ValueError):
    """Raised when imported data is not a usable grade snapshot."""


def snapshot_to_dict(snapshot: GradeSnapshot, *, include_grades: bool = True) -> dict:
    """Serialize ``snapshot`` to a plain JSON-compatible dict."""
    data = snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)
    if include_grades:
        return data

    data.pop("desiredGrade", None)
    for year in data["years"]:
        for module in year["modules"]:
            for assignment in module["assignments"]:
                assignment.pop("score", None)
                assignment["done"] = False
                for sub_task in assignment.get("subTasks") or []:
                    sub_task.pop("score", None)
                    sub_task["done"] = False
    return data


def _rederive(snapshot: GradeSnapshot) -> GradeSnapshot:
    """Re-apply subtask derivation so imported derived fields are consistent."""
    years = []
    for year in snapshot.years:
        modules = []
        for module in year.modules:
            assignments = tuple(derive_assignment(a) for a in module.assignments)
            modules.append(module.model_copy(update={"assignments": assignments}))
        years.append(year.model_copy(update={"modules": tuple(modules)}))
    return snapshot.model_copy(update={"years": tuple(years)})


def snapshot_from_dict(data: object) -> GradeSnapshot:
    """Validate and build a snapshot from decoded JSON.

    Raises:
        SnapshotImportError: If ``data`` has no ``years`` array or fails
            schema validation.
    """
    if not isinstance(data, Mapping) or not isinstance(data.get("years"), list):
        msg = "snapshot must be an object containing a 'years' array."
        raise SnapshotImportError(msg)
    try:
        snapshot = GradeSnapshot.model_validate(data)
    except ValidationError as exc:
        msg = f"snapshot failed validation ({exc.error_count()} error(s)): {exc}"
        raise SnapshotImportError(msg) from exc
    return _rederive(snapshot)


def dumps(snapshot: GradeSnapshot, *, include_grades: bool = True, indent: int | None = 2) -> str:
    return json.dumps(snapshot_to_dict(snapshot, include_grades=include_grades), indent=indent)


def _reject_constant(name: str) -> float:
    msg = f"{name} is not a valid number"
    raise ValueError(msg)


def loads(text: str | bytes) -> GradeSnapshot:
    """Parse JSON text into a snapshot.

    ``NaN`` and ``Infinity`` literals are rejected.

    Raises:
        SnapshotImportError: If the text is not UTF-8 JSON or not a snapshot.
    """
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        msg = f"snapshot is not valid JSON: {exc.msg}"
        raise SnapshotImportError(msg) from exc
    except ValueError as exc:
        # UnicodeDecodeError and rejected constants
        msg = f"snapshot is not valid JSON: {exc}"
        raise SnapshotImportError(msg) from exc
    return snapshot_from_dict(data)


def export_filename(*, include_grades: bool = True, on: date | None = None) -> str:
    """Download name, e.g. ``grades-full-2024-05-01.json``."""
    kind = "full" if include_grades else "structure"
    day = (on or date.today()).isoformat()
    return f"grades-{kind}-{day}.json"
