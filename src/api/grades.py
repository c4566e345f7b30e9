"""FastAPI grade endpoints.

GET    /v1/grades/snapshot                                   -- full snapshot
PUT    /v1/grades/snapshot                                   -- import (replace) snapshot
GET    /v1/grades/export                                     -- download (?include_grades=false for template)
GET    /v1/grades/summary                                    -- final grade + classification
PUT    /v1/grades/active-year                                -- set active year
PUT    /v1/grades/desired-grade                              -- set desired final grade
POST   /v1/grades/years                                      -- add year
PATCH  /v1/grades/years/{year_id}                            -- update year
DELETE /v1/grades/years/{year_id}                            -- remove year (cascades)
GET    /v1/grades/years/{year_id}/summary                    -- year average + segments
POST   /v1/grades/years/{year_id}/modules                    -- add module
PATCH  /v1/grades/years/{year_id}/modules/{module_id}        -- update module
DELETE /v1/grades/years/{year_id}/modules/{module_id}        -- remove module
GET    .../modules/{module_id}/summary                       -- module metrics
GET    .../modules/{module_id}/target?desired=70             -- required scores
POST   .../modules/{module_id}/assignments                   -- add assignment
PATCH  .../assignments/{assignment_id}                       -- update assignment
DELETE .../assignments/{assignment_id}                       -- remove assignment
POST   .../assignments/{assignment_id}/subtasks              -- add subtask
PATCH  .../subtasks/{subtask_id}                             -- update subtask
DELETE .../subtasks/{subtask_id}                             -- remove subtask

Transport only: every computation is delegated to GradeStore. Unknown ids
map to 404, invalid values and malformed imports to 422.

Mutating routes are plain ``def`` so the snapshot file write triggered by
the store runs in the threadpool rather than on the event loop; the store
serializes them with its own lock.
"""

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field, ValidationError

from src.api.dependencies import get_grade_store
from src.engine.aggregator import Segments
from src.engine.target_solver import AssignmentTarget
from src.models.grades import AssignmentPatch, ModulePatch, SubTaskPatch, YearPatch
from src.store.grade_store import GradeStore
from src.store.serialization import SnapshotImportError, export_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/grades", tags=["grades"])

MODULE_PATH = "/years/{year_id}/modules/{module_id}"
ASSIGNMENT_PATH = MODULE_PATH + "/assignments/{assignment_id}"


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class CreateYearRequest(BaseModel):
    model_config = {"allow_inf_nan": False}

    name: str = Field(max_length=200)
    weight: float = 0.0


class CreatedResponse(BaseModel):
    id: str


class ActiveYearRequest(BaseModel):
    year_id: str | None = None


class DesiredGradeRequest(BaseModel):
    model_config = {"allow_inf_nan": False}

    desired_grade: float | None = None


class SegmentsResponse(BaseModel):
    completed: float
    missed: float
    remaining: float

    @classmethod
    def of(cls, segments: Segments) -> "SegmentsResponse":
        return cls(
            completed=segments.completed,
            missed=segments.missed,
            remaining=segments.remaining,
        )


class ModuleSummaryResponse(BaseModel):
    average: float | None
    achieved_score: float
    completion_percent: int
    valid: bool
    segments: SegmentsResponse


class YearSummaryResponse(BaseModel):
    average: float | None
    segments: SegmentsResponse


class GradeSummaryResponse(BaseModel):
    final_grade: float | None
    classification: str | None
    total_year_weight: float
    any_invalid_module: bool
    desired_grade: float | None


class AssignmentTargetResponse(BaseModel):
    """Per-assignment target; unreachable values are null with feasible=false."""

    assignment_id: str
    required: float | None
    solo_required: float | None
    feasible: bool

    @classmethod
    def of(cls, target: AssignmentTarget) -> "AssignmentTargetResponse":
        return cls(
            assignment_id=target.assignment_id,
            required=None if math.isinf(target.required) else target.required,
            solo_required=None if math.isinf(target.solo_required) else target.solo_required,
            feasible=target.feasible,
        )


class TargetResponse(BaseModel):
    desired: float
    required_module_score: float | None
    assignments: list[AssignmentTargetResponse]


class ImportResponse(BaseModel):
    years: int
    warnings: list[str]


@contextmanager
def _resolving() -> Iterator[None]:
    """Translate store lookup/validation failures into HTTP errors."""
    try:
        yield
    except KeyError as exc:
        detail = exc.args[0] if exc.args else "Not found."
        raise HTTPException(status_code=404, detail=detail) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@router.get("/snapshot")
async def get_snapshot(store: GradeStore = Depends(get_grade_store)) -> dict:
    return store.export_snapshot()


@router.put("/snapshot", response_model=ImportResponse)
def import_snapshot(
    data: dict[str, Any] = Body(...),
    store: GradeStore = Depends(get_grade_store),
) -> ImportResponse:
    """Replace the snapshot. A malformed body leaves the current one intact."""
    try:
        warnings = store.import_snapshot(data)
    except SnapshotImportError as exc:
        logger.warning("Rejected snapshot import: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ImportResponse(years=len(store.snapshot.years), warnings=warnings)


@router.get("/export")
async def export_snapshot(
    response: Response,
    include_grades: bool = Query(default=True),
    store: GradeStore = Depends(get_grade_store),
) -> dict:
    filename = export_filename(include_grades=include_grades)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return store.export_snapshot(include_grades=include_grades)


@router.get("/summary", response_model=GradeSummaryResponse)
async def get_summary(store: GradeStore = Depends(get_grade_store)) -> GradeSummaryResponse:
    classification = store.classification()
    return GradeSummaryResponse(
        final_grade=store.final_grade(),
        classification=classification.value if classification else None,
        total_year_weight=store.total_year_weight(),
        any_invalid_module=store.any_invalid_module(),
        desired_grade=store.snapshot.desired_grade,
    )


@router.put("/active-year", status_code=204)
def set_active_year(
    body: ActiveYearRequest,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.set_active_year(body.year_id)


@router.put("/desired-grade", status_code=204)
def set_desired_grade(
    body: DesiredGradeRequest,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    store.set_desired_grade(body.desired_grade)


# ---------------------------------------------------------------------------
# Years
# ---------------------------------------------------------------------------


@router.post("/years", status_code=201, response_model=CreatedResponse)
def add_year(
    body: CreateYearRequest,
    store: GradeStore = Depends(get_grade_store),
) -> CreatedResponse:
    return CreatedResponse(id=store.add_year(body.name, body.weight))


@router.patch("/years/{year_id}", status_code=204)
def update_year(
    year_id: str,
    body: YearPatch,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.update_year(year_id, body)


@router.delete("/years/{year_id}", status_code=204)
def remove_year(year_id: str, store: GradeStore = Depends(get_grade_store)) -> None:
    with _resolving():
        store.remove_year(year_id)


@router.get("/years/{year_id}/summary", response_model=YearSummaryResponse)
async def get_year_summary(
    year_id: str,
    store: GradeStore = Depends(get_grade_store),
) -> YearSummaryResponse:
    with _resolving():
        return YearSummaryResponse(
            average=store.year_average(year_id),
            segments=SegmentsResponse.of(store.year_segments(year_id)),
        )


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


@router.post("/years/{year_id}/modules", status_code=201, response_model=CreatedResponse)
def add_module(
    year_id: str,
    body: ModulePatch,
    store: GradeStore = Depends(get_grade_store),
) -> CreatedResponse:
    with _resolving():
        return CreatedResponse(id=store.add_module(year_id, body))


@router.patch(MODULE_PATH, status_code=204)
def update_module(
    year_id: str,
    module_id: str,
    body: ModulePatch,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.update_module(year_id, module_id, body)


@router.delete(MODULE_PATH, status_code=204)
def remove_module(
    year_id: str,
    module_id: str,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.remove_module(year_id, module_id)


@router.get(MODULE_PATH + "/summary", response_model=ModuleSummaryResponse)
async def get_module_summary(
    year_id: str,
    module_id: str,
    store: GradeStore = Depends(get_grade_store),
) -> ModuleSummaryResponse:
    with _resolving():
        return ModuleSummaryResponse(
            average=store.module_average(year_id, module_id),
            achieved_score=store.module_achieved_score(year_id, module_id),
            completion_percent=store.module_completion_percent(year_id, module_id),
            valid=store.is_module_valid(year_id, module_id),
            segments=SegmentsResponse.of(store.module_segments(year_id, module_id)),
        )


@router.get(MODULE_PATH + "/target", response_model=TargetResponse)
async def get_module_target(
    year_id: str,
    module_id: str,
    desired: float = Query(ge=0.0, le=100.0),
    store: GradeStore = Depends(get_grade_store),
) -> TargetResponse:
    with _resolving():
        required = store.required_module_score(year_id, module_id, desired)
        targets = store.required_per_assignment(year_id, module_id, desired)
    return TargetResponse(
        desired=desired,
        required_module_score=required,
        assignments=[AssignmentTargetResponse.of(t) for t in targets],
    )


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


@router.post(MODULE_PATH + "/assignments", status_code=201, response_model=CreatedResponse)
def add_assignment(
    year_id: str,
    module_id: str,
    body: AssignmentPatch,
    store: GradeStore = Depends(get_grade_store),
) -> CreatedResponse:
    with _resolving():
        return CreatedResponse(id=store.add_assignment(year_id, module_id, body))


@router.patch(ASSIGNMENT_PATH, status_code=204)
def update_assignment(
    year_id: str,
    module_id: str,
    assignment_id: str,
    body: AssignmentPatch,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.update_assignment(year_id, module_id, assignment_id, body)


@router.delete(ASSIGNMENT_PATH, status_code=204)
def remove_assignment(
    year_id: str,
    module_id: str,
    assignment_id: str,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.remove_assignment(year_id, module_id, assignment_id)


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------


@router.post(ASSIGNMENT_PATH + "/subtasks", status_code=201, response_model=CreatedResponse)
def add_subtask(
    year_id: str,
    module_id: str,
    assignment_id: str,
    body: SubTaskPatch,
    store: GradeStore = Depends(get_grade_store),
) -> CreatedResponse:
    with _resolving():
        return CreatedResponse(
            id=store.add_subtask(year_id, module_id, assignment_id, body),
        )


@router.patch(ASSIGNMENT_PATH + "/subtasks/{subtask_id}", status_code=204)
def update_subtask(
    year_id: str,
    module_id: str,
    assignment_id: str,
    subtask_id: str,
    body: SubTaskPatch,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.update_subtask(year_id, module_id, assignment_id, subtask_id, body)


@router.delete(ASSIGNMENT_PATH + "/subtasks/{subtask_id}", status_code=204)
def remove_subtask(
    year_id: str,
    module_id: str,
    assignment_id: str,
    subtask_id: str,
    store: GradeStore = Depends(get_grade_store),
) -> None:
    with _resolving():
        store.remove_subtask(year_id, module_id, assignment_id, subtask_id)
