"""GradeStore -- the single owner of the mutable grade snapshot.

Every mutation builds a new snapshot copy-on-write along the touched path
(year -> module -> assignment -> subtask) and swaps it in atomically, so a
reader holding ``store.snapshot`` always sees a complete revision. Lookups
and validation run before the swap: a failed mutation leaves the previous
snapshot in place.

Assignment mutations and every subtask add/update/remove re-run the
subtask derivation synchronously. Derived grades (averages, segments,
targets) are never cached; each selector recomputes from the current
snapshot.

Unknown identifiers raise ``KeyError``. Missing grades are ``None``.
"""

from __future__ import annotations

import functools
import logging
import math
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import TypeVar

from pydantic import BaseModel

from src.engine import hierarchy
from src.engine.aggregator import Segments, clamp_percent, derive_assignment
from src.engine.classification import Classification, classify
from src.engine.config import DEFAULT_CONFIG, GradingConfig
from src.engine.target_solver import AssignmentTarget, TargetSolver
from src.engine.validation import validate_snapshot
from src.models.common import new_id
from src.models.grades import (
    Assignment,
    AssignmentPatch,
    GradeSnapshot,
    Module,
    ModulePatch,
    SubTask,
    SubTaskPatch,
    Year,
    YearPatch,
)
from src.store.serialization import snapshot_from_dict, snapshot_to_dict

logger = logging.getLogger(__name__)

Listener = Callable[[GradeSnapshot], None]

_E = TypeVar("_E", bound=BaseModel)
_P = TypeVar("_P", bound=BaseModel)
_R = TypeVar("_R")


# ---------------------------------------------------------------------------
# Copy-on-write helpers
# ---------------------------------------------------------------------------


def _patch_changes(patch: _P | Mapping[str, object] | None, patch_type: type[_P]) -> dict[str, object]:
    if patch is None:
        return {}
    if not isinstance(patch, patch_type):
        patch = patch_type.model_validate(patch)
    return patch.changes()


def _apply(entity: _E, changes: Mapping[str, object]) -> _E:
    """Return a validated copy of ``entity`` with ``changes`` applied."""
    if not changes:
        return entity
    return type(entity).model_validate({**entity.model_dump(), **changes})


def _replace_by_id(
    items: Sequence[_E],
    item_id: str,
    fn: Callable[[_E], _E],
    kind: str,
) -> tuple[_E, ...]:
    replaced = False
    out: list[_E] = []
    for item in items:
        if item.id == item_id:
            out.append(fn(item))
            replaced = True
        else:
            out.append(item)
    if not replaced:
        msg = f"{kind} {item_id} not found."
        raise KeyError(msg)
    return tuple(out)


def _remove_by_id(items: Sequence[_E], item_id: str, kind: str) -> tuple[_E, ...]:
    kept = tuple(item for item in items if item.id != item_id)
    if len(kept) == len(items):
        msg = f"{kind} {item_id} not found."
        raise KeyError(msg)
    return kept


def _locked(method: Callable[..., _R]) -> Callable[..., _R]:
    """Serialize a mutator on the store's lock (read, rebuild, swap)."""

    @functools.wraps(method)
    def wrapper(self: GradeStore, *args: object, **kwargs: object) -> _R:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class GradeStore:
    """Explicit state owner for one user's grade snapshot."""

    def __init__(
        self,
        snapshot: GradeSnapshot | None = None,
        *,
        config: GradingConfig | None = None,
    ) -> None:
        self._snapshot = snapshot if snapshot is not None else GradeSnapshot()
        self._config = config or DEFAULT_CONFIG
        self._solver = TargetSolver(config=self._config)
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @property
    def snapshot(self) -> GradeSnapshot:
        return self._snapshot

    @property
    def config(self) -> GradingConfig:
        return self._config

    # ---------------------------------------------------------------
    # Change notification
    # ---------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new snapshot after every mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, snapshot: GradeSnapshot) -> None:
        """Swap in ``snapshot`` and notify listeners.

        The swap is already applied when listeners run, so a failing
        listener is logged and the remaining ones are still notified.
        """
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    def _set_years(self, years: tuple[Year, ...]) -> None:
        self._commit(self._snapshot.model_copy(update={"years": years}))

    def _update_year(self, year_id: str, fn: Callable[[Year], Year]) -> None:
        self._set_years(_replace_by_id(self._snapshot.years, year_id, fn, "Year"))

    def _update_module(self, year_id: str, module_id: str, fn: Callable[[Module], Module]) -> None:
        def on_year(year: Year) -> Year:
            modules = _replace_by_id(year.modules, module_id, fn, "Module")
            return year.model_copy(update={"modules": modules})

        self._update_year(year_id, on_year)

    def _update_assignment(
        self,
        year_id: str,
        module_id: str,
        assignment_id: str,
        fn: Callable[[Assignment], Assignment],
    ) -> None:
        def on_module(module: Module) -> Module:
            assignments = _replace_by_id(
                module.assignments,
                assignment_id,
                lambda a: derive_assignment(fn(a), places=self._config.average_places),
                "Assignment",
            )
            return module.model_copy(update={"assignments": assignments})

        self._update_module(year_id, module_id, on_module)

    # ---------------------------------------------------------------
    # Years
    # ---------------------------------------------------------------

    @_locked
    def add_year(self, name: str, weight: float = 0.0) -> str:
        year = Year(id=new_id(), name=name, weight=weight)
        self._set_years((*self._snapshot.years, year))
        logger.debug("Added year %s", year.id)
        return year.id

    @_locked
    def update_year(self, year_id: str, patch: YearPatch | Mapping[str, object]) -> None:
        changes = _patch_changes(patch, YearPatch)
        self._update_year(year_id, lambda y: _apply(y, changes))

    @_locked
    def remove_year(self, year_id: str) -> None:
        """Remove a year and everything in it."""
        years = _remove_by_id(self._snapshot.years, year_id, "Year")
        update: dict[str, object] = {"years": years}
        if self._snapshot.active_year_id == year_id:
            update["active_year_id"] = None
        self._commit(self._snapshot.model_copy(update=update))

    @_locked
    def set_active_year(self, year_id: str | None) -> None:
        if year_id is not None:
            self._snapshot.find_year(year_id)
        self._commit(self._snapshot.model_copy(update={"active_year_id": year_id}))

    @_locked
    def set_desired_grade(self, grade: float | None) -> None:
        if grade is not None and not math.isfinite(grade):
            msg = f"Desired grade must be a finite number, got {grade!r}."
            raise ValueError(msg)
        self._commit(self._snapshot.model_copy(update={"desired_grade": grade}))

    # ---------------------------------------------------------------
    # Modules
    # ---------------------------------------------------------------

    @_locked
    def add_module(self, year_id: str, patch: ModulePatch | Mapping[str, object] | None = None) -> str:
        changes = {k: v for k, v in _patch_changes(patch, ModulePatch).items() if v is not None}
        module = Module.model_validate({"id": new_id(), **changes})

        def on_year(year: Year) -> Year:
            return year.model_copy(update={"modules": (*year.modules, module)})

        self._update_year(year_id, on_year)
        return module.id

    @_locked
    def update_module(
        self,
        year_id: str,
        module_id: str,
        patch: ModulePatch | Mapping[str, object],
    ) -> None:
        changes = _patch_changes(patch, ModulePatch)
        self._update_module(year_id, module_id, lambda m: _apply(m, changes))

    @_locked
    def remove_module(self, year_id: str, module_id: str) -> None:
        def on_year(year: Year) -> Year:
            return year.model_copy(
                update={"modules": _remove_by_id(year.modules, module_id, "Module")},
            )

        self._update_year(year_id, on_year)

    # ---------------------------------------------------------------
    # Assignments
    # ---------------------------------------------------------------

    @_locked
    def add_assignment(
        self,
        year_id: str,
        module_id: str,
        patch: AssignmentPatch | Mapping[str, object] | None = None,
    ) -> str:
        """Add an assignment; ``done`` defaults to "has a score"."""
        changes = _patch_changes(patch, AssignmentPatch)
        score = changes.get("score")
        done = changes.get("done")
        assignment = Assignment(
            id=new_id(),
            name=changes.get("name") or "",
            weight=clamp_percent(changes.get("weight") or 0.0),
            score=score,
            done=done if done is not None else score is not None,
        )

        def on_module(module: Module) -> Module:
            return module.model_copy(update={"assignments": (*module.assignments, assignment)})

        self._update_module(year_id, module_id, on_module)
        return assignment.id

    @_locked
    def update_assignment(
        self,
        year_id: str,
        module_id: str,
        assignment_id: str,
        patch: AssignmentPatch | Mapping[str, object],
    ) -> None:
        """Patch an assignment. Score/done are re-derived if it has subtasks."""
        changes = _patch_changes(patch, AssignmentPatch)
        if changes.get("weight") is not None:
            changes["weight"] = clamp_percent(changes["weight"])
        self._update_assignment(year_id, module_id, assignment_id, lambda a: _apply(a, changes))

    @_locked
    def remove_assignment(self, year_id: str, module_id: str, assignment_id: str) -> None:
        def on_module(module: Module) -> Module:
            return module.model_copy(
                update={
                    "assignments": _remove_by_id(module.assignments, assignment_id, "Assignment"),
                },
            )

        self._update_module(year_id, module_id, on_module)

    # ---------------------------------------------------------------
    # Subtasks
    # ---------------------------------------------------------------

    @_locked
    def add_subtask(
        self,
        year_id: str,
        module_id: str,
        assignment_id: str,
        patch: SubTaskPatch | Mapping[str, object] | None = None,
    ) -> str:
        changes = _patch_changes(patch, SubTaskPatch)
        sub_task = SubTask(
            id=new_id(),
            name=changes.get("name") or "",
            weight=clamp_percent(changes.get("weight") or 0.0),
            score=changes.get("score"),
            done=bool(changes.get("done")),
        )

        def on_assignment(assignment: Assignment) -> Assignment:
            sub_tasks = (*(assignment.sub_tasks or ()), sub_task)
            return assignment.model_copy(update={"sub_tasks": sub_tasks})

        self._update_assignment(year_id, module_id, assignment_id, on_assignment)
        return sub_task.id

    @_locked
    def update_subtask(
        self,
        year_id: str,
        module_id: str,
        assignment_id: str,
        subtask_id: str,
        patch: SubTaskPatch | Mapping[str, object],
    ) -> None:
        changes = _patch_changes(patch, SubTaskPatch)
        if changes.get("weight") is not None:
            changes["weight"] = clamp_percent(changes["weight"])

        def on_assignment(assignment: Assignment) -> Assignment:
            sub_tasks = _replace_by_id(
                assignment.sub_tasks or (), subtask_id, lambda t: _apply(t, changes), "SubTask",
            )
            return assignment.model_copy(update={"sub_tasks": sub_tasks})

        self._update_assignment(year_id, module_id, assignment_id, on_assignment)

    @_locked
    def remove_subtask(
        self,
        year_id: str,
        module_id: str,
        assignment_id: str,
        subtask_id: str,
    ) -> None:
        def on_assignment(assignment: Assignment) -> Assignment:
            sub_tasks = _remove_by_id(assignment.sub_tasks or (), subtask_id, "SubTask")
            return assignment.model_copy(update={"sub_tasks": sub_tasks})

        self._update_assignment(year_id, module_id, assignment_id, on_assignment)

    # ---------------------------------------------------------------
    # Import / export
    # ---------------------------------------------------------------

    @_locked
    def import_snapshot(self, data: GradeSnapshot | Mapping[str, object]) -> list[str]:
        """Replace the whole snapshot with ``data``.

        Returns the (non-blocking) validation report for the new snapshot.

        Raises:
            SnapshotImportError: If ``data`` is malformed. The current
                snapshot is left untouched.
        """
        if isinstance(data, GradeSnapshot):
            data = snapshot_to_dict(data)
        snapshot = snapshot_from_dict(data)
        self._commit(snapshot)
        warnings = validate_snapshot(snapshot, self._config)
        logger.info(
            "Imported snapshot with %d year(s), %d warning(s)",
            len(snapshot.years), len(warnings),
        )
        return warnings

    def export_snapshot(self, *, include_grades: bool = True) -> dict:
        return snapshot_to_dict(self._snapshot, include_grades=include_grades)

    def validation_report(self) -> list[str]:
        return validate_snapshot(self._snapshot, self._config)

    # ---------------------------------------------------------------
    # Selectors
    # ---------------------------------------------------------------

    def module_average(self, year_id: str, module_id: str) -> float | None:
        module = self._snapshot.find_module(year_id, module_id)
        return hierarchy.module_average(module, self._config)

    def module_segments(self, year_id: str, module_id: str) -> Segments:
        module = self._snapshot.find_module(year_id, module_id)
        return hierarchy.module_segments(module, self._config)

    def module_achieved_score(self, year_id: str, module_id: str) -> float:
        module = self._snapshot.find_module(year_id, module_id)
        return hierarchy.module_achieved_score(module, self._config)

    def module_completion_percent(self, year_id: str, module_id: str) -> int:
        module = self._snapshot.find_module(year_id, module_id)
        return hierarchy.module_completion_percent(module)

    def is_module_valid(self, year_id: str, module_id: str) -> bool:
        module = self._snapshot.find_module(year_id, module_id)
        return hierarchy.is_module_valid(module, self._config)

    def year_average(self, year_id: str) -> float | None:
        return hierarchy.year_average(self._snapshot.find_year(year_id), self._config)

    def year_segments(self, year_id: str) -> Segments:
        return hierarchy.year_segments(self._snapshot.find_year(year_id), self._config)

    def final_grade(self) -> float | None:
        return hierarchy.final_grade(self._snapshot, self._config)

    def classification(self) -> Classification | None:
        return classify(self.final_grade(), self._config)

    def total_year_weight(self) -> float:
        return hierarchy.total_year_weight(self._snapshot)

    def any_invalid_module(self) -> bool:
        return hierarchy.any_invalid_module(self._snapshot, self._config)

    def required_module_score(self, year_id: str, module_id: str, desired: float) -> float | None:
        return self._solver.required_module_score(self._snapshot, year_id, module_id, desired)

    def required_per_assignment(
        self,
        year_id: str,
        module_id: str,
        desired: float,
    ) -> list[AssignmentTarget]:
        return self._solver.required_per_assignment(self._snapshot, year_id, module_id, desired)
