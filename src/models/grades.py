"""Grade hierarchy models: Year -> Module -> Assignment -> SubTask.

Entities are frozen pydantic models. The store never mutates them in place;
every edit produces a new instance along the touched path, so any snapshot
held by a reader stays internally consistent.

JSON field names match the persisted snapshot format (``subTasks``,
``activeYearId``, ``desiredGrade``); Python code uses the snake_case names.
"""

from __future__ import annotations

from pydantic import Field

from src.models.common import EntityId, GradeBase, Percent


# ---------------------------------------------------------------------------
# Entities (frozen)
# ---------------------------------------------------------------------------


class SubTask(GradeBase, frozen=True):
    """A leaf work item inside an assignment.

    ``weight`` is a percentage of the parent assignment. Score and done are
    set directly by the user.
    """

    id: EntityId
    name: str = ""
    weight: Percent = 0.0
    score: Percent | None = None
    done: bool = False


class Assignment(GradeBase, frozen=True):
    """A weighted deliverable inside a module.

    When ``sub_tasks`` is non-empty, ``score`` and ``done`` are derived from
    the subtasks (see ``src.engine.aggregator.derive_assignment``) and are
    not user-editable.
    """

    id: EntityId
    name: str = ""
    weight: Percent = 0.0
    score: Percent | None = None
    done: bool = False
    sub_tasks: tuple[SubTask, ...] | None = Field(default=None, alias="subTasks")

    @property
    def has_sub_tasks(self) -> bool:
        return bool(self.sub_tasks)


class Module(GradeBase, frozen=True):
    """A credit-bearing module. Assignment weights should sum to 100."""

    id: EntityId
    code: str = ""
    name: str | None = None
    credits: float = Field(default=20.0, gt=0)
    assignments: tuple[Assignment, ...] = ()


class Year(GradeBase, frozen=True):
    """An academic year contributing ``weight`` (0..1 by convention) to the final grade."""

    id: EntityId
    name: str = ""
    weight: float = 0.0
    modules: tuple[Module, ...] = ()


class GradeSnapshot(GradeBase, frozen=True):
    """The entire persisted state."""

    years: tuple[Year, ...] = ()
    active_year_id: str | None = Field(default=None, alias="activeYearId")
    desired_grade: float | None = Field(default=None, alias="desiredGrade")

    def find_year(self, year_id: str) -> Year:
        """Return the year with ``year_id``.

        Raises:
            KeyError: If no such year exists.
        """
        for year in self.years:
            if year.id == year_id:
                return year
        msg = f"Year {year_id} not found."
        raise KeyError(msg)

    def find_module(self, year_id: str, module_id: str) -> Module:
        """Return the module ``module_id`` inside year ``year_id``.

        Raises:
            KeyError: If the year or module does not exist.
        """
        year = self.find_year(year_id)
        for module in year.modules:
            if module.id == module_id:
                return module
        msg = f"Module {module_id} not found in year {year_id}."
        raise KeyError(msg)


# ---------------------------------------------------------------------------
# Partial updates (patch payloads)
# ---------------------------------------------------------------------------


class _Patch(GradeBase):
    """Base for patch payloads: only explicitly set fields are applied."""

    model_config = {
        "populate_by_name": True,
        "extra": "forbid",
    }

    def changes(self) -> dict[str, object]:
        """Return the fields the caller actually set."""
        return self.model_dump(exclude_unset=True)


class YearPatch(_Patch):
    name: str | None = None
    weight: float | None = None


class ModulePatch(_Patch):
    code: str | None = None
    name: str | None = None
    credits: float | None = None


class AssignmentPatch(_Patch):
    name: str | None = None
    weight: float | None = None
    score: float | None = None
    done: bool | None = None


class SubTaskPatch(_Patch):
    name: str | None = None
    weight: float | None = None
    score: float | None = None
    done: bool | None = None
