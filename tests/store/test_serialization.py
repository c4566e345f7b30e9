"""Tests for snapshot JSON serialization, structure-only export and import."""

import json
from datetime import date

import pytest

from src.engine.hierarchy import final_grade
from src.models.grades import GradeSnapshot
from src.store.serialization import (
    SnapshotImportError,
    dumps,
    export_filename,
    loads,
    snapshot_from_dict,
    snapshot_to_dict,
)
from src.store.sample import SAMPLE_DATA


class TestSnapshotToDict:

    def test_camel_case_keys(self, snapshot: GradeSnapshot) -> None:
        snap = snapshot.model_copy(update={"active_year_id": "year-1", "desired_grade": 70.0})
        data = snapshot_to_dict(snap)
        assert data["activeYearId"] == "year-1"
        assert data["desiredGrade"] == 70.0
        assert "active_year_id" not in data

    def test_absent_optionals_omitted(self, snapshot: GradeSnapshot) -> None:
        data = snapshot_to_dict(snapshot)
        assert "activeYearId" not in data
        coursework = data["years"][0]["modules"][0]["assignments"][1]
        assert "score" not in coursework
        assert "subTasks" not in coursework

    def test_sub_tasks_key(self) -> None:
        snap = GradeSnapshot.model_validate({
            "years": [{"id": "y", "modules": [{"id": "m", "assignments": [
                {"id": "a", "weight": 100, "subTasks": [{"id": "t", "weight": 100, "score": 50}]},
            ]}]}],
        })
        data = snapshot_to_dict(snap)
        assert data["years"][0]["modules"][0]["assignments"][0]["subTasks"][0]["id"] == "t"


class TestStructureOnlyExport:

    def test_strips_grades(self, snapshot: GradeSnapshot) -> None:
        snap = snapshot.model_copy(update={"desired_grade": 70.0})
        data = snapshot_to_dict(snap, include_grades=False)
        assert "desiredGrade" not in data
        for year in data["years"]:
            for module in year["modules"]:
                for assignment in module["assignments"]:
                    assert "score" not in assignment
                    assert assignment["done"] is False

    def test_keeps_structure(self, snapshot: GradeSnapshot) -> None:
        data = snapshot_to_dict(snapshot, include_grades=False)
        cs101 = data["years"][0]["modules"][0]
        assert cs101["code"] == "CS101"
        assert cs101["credits"] == 20.0
        assert [a["weight"] for a in cs101["assignments"]] == [60.0, 40.0]
        assert data["years"][1]["weight"] == 0.8

    def test_strips_sub_task_grades(self) -> None:
        snap = GradeSnapshot.model_validate({
            "years": [{"id": "y", "modules": [{"id": "m", "assignments": [
                {"id": "a", "weight": 100, "subTasks": [
                    {"id": "t", "weight": 100, "score": 50, "done": True},
                ]},
            ]}]}],
        })
        data = snapshot_to_dict(snap, include_grades=False)
        sub_task = data["years"][0]["modules"][0]["assignments"][0]["subTasks"][0]
        assert sub_task == {"id": "t", "name": "", "weight": 100.0, "done": False}

    def test_reimported_template_has_no_grade(self, snapshot: GradeSnapshot) -> None:
        template = snapshot_from_dict(snapshot_to_dict(snapshot, include_grades=False))
        assert final_grade(template) is None


class TestSnapshotFromDict:

    def test_sample(self) -> None:
        snap = snapshot_from_dict(SAMPLE_DATA)
        assert [y.id for y in snap.years] == ["year-1", "year-2"]

    @pytest.mark.parametrize(
        "data",
        [None, [], "years", {}, {"years": {}}, {"years": "Year 1"}],
    )
    def test_requires_years_array(self, data: object) -> None:
        with pytest.raises(SnapshotImportError):
            snapshot_from_dict(data)

    def test_schema_errors_wrapped(self) -> None:
        with pytest.raises(SnapshotImportError, match="validation"):
            snapshot_from_dict({"years": [{"id": "y", "modules": [{"id": "m", "credits": -1}]}]})

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_numbers_rejected(self, value: float) -> None:
        data = {"years": [{"id": "y", "modules": [{"id": "m", "assignments": [
            {"id": "a", "weight": 100, "score": value, "done": True},
        ]}]}]}
        with pytest.raises(SnapshotImportError, match="validation"):
            snapshot_from_dict(data)

    def test_import_error_is_value_error(self) -> None:
        assert issubclass(SnapshotImportError, ValueError)

    def test_rederives_subtask_scores(self) -> None:
        snap = snapshot_from_dict({
            "years": [{"id": "y", "modules": [{"id": "m", "assignments": [
                {"id": "a", "weight": 100, "score": 99, "done": True, "subTasks": [
                    {"id": "t1", "weight": 50, "score": 80, "done": True},
                    {"id": "t2", "weight": 50, "done": False},
                ]},
            ]}]}],
        })
        assignment = snap.years[0].modules[0].assignments[0]
        assert assignment.score == pytest.approx(40.0)
        assert assignment.done is False


class TestJsonText:

    def test_round_trip_idempotent(self, snapshot: GradeSnapshot) -> None:
        text = dumps(snapshot)
        assert dumps(loads(text)) == text

    def test_structure_only_text(self, snapshot: GradeSnapshot) -> None:
        data = json.loads(dumps(snapshot, include_grades=False))
        assert data["years"][0]["modules"][0]["assignments"][0]["done"] is False

    def test_invalid_json(self) -> None:
        with pytest.raises(SnapshotImportError, match="not valid JSON"):
            loads("{years: ")

    def test_bytes_accepted(self, snapshot: GradeSnapshot) -> None:
        assert loads(dumps(snapshot).encode()) == snapshot

    def test_invalid_utf8(self) -> None:
        with pytest.raises(SnapshotImportError, match="not valid JSON"):
            loads(b'{"years": [\xff\xfe]}')

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_literals_rejected(self, literal: str) -> None:
        text = '{"years": [{"id": "y", "name": "Y", "weight": %s}]}' % literal
        with pytest.raises(SnapshotImportError, match="not a valid number"):
            loads(text)


class TestExportFilename:

    def test_full(self) -> None:
        assert export_filename(on=date(2024, 5, 1)) == "grades-full-2024-05-01.json"

    def test_structure(self) -> None:
        assert (
            export_filename(include_grades=False, on=date(2024, 5, 1))
            == "grades-structure-2024-05-01.json"
        )

    def test_defaults_to_today(self) -> None:
        assert export_filename() == f"grades-full-{date.today().isoformat()}.json"
