"""Tests for the snapshot validation report."""

from src.engine.validation import NO_YEARS_MESSAGE, validate_snapshot
from src.models.grades import GradeSnapshot
from src.store.sample import SAMPLE_DATA


def _with_weights(*weights: float) -> dict:
    return {
        "years": [{
            "id": "y1",
            "name": "Year 1",
            "weight": 1.0,
            "modules": [{
                "id": "m1",
                "code": "CS101",
                "assignments": [
                    {"id": f"a{i}", "weight": w} for i, w in enumerate(weights)
                ],
            }],
        }],
    }


class TestValidateSnapshot:

    def test_sample_is_clean(self, snapshot: GradeSnapshot) -> None:
        assert validate_snapshot(snapshot) == []

    def test_raw_dict_accepted(self) -> None:
        assert validate_snapshot(SAMPLE_DATA) == []

    def test_none(self) -> None:
        assert validate_snapshot(None) == [NO_YEARS_MESSAGE]

    def test_missing_years(self) -> None:
        assert validate_snapshot({"modules": []}) == ["No years found"]

    def test_years_not_a_list(self) -> None:
        assert validate_snapshot({"years": "Year 1"}) == ["No years found"]

    def test_empty_years_is_clean(self) -> None:
        assert validate_snapshot({"years": []}) == []

    def test_under_weighted_module(self) -> None:
        assert validate_snapshot(_with_weights(60, 30)) == [
            "Year 1 / CS101 assignment weights sum to 90%",
        ]

    def test_fractional_sum_formatting(self) -> None:
        assert validate_snapshot(_with_weights(60, 40.5)) == [
            "Year 1 / CS101 assignment weights sum to 100.5%",
        ]

    def test_within_report_tolerance(self) -> None:
        assert validate_snapshot(_with_weights(60, 40.0005)) == []

    def test_module_without_assignments(self) -> None:
        assert validate_snapshot(_with_weights()) == [
            "Year 1 / CS101 assignment weights sum to 0%",
        ]

    def test_one_message_per_module(self) -> None:
        data = _with_weights(50)
        data["years"][0]["modules"].append(
            {"id": "m2", "code": "MA101", "assignments": [{"id": "x", "weight": 20}]},
        )
        assert validate_snapshot(data) == [
            "Year 1 / CS101 assignment weights sum to 50%",
            "Year 1 / MA101 assignment weights sum to 20%",
        ]
