"""Tests for GradingConfig defaults and bounds."""

import pytest
from pydantic import ValidationError

from src.engine.config import DEFAULT_CONFIG, GradingConfig


class TestGradingConfig:

    def test_defaults(self) -> None:
        assert DEFAULT_CONFIG.weight_tolerance == 1e-4
        assert DEFAULT_CONFIG.report_tolerance == 1e-3
        assert DEFAULT_CONFIG.search_iterations == 20
        assert DEFAULT_CONFIG.average_places == 2
        assert DEFAULT_CONFIG.percent_places == 1
        assert DEFAULT_CONFIG.classification_bounds == {
            "First": 70.0, "2:1": 60.0, "2:2": 50.0, "Third": 40.0,
        }

    def test_search_iterations_floor(self) -> None:
        with pytest.raises(ValidationError):
            GradingConfig(search_iterations=10)

    def test_tolerance_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            GradingConfig(weight_tolerance=0.0)

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_CONFIG.search_iterations = 30
