"""Tests for configuration validation and JSON I/O."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mmhydro.config import AMRConfig, BoxConfig, SimulationConfig


class TestSimulationConfig:
    def test_defaults(self):
        config = SimulationConfig()
        assert config.amr.scheme == "conservative"
        assert config.amr.slopes is True
        assert config.box.x_boundary == "rigid"

    def test_json_round_trip(self, small_config, tmp_path):
        path = tmp_path / "config.json"
        small_config.to_json(path)
        loaded = SimulationConfig.from_file(path)
        assert loaded == small_config

    def test_bad_scheme(self):
        with pytest.raises(ValidationError, match="scheme"):
            AMRConfig(scheme="adaptive")

    def test_bad_placement(self):
        with pytest.raises(ValidationError, match="placement"):
            AMRConfig(placement="random")

    def test_min_points_floor(self):
        with pytest.raises(ValidationError):
            AMRConfig(min_points=3)

    def test_inverted_box(self):
        with pytest.raises(ValidationError, match="upper_right"):
            BoxConfig(lower_left=[1.0, 0.0], upper_right=[0.0, 1.0])

    def test_bad_boundary_kind(self):
        with pytest.raises(ValidationError, match="boundary"):
            BoxConfig(x_boundary="outflow")

    def test_gamma_above_one(self):
        with pytest.raises(ValidationError):
            SimulationConfig(gamma=1.0)
