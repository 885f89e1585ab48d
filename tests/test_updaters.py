"""Tests for primitive <-> conserved conversions."""

from __future__ import annotations

import numpy as np
import pytest

from mmhydro.amr.updaters import (
    ConservativeAMRCellUpdater,
    SimpleAMRCellUpdater,
    SimpleAMRExtensiveUpdater,
)
from mmhydro.core.bases import ComputationalCell, Extensive, describe_extensive, total_extensive


@pytest.fixture
def cell():
    return ComputationalCell(
        density=2.0,
        pressure=3.0,
        velocity=np.array([1.0, -0.5]),
        tracers={"dye": 0.25},
        stickers={"wall": True},
    )


class TestExtensiveUpdater:
    def test_conversion(self, cell, eos):
        ext = SimpleAMRExtensiveUpdater().convert_primitive_to_extensive(cell, eos, 0.5)
        assert ext.mass == pytest.approx(1.0)
        np.testing.assert_allclose(ext.momentum, [1.0, -0.5])
        thermal = 3.0 / ((5.0 / 3.0 - 1.0) * 2.0)
        assert ext.energy == pytest.approx(0.5 * 1.25 + thermal)
        assert ext.tracers == {"dye": pytest.approx(0.25)}


class TestCellUpdater:
    def test_round_trip(self, cell, eos):
        ext = SimpleAMRExtensiveUpdater().convert_primitive_to_extensive(cell, eos, 0.7)
        back = SimpleAMRCellUpdater().convert_extensive_to_primitive(ext, eos, 0.7, cell)
        assert back.density == pytest.approx(cell.density)
        assert back.pressure == pytest.approx(cell.pressure)
        np.testing.assert_allclose(back.velocity, cell.velocity)
        assert back.tracers["dye"] == pytest.approx(0.25)
        assert back.stickers == {"wall": True}

    def test_massless_cell_keeps_old_velocity(self, cell, eos):
        back = SimpleAMRCellUpdater().convert_extensive_to_primitive(Extensive(), eos, 1.0, cell)
        assert back.density == 0.0
        np.testing.assert_allclose(back.velocity, cell.velocity)
        assert back.tracers == {"dye": 0.25}

    def test_missing_tracer_filled_from_old_cell(self, cell, eos):
        ext = Extensive(mass=1.0, energy=10.0, momentum=np.zeros(2))
        back = SimpleAMRCellUpdater().convert_extensive_to_primitive(ext, eos, 1.0, cell)
        assert back.tracers == {"dye": 0.25}

    def test_conservative_updater_keeps_pressure_positive(self, cell, eos):
        """Kinetic energy above total energy would give a negative pressure."""
        ext = Extensive(mass=1.0, energy=0.1, momentum=np.array([2.0, 0.0]))
        simple = SimpleAMRCellUpdater().convert_extensive_to_primitive(ext, eos, 1.0, cell)
        assert simple.pressure < 0.0
        safe = ConservativeAMRCellUpdater().convert_extensive_to_primitive(ext, eos, 1.0, cell)
        assert safe.pressure == cell.pressure


class TestExtensiveArithmetic:
    def test_sum_and_difference(self):
        a = Extensive(mass=1.0, energy=2.0, momentum=np.array([1.0, 0.0]), tracers={"dye": 0.5})
        b = Extensive(mass=0.5, energy=1.0, momentum=np.array([0.0, 2.0]), tracers={"ink": 0.1})
        total = total_extensive([a, b])
        assert total.mass == pytest.approx(1.5)
        np.testing.assert_allclose(total.momentum, [1.0, 2.0])
        assert total.tracers == {"dye": 0.5, "ink": 0.1}
        diff = total - b
        assert diff.mass == pytest.approx(1.0)
        assert diff.tracers["ink"] == pytest.approx(0.0)

    def test_describe(self):
        ext = Extensive(mass=1.0, energy=2.0, momentum=np.array([3.0, 4.0]), tracers={"dye": 0.5})
        assert describe_extensive(ext) == {
            "mass": 1.0,
            "energy": 2.0,
            "momentum_x": 3.0,
            "momentum_y": 4.0,
            "tracer_dye": 0.5,
        }
