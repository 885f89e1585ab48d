"""Tests for the AMR drivers: conservation, bookkeeping and limits."""

from __future__ import annotations

import numpy as np
import pytest

from mmhydro.amr.driver import (
    ConservativeAMR,
    ConservativeAMROld,
    NonConservativeAMR,
    make_amr,
)
from mmhydro.amr.selectors import IndexRefine, IndexRemove
from mmhydro.amr.updaters import SimpleAMRExtensiveUpdater
from mmhydro.boundaries.ghost import FreeFlowGenerator, RigidWallGenerator
from mmhydro.config import AMRConfig
from mmhydro.core.bases import ComputationalCell
from mmhydro.simulation import HydroSim
from mmhydro.tessellation.mesh_generator import perturbed_cartesian_mesh
from mmhydro.tessellation.voronoi import VoronoiMesh

REFINE = 7   # x, y ~ 0.25
REMOVE = 28  # x, y ~ 0.75
WALL = 2     # bottom row, x ~ 0.4


def varied_cells(mesh):
    cells = []
    for i in range(mesh.point_count):
        x, y = mesh.mesh_point(i)
        cells.append(
            ComputationalCell(
                density=1.0 + x,
                pressure=1.0 + 0.5 * y,
                velocity=np.array([0.3 + 0.1 * y, -0.2 * x]),
                tracers={"dye": 0.2 + 0.3 * x},
            )
        )
    return cells


def drifting_cells(mesh):
    return [
        ComputationalCell(density=1.0, pressure=1.0, velocity=np.array([0.3, -0.2]), tracers={"dye": 0.5})
        for _ in range(mesh.point_count)
    ]


def fresh_sim(outer, eos, make_cells=varied_cells):
    """Same mesh as the ``mesh`` fixture, for tests that need two copies."""
    tess = VoronoiMesh(perturbed_cartesian_mesh(6, 6, outer, perturbation=0.1, seed=1), outer)
    return HydroSim.from_cells(tess, outer, make_cells(tess), eos)


class CountingGhosts(FreeFlowGenerator):
    def __init__(self):
        self.calls = 0

    def __call__(self, tess, cells, time):
        self.calls += 1
        return super().__call__(tess, cells, time)


@pytest.fixture
def sim(mesh, unit_box, eos):
    return HydroSim.from_cells(mesh, unit_box, varied_cells(mesh), eos)


def assert_conserved(before, after):
    assert after.mass == pytest.approx(before.mass, rel=1e-12)
    assert after.energy == pytest.approx(before.energy, rel=1e-12)
    np.testing.assert_allclose(after.momentum, before.momentum, rtol=1e-12, atol=1e-14)
    assert after.tracers["dye"] == pytest.approx(before.tracers["dye"], rel=1e-12)


def assert_in_step(sim):
    assert len(sim.cells) == len(sim.extensives) == sim.tess.point_count


# ============================================================
# Conservative schemes
# ============================================================


class TestConservativeAMR:
    @pytest.mark.parametrize("slopes", [True, False])
    def test_refine_and_remove_conserve_totals(self, sim, slopes):
        before = sim.totals()
        amr = ConservativeAMR(IndexRefine([REFINE]), IndexRemove([REMOVE]), slopes=slopes)
        amr(sim)
        assert sim.tess.point_count == 36
        assert_in_step(sim)
        assert_conserved(before, sim.totals())

    @pytest.mark.parametrize("slopes", [True, False])
    def test_old_variant_conserves_totals(self, sim, slopes):
        before = sim.totals()
        ConservativeAMROld(IndexRefine([REFINE, 14]), IndexRemove([REMOVE]), slopes=slopes)(sim)
        assert sim.tess.point_count == 37
        assert_in_step(sim)
        assert_conserved(before, sim.totals())

    def test_old_variant_splits_differently(self, unit_box, eos):
        """Legacy reconstruction gives the new cell other content, same totals."""
        limited = fresh_sim(unit_box, eos)
        legacy = fresh_sim(unit_box, eos)
        before = legacy.totals()
        ConservativeAMR(IndexRefine([REFINE]), IndexRemove([]))(limited)
        ConservativeAMROld(IndexRefine([REFINE]), IndexRemove([]))(legacy)

        np.testing.assert_array_equal(legacy.tess.mesh_points, limited.tess.mesh_points)
        assert_conserved(before, legacy.totals())
        assert_conserved(before, limited.totals())
        assert abs(legacy.extensives[-1].mass - limited.extensives[-1].mass) > 1e-8

    def test_default_ghosts_are_rigid_walls(self):
        amr = ConservativeAMR(IndexRefine([]), IndexRemove([]))
        assert isinstance(amr.ghost_, RigidWallGenerator)

    @pytest.mark.parametrize("slopes, calls", [(True, 1), (False, 0)])
    def test_ghost_generator_used_for_slopes(self, sim, slopes, calls):
        ghosts = CountingGhosts()
        before = sim.totals()
        ConservativeAMR(IndexRefine([REFINE]), IndexRemove([]), slopes=slopes, ghost_generator=ghosts)(sim)
        assert ghosts.calls == calls
        assert_conserved(before, sim.totals())

    def test_wall_ghosts_shape_split(self, unit_box, eos):
        """A reflecting wall gives a uniform flow a velocity gradient; outflow does not."""
        outflow = fresh_sim(unit_box, eos, drifting_cells)
        walls = fresh_sim(unit_box, eos, drifting_cells)
        ConservativeAMROld(IndexRefine([WALL]), IndexRemove([]), ghost_generator=FreeFlowGenerator())(outflow)
        ConservativeAMROld(IndexRefine([WALL]), IndexRemove([]))(walls)

        assert outflow.tess.point_count == walls.tess.point_count == 37
        np.testing.assert_allclose(outflow.cells[-1].velocity, [0.3, -0.2], atol=1e-12)
        assert not np.allclose(walls.cells[-1].velocity, [0.3, -0.2], atol=1e-9)

    def test_new_cell_inherits_parent_state(self, sim):
        """Uniform medium: a split reproduces the parent state exactly."""
        for c in sim.cells:
            c.density, c.pressure = 1.3, 0.7
            c.velocity = np.array([0.1, 0.2])
            c.tracers = {"dye": 0.4}
            c.stickers = {"inner": True}
        sim.extensives[:] = [
            SimpleAMRExtensiveUpdater().convert_primitive_to_extensive(c, sim.eos, sim.tess.volume(i))
            for i, c in enumerate(sim.cells)
        ]
        ConservativeAMR(IndexRefine([REFINE]), IndexRemove([]))(sim)
        new = sim.cells[-1]
        assert new.density == pytest.approx(1.3)
        assert new.pressure == pytest.approx(0.7)
        np.testing.assert_allclose(new.velocity, [0.1, 0.2])
        assert new.tracers["dye"] == pytest.approx(0.4)
        assert new.stickers == {"inner": True}

    def test_masses_match_volumes(self, sim):
        ConservativeAMR(IndexRefine([REFINE]), IndexRemove([REMOVE]))(sim)
        for i, (c, e) in enumerate(zip(sim.cells, sim.extensives)):
            assert c.density * sim.tess.volume(i) == pytest.approx(e.mass, rel=1e-12)

    def test_state_out_of_step_rejected(self, sim):
        sim.cells.pop()
        amr = ConservativeAMR(IndexRefine([REFINE]), IndexRemove([]))
        with pytest.raises(ValueError, match="out of step"):
            amr.refine(sim.tess, sim.outer, sim.cells, sim.eos, sim.extensives, sim.time)


# ============================================================
# Non-conservative scheme
# ============================================================


class TestNonConservativeAMR:
    def test_new_cell_copies_parent(self, sim):
        parent = sim.cells[REFINE].copy()
        NonConservativeAMR(IndexRefine([REFINE]), IndexRemove([REMOVE]))(sim)
        assert_in_step(sim)
        new = sim.cells[-1]
        assert new.density == parent.density
        assert new.pressure == parent.pressure
        np.testing.assert_array_equal(new.velocity, parent.velocity)

    def test_extensives_follow_primitives(self, sim):
        NonConservativeAMR(IndexRefine([REFINE]), IndexRemove([REMOVE]))(sim)
        eu = SimpleAMRExtensiveUpdater()
        for i, c in enumerate(sim.cells):
            expected = eu.convert_primitive_to_extensive(c, sim.eos, sim.tess.volume(i))
            assert sim.extensives[i].mass == pytest.approx(expected.mass, rel=1e-10)
            assert sim.extensives[i].energy == pytest.approx(expected.energy, rel=1e-10)

    def test_removal_discards_cell(self, sim):
        """Survivors keep their primitive state; nobody inherits the removed content."""
        old_cells = [c.copy() for c in sim.cells]
        old_volumes = sim.tess.volumes
        gone = sim.tess.mesh_point(REMOVE).copy()
        neighbors = sim.tess.real_neighbors(REMOVE)

        NonConservativeAMR(IndexRefine([]), IndexRemove([REMOVE]))(sim)
        assert sim.tess.point_count == 35
        assert_in_step(sim)
        assert not np.any(np.all(np.isclose(sim.tess.mesh_points, gone), axis=1))

        eu = SimpleAMRExtensiveUpdater()
        for old, cell in enumerate(old_cells):
            if old == REMOVE:
                continue
            new = old - 1 if old > REMOVE else old
            assert sim.cells[new].density == cell.density
            assert sim.cells[new].pressure == cell.pressure
            np.testing.assert_array_equal(sim.cells[new].velocity, cell.velocity)
            expected = eu.convert_primitive_to_extensive(cell, sim.eos, sim.tess.volume(new))
            assert sim.extensives[new].mass == pytest.approx(expected.mass, rel=1e-12)
            assert sim.extensives[new].tracers["dye"] == pytest.approx(expected.tracers["dye"], rel=1e-12)

        gained = sum(sim.tess.volume(j - 1 if j > REMOVE else j) - old_volumes[j] for j in neighbors)
        assert gained == pytest.approx(old_volumes[REMOVE], rel=1e-9)

    def test_removal_may_change_totals(self, mesh, unit_box, eos):
        """Nonlinear density: discarding a cell is not mass conserving in general."""
        cells = varied_cells(mesh)
        for i, c in enumerate(cells):
            c.density = 1.0 + mesh.mesh_point(i)[0] ** 2
        sim = HydroSim.from_cells(mesh, unit_box, cells, eos)
        before = sim.totals()
        NonConservativeAMR(IndexRefine([]), IndexRemove([REMOVE]))(sim)
        # drift is allowed, only bounded by the removed cell's share
        drift = before.mass - sim.totals().mass
        assert abs(drift) < 0.1 * before.mass


# ============================================================
# Limits
# ============================================================


class TestLimits:
    def test_min_points_caps_removal(self, sim):
        corners = [0, 5, 30, 35]
        amr = ConservativeAMR(IndexRefine([]), IndexRemove(corners, [1.0, 4.0, 3.0, 2.0]), min_points=34)
        amr(sim)
        assert sim.tess.point_count == 34
        assert_in_step(sim)

    def test_process_hull_blocks_removal(self, sim):
        sim.proc_hull = np.array([[0.0, 0.0], [0.5, 0.0], [0.5, 0.5], [0.0, 0.5]])
        before = sim.totals()
        ConservativeAMR(IndexRefine([REMOVE]), IndexRemove([REMOVE]))(sim)
        assert sim.tess.point_count == 36
        assert_conserved(before, sim.totals())

    def test_neighbor_conflict_removes_one(self, sim):
        j = min(sim.tess.real_neighbors(REMOVE))
        before = sim.totals()
        ConservativeAMR(IndexRefine([]), IndexRemove([REMOVE, j], [1.0, 2.0]))(sim)
        assert sim.tess.point_count == 35
        assert_conserved(before, sim.totals())


class TestMakeAMR:
    @pytest.mark.parametrize(
        "scheme, cls",
        [
            ("conservative", ConservativeAMR),
            ("conservative_old", ConservativeAMROld),
            ("nonconservative", NonConservativeAMR),
        ],
    )
    def test_scheme_selection(self, scheme, cls):
        amr = make_amr(AMRConfig(scheme=scheme, placement="arepo"), IndexRefine([]), IndexRemove([]))
        assert type(amr) is cls
        assert amr.placer.method == "arepo"

    def test_slopes_flag(self):
        amr = make_amr(AMRConfig(slopes=False), IndexRefine([]), IndexRemove([]))
        assert amr.slopes is False

    def test_old_scheme_takes_slopes_flag(self):
        amr = make_amr(AMRConfig(scheme="conservative_old", slopes=False), IndexRefine([]), IndexRemove([]))
        assert type(amr) is ConservativeAMROld
        assert amr.slopes is False
