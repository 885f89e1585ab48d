"""Simulation state container for moving-mesh AMR runs.

``HydroSim`` holds everything an AMR driver touches: the tessellation, the
outer boundary, per-point primitive and conserved states, the equation of
state and the current time. It is built from a ``SimulationConfig`` with a
uniform medium and an optional over-pressured central disc.
"""

from __future__ import annotations

import logging

import numpy as np

from mmhydro.amr.updaters import SimpleAMRExtensiveUpdater
from mmhydro.config import SimulationConfig
from mmhydro.core.bases import (
    AMRExtensiveUpdater,
    ComputationalCell,
    EquationOfState,
    Extensive,
    total_extensive,
)
from mmhydro.fluid.eos import IdealGasEOS
from mmhydro.tessellation.mesh_generator import perturbed_cartesian_mesh
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import VoronoiMesh

logger = logging.getLogger(__name__)


class HydroSim:
    """Mesh and state of one simulation.

    Args:
        tess: Tessellation of the real points.
        outer: Outer boundary.
        cells: Primitive state per real point.
        extensives: Conserved state per real point.
        eos: Equation of state.
        time: Current simulation time.
        proc_hull: Polygon of this process's domain, shape (k, 2), or ``None``.
    """

    def __init__(
        self,
        tess: VoronoiMesh,
        outer: SquareBox,
        cells: list[ComputationalCell],
        extensives: list[Extensive],
        eos: EquationOfState,
        time: float = 0.0,
        proc_hull: np.ndarray | None = None,
    ) -> None:
        if not len(cells) == len(extensives) == tess.point_count:
            raise ValueError(
                f"State arrays out of step with the mesh: {len(cells)} cells, "
                f"{len(extensives)} extensives, {tess.point_count} points"
            )
        self.tess = tess
        self.outer = outer
        self.cells = cells
        self.extensives = extensives
        self.eos = eos
        self.time = time
        self.proc_hull = proc_hull

    @classmethod
    def from_cells(
        cls,
        tess: VoronoiMesh,
        outer: SquareBox,
        cells: list[ComputationalCell],
        eos: EquationOfState,
        time: float = 0.0,
        extensive_updater: AMRExtensiveUpdater | None = None,
    ) -> HydroSim:
        """Build a simulation whose conserved states follow from ``cells``."""
        eu = extensive_updater if extensive_updater is not None else SimpleAMRExtensiveUpdater()
        extensives = [eu.convert_primitive_to_extensive(c, eos, tess.volume(i)) for i, c in enumerate(cells)]
        return cls(tess, outer, cells, extensives, eos, time)

    @classmethod
    def from_config(cls, config: SimulationConfig) -> HydroSim:
        """Perturbed Cartesian mesh with the configured initial state."""
        box = config.box
        outer = SquareBox(box.lower_left, box.upper_right, box.x_boundary, box.y_boundary)
        points = perturbed_cartesian_mesh(
            config.mesh.nx,
            config.mesh.ny,
            outer,
            perturbation=config.mesh.perturbation,
            seed=config.mesh.seed,
        )
        tess = VoronoiMesh(points, outer, min_points=config.amr.min_points)

        ic = config.initial
        center = 0.5 * (outer.lower_left + outer.upper_right)
        cells = []
        for p in tess.mesh_points:
            inside = ic.blast_radius > 0 and np.linalg.norm(p - center) < ic.blast_radius
            cells.append(
                ComputationalCell(
                    density=ic.density,
                    pressure=ic.blast_pressure if inside else ic.pressure,
                    velocity=np.array(ic.velocity, dtype=float),
                    tracers=dict(ic.tracers),
                )
            )

        sim = cls.from_cells(tess, outer, cells, IdealGasEOS(config.gamma), time=config.time)
        logger.info("Initial state: %r, %d cells", tess, len(cells))
        return sim

    def totals(self) -> Extensive:
        """Sum of the conserved states over all cells."""
        return total_extensive(self.extensives)

    def __repr__(self) -> str:
        return f"HydroSim(points={self.tess.point_count}, time={self.time}, eos={self.eos!r})"
