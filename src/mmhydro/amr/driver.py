"""AMR drivers: one refinement pass and one removal pass per simulation step.

Each pass runs

    select -> place new points / resolve conflicts -> mutate mesh -> convert state

and leaves the invariant ``len(cells) == len(extensives) == tess.point_count``
in place. Three interchangeable variants exist:

``ConservativeAMR``
    New cells are carved out of the old ones with slope-limited linear
    reconstruction; removed cells are merged into the cells that take over
    their area. Total mass, momentum, energy and tracer mass are conserved.

``ConservativeAMROld``
    As ``ConservativeAMR`` but a split reconstructs from the donor mesh
    point with unlimited gradients (legacy scheme). Same conservation
    guarantee.

``NonConservativeAMR``
    A new cell copies its parent's primitive state; every cell whose
    volume changed recomputes its conserved quantities from its primitive
    state. Removed cells are discarded. Totals are not conserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from mmhydro.amr.placement import NewPointPlacer, PlacementResult, near_process_hull
from mmhydro.amr.redistribution import MeshSnapshot, merge_extensives, split_extensives
from mmhydro.amr.selectors import resolve_removal_conflicts
from mmhydro.amr.slopes import Gradient, compute_gradients
from mmhydro.amr.updaters import (
    ConservativeAMRCellUpdater,
    SimpleAMRExtensiveUpdater,
)
from mmhydro.boundaries.ghost import RigidWallGenerator
from mmhydro.core.bases import (
    AMRCellUpdater,
    AMRExtensiveUpdater,
    CellsToRefine,
    CellsToRemove,
    ComputationalCell,
    EquationOfState,
    Extensive,
    GhostPointGenerator,
)
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import VoronoiMesh

if TYPE_CHECKING:
    from mmhydro.config import AMRConfig
    from mmhydro.simulation import HydroSim

logger = logging.getLogger(__name__)


def _compact(values: list, remap: np.ndarray) -> None:
    """Apply an old -> new index map to ``values`` in place (``-1`` drops)."""
    kept = [None] * int((remap >= 0).sum())
    for old, new in enumerate(remap):
        if new >= 0:
            kept[new] = values[old]
    values[:] = kept


class AMR(ABC):
    """Base class for the AMR drivers.

    Args:
        refine: Refinement policy.
        remove: Removal policy.
        placer: New-point placement; defaults to ``NewPointPlacer()``.
        min_points: Removal never leaves fewer real points than this.
        hull_margin: Removal candidates closer than this to the process
            hull are skipped.
    """

    def __init__(
        self,
        refine: CellsToRefine,
        remove: CellsToRemove,
        placer: NewPointPlacer | None = None,
        min_points: int = 4,
        hull_margin: float = 0.0,
    ) -> None:
        self.refine_ = refine
        self.remove_ = remove
        self.placer = placer if placer is not None else NewPointPlacer(hull_margin=hull_margin)
        self.min_points = min_points
        self.hull_margin = hull_margin

    def __call__(self, sim: HydroSim) -> None:
        """Run one refinement pass followed by one removal pass on ``sim``."""
        self.refine(sim.tess, sim.outer, sim.cells, sim.eos, sim.extensives, sim.time, sim.proc_hull)
        self.remove(sim.tess, sim.outer, sim.cells, sim.extensives, sim.eos, sim.time, sim.proc_hull)

    @abstractmethod
    def refine(
        self,
        tess: VoronoiMesh,
        outer: SquareBox,
        cells: list[ComputationalCell],
        eos: EquationOfState,
        extensives: list[Extensive],
        time: float,
        proc_hull: np.ndarray | None = None,
    ) -> None:
        """Insert new points; ``cells`` and ``extensives`` grow in place."""

    @abstractmethod
    def remove(
        self,
        tess: VoronoiMesh,
        outer: SquareBox,
        cells: list[ComputationalCell],
        extensives: list[Extensive],
        eos: EquationOfState,
        time: float,
        proc_hull: np.ndarray | None = None,
    ) -> None:
        """Erase points; ``cells`` and ``extensives`` shrink in place."""

    # ----------------------------------------------------------
    # Shared steps
    # ----------------------------------------------------------

    @staticmethod
    def _check_sizes(tess: VoronoiMesh, cells: list, extensives: list) -> None:
        if not len(cells) == len(extensives) == tess.point_count:
            raise ValueError(
                f"State arrays out of step with the mesh: {len(cells)} cells, "
                f"{len(extensives)} extensives, {tess.point_count} points"
            )

    def _place(
        self,
        tess: VoronoiMesh,
        outer: SquareBox,
        cells: list[ComputationalCell],
        time: float,
        proc_hull: np.ndarray | None,
    ) -> PlacementResult:
        candidates = self.refine_.to_refine(tess, cells, time)
        result = self.placer.get_new_points(candidates, tess, outer, proc_hull)
        if candidates:
            logger.info(
                "Refine: %d candidates, %d new points, %d dropped",
                len(set(candidates)),
                len(result.new_points),
                len(result.rejected),
            )
        return result

    def _select_removal(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
        proc_hull: np.ndarray | None,
    ) -> list[int]:
        candidates, merits = self.remove_.to_remove(tess, cells, time)
        if not candidates:
            return []
        pairs = [
            (int(i), float(m))
            for i, m in zip(candidates, merits)
            if not near_process_hull(tess.mesh_point(int(i)), proc_hull, self.hull_margin)
        ]
        chosen = resolve_removal_conflicts(tess, [i for i, _ in pairs], [m for _, m in pairs])

        allowed = max(0, tess.point_count - self.min_points)
        if len(chosen) > allowed:
            merit = dict(pairs)
            ranked = sorted(chosen, key=lambda i: (-merit[i], i))
            logger.debug(
                "Removal limited to %d of %d cells to keep %d points",
                allowed,
                len(chosen),
                self.min_points,
            )
            chosen = sorted(ranked[:allowed])

        logger.info("Remove: %d candidates, %d removed", len(candidates), len(chosen))
        return chosen


class ConservativeAMR(AMR):
    """AMR that conserves mass, momentum, energy and tracer mass.

    Args:
        refine: Refinement policy.
        remove: Removal policy.
        slopes: Reconstruct linearly inside the donor cells when splitting.
        cell_updater: Conserved -> primitive conversion.
        extensive_updater: Primitive -> conserved conversion.
        placer: New-point placement.
        min_points: Smallest mesh removal may leave.
        hull_margin: Process-hull exclusion distance for removal.
        ghost_generator: States of the ghost points used by the gradients;
            defaults to ``RigidWallGenerator()``.
    """

    # Barth-Jespersen limited gradients, anchored at the cell centroid
    limit_slopes = True

    def __init__(
        self,
        refine: CellsToRefine,
        remove: CellsToRemove,
        slopes: bool = True,
        cell_updater: AMRCellUpdater | None = None,
        extensive_updater: AMRExtensiveUpdater | None = None,
        placer: NewPointPlacer | None = None,
        min_points: int = 4,
        hull_margin: float = 0.0,
        ghost_generator: GhostPointGenerator | None = None,
    ) -> None:
        super().__init__(refine, remove, placer, min_points, hull_margin)
        self.slopes = slopes
        self.cu_ = cell_updater if cell_updater is not None else ConservativeAMRCellUpdater()
        self.eu_ = extensive_updater if extensive_updater is not None else SimpleAMRExtensiveUpdater()
        self.ghost_ = ghost_generator if ghost_generator is not None else RigidWallGenerator()

    def _gradients(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> list[Gradient] | None:
        if not self.slopes:
            return None
        ghost_cells = self.ghost_(tess, cells, time)
        return compute_gradients(tess, cells, ghost_cells, limit=self.limit_slopes)

    def _anchors(self, snapshot: MeshSnapshot) -> np.ndarray:
        return snapshot.centroids

    def refine(self, tess, outer, cells, eos, extensives, time, proc_hull=None) -> None:
        self._check_sizes(tess, cells, extensives)
        placement = self._place(tess, outer, cells, time, proc_hull)
        if not placement.new_points:
            return

        snapshot = MeshSnapshot.take(tess)
        old_cells = list(cells)
        old_extensives = list(extensives)
        gradients = self._gradients(tess, cells, time)

        new_indices = tess.insert_points(placement.positions)
        received, remaining = split_extensives(
            tess,
            new_indices,
            snapshot,
            outer,
            old_cells,
            old_extensives,
            eos,
            self.eu_,
            gradients,
            self._anchors(snapshot),
        )

        for j, ext in remaining.items():
            extensives[j] = ext
            cells[j] = self.cu_.convert_extensive_to_primitive(ext, eos, tess.volume(j), old_cells[j])
        for k, parent in zip(new_indices, placement.parents):
            ext = received[int(k)]
            extensives.append(ext)
            cells.append(
                self.cu_.convert_extensive_to_primitive(ext, eos, tess.volume(int(k)), old_cells[parent])
            )

    def remove(self, tess, outer, cells, extensives, eos, time, proc_hull=None) -> None:
        self._check_sizes(tess, cells, extensives)
        removed = self._select_removal(tess, cells, time, proc_hull)
        if not removed:
            return

        snapshot = MeshSnapshot.take(tess)
        old_extensives = list(extensives)
        remap = tess.remove_points(removed)
        gained = merge_extensives(tess, removed, remap, snapshot, outer, old_extensives)

        _compact(cells, remap)
        _compact(extensives, remap)
        for j, ext in gained.items():
            extensives[j] = extensives[j] + ext
            cells[j] = self.cu_.convert_extensive_to_primitive(extensives[j], eos, tess.volume(j), cells[j])


class ConservativeAMROld(ConservativeAMR):
    """Conservative AMR with the legacy split reconstruction.

    A cell's primitive state is taken to sit at its mesh point, and the
    overlap content is reconstructed from there with unlimited
    least-squares gradients. With ``slopes=False`` the donor's average
    state is transferred by volume fraction. Removal is the same as in
    ``ConservativeAMR``; totals are conserved either way.
    """

    limit_slopes = False

    def _anchors(self, snapshot: MeshSnapshot) -> np.ndarray:
        return snapshot.points


class NonConservativeAMR(AMR):
    """AMR that keeps primitive states and lets conserved totals drift.

    Args:
        refine: Refinement policy.
        remove: Removal policy.
        extensive_updater: Primitive -> conserved conversion.
        placer: New-point placement.
        min_points: Smallest mesh removal may leave.
        hull_margin: Process-hull exclusion distance for removal.
    """

    def __init__(
        self,
        refine: CellsToRefine,
        remove: CellsToRemove,
        extensive_updater: AMRExtensiveUpdater | None = None,
        placer: NewPointPlacer | None = None,
        min_points: int = 4,
        hull_margin: float = 0.0,
    ) -> None:
        super().__init__(refine, remove, placer, min_points, hull_margin)
        self.eu_ = extensive_updater if extensive_updater is not None else SimpleAMRExtensiveUpdater()

    def _refresh(self, tess, cells, extensives, eos, indices) -> None:
        for j in indices:
            extensives[j] = self.eu_.convert_primitive_to_extensive(cells[j], eos, tess.volume(int(j)))

    def refine(self, tess, outer, cells, eos, extensives, time, proc_hull=None) -> None:
        self._check_sizes(tess, cells, extensives)
        placement = self._place(tess, outer, cells, time, proc_hull)
        if not placement.new_points:
            return

        old_volumes = tess.volumes
        new_indices = tess.insert_points(placement.positions)
        for parent in placement.parents:
            cells.append(cells[parent].copy())
            extensives.append(Extensive())

        changed = np.flatnonzero(~np.isclose(tess.volumes[: len(old_volumes)], old_volumes, rtol=1e-12, atol=0.0))
        self._refresh(tess, cells, extensives, eos, changed)
        self._refresh(tess, cells, extensives, eos, new_indices)

    def remove(self, tess, outer, cells, extensives, eos, time, proc_hull=None) -> None:
        self._check_sizes(tess, cells, extensives)
        removed = self._select_removal(tess, cells, time, proc_hull)
        if not removed:
            return

        old_volumes = tess.volumes
        remap = tess.remove_points(removed)
        _compact(cells, remap)
        _compact(extensives, remap)

        survivors = remap >= 0
        changed = np.flatnonzero(~np.isclose(tess.volumes, old_volumes[survivors], rtol=1e-12, atol=0.0))
        self._refresh(tess, cells, extensives, eos, changed)


def make_amr(config: AMRConfig, refine: CellsToRefine, remove: CellsToRemove) -> AMR:
    """Build the driver selected by ``config.scheme``."""
    placer = NewPointPlacer(
        method=config.placement,
        offset_fraction=config.offset_fraction,
        min_separation=config.min_separation,
        boundary_margin=config.boundary_margin,
        hull_margin=config.hull_margin,
    )
    common = {"placer": placer, "min_points": config.min_points, "hull_margin": config.hull_margin}
    if config.scheme == "conservative":
        return ConservativeAMR(refine, remove, slopes=config.slopes, **common)
    if config.scheme == "conservative_old":
        return ConservativeAMROld(refine, remove, slopes=config.slopes, **common)
    if config.scheme == "nonconservative":
        return NonConservativeAMR(refine, remove, **common)
    raise ValueError(f"Unknown AMR scheme '{config.scheme}'")
