"""Conservative redistribution of extensive quantities when cells split or merge.

Splitting: a new cell takes, from every old cell it overlaps, the conserved
quantities of the overlap region; the donor loses exactly what the new cell
gains. The content of an overlap is either the donor's average state
(no slopes) or its linear reconstruction at the overlap centroid, anchored
at the donor centroid (limited slopes) or at the donor mesh point (legacy
scheme, unlimited slopes). A donor that a slope transfer would leave with
non-positive mass or thermal energy falls back to the average state.

Merging: a removed cell's conserved quantities go to the surviving cells
that now cover its area, in proportion to the area each one takes over.

Both operations conserve mass, momentum, energy and tracer mass to
rounding error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from mmhydro.amr.slopes import Gradient, interpolate
from mmhydro.core.bases import (
    AMRExtensiveUpdater,
    ComputationalCell,
    EquationOfState,
    Extensive,
)
from mmhydro.geometry.cell_calculations import GeometryError
from mmhydro.geometry.polygon import overlap_area_centroid
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import VoronoiMesh

logger = logging.getLogger(__name__)


@dataclass
class MeshSnapshot:
    """Geometry of the tessellation before a topology change."""

    polygons: list[np.ndarray]
    points: np.ndarray
    volumes: np.ndarray
    centroids: np.ndarray
    bbox_min: np.ndarray
    bbox_max: np.ndarray
    neighbors: list[list[int]]

    @classmethod
    def take(cls, tess: VoronoiMesh) -> MeshSnapshot:
        polygons = [tess.cell_polygon(i).copy() for i in range(tess.point_count)]
        return cls(
            polygons=polygons,
            points=tess.mesh_points,
            volumes=tess.volumes,
            centroids=tess.centroids,
            bbox_min=np.array([p.min(axis=0) for p in polygons]),
            bbox_max=np.array([p.max(axis=0) for p in polygons]),
            neighbors=[
                [tess.original_index(j) for j in tess.neighbors(i)] for i in range(tess.point_count)
            ],
        )


def overlaps(
    polygon: np.ndarray,
    snapshot: MeshSnapshot,
    outer: SquareBox,
    candidates: list[int] | None = None,
) -> dict[int, tuple[float, np.ndarray]]:
    """Overlap of ``polygon`` with the snapshot's cells.

    Periodic copies of ``polygon`` are tested as well, so cells across a
    periodic side are found.

    Returns:
        Old cell index -> (overlap area, overlap centroid in that cell's frame).
    """
    found: dict[int, tuple[float, np.ndarray]] = {}
    for offset in outer.periodic_offsets():
        shifted = polygon - offset
        lo = shifted.min(axis=0)
        hi = shifted.max(axis=0)
        hits = np.flatnonzero(
            np.all(snapshot.bbox_max >= lo, axis=1) & np.all(snapshot.bbox_min <= hi, axis=1)
        )
        if candidates is not None:
            hits = [j for j in hits if j in candidates]
        for j in hits:
            area, cx, cy = overlap_area_centroid(shifted, snapshot.polygons[j])
            if area <= 0.0:
                continue
            if j in found:
                prev_area, prev_c = found[j]
                total = prev_area + area
                found[j] = (total, (prev_area * prev_c + area * np.array([cx, cy])) / total)
            else:
                found[j] = (area, np.array([cx, cy]))
    return found


def _thermal_energy(ext: Extensive) -> float:
    if ext.mass <= 0.0:
        return -np.inf
    return ext.energy - 0.5 * float(np.dot(ext.momentum, ext.momentum)) / ext.mass


def split_extensives(
    tess: VoronoiMesh,
    new_indices: np.ndarray,
    snapshot: MeshSnapshot,
    outer: SquareBox,
    old_cells: list[ComputationalCell],
    old_extensives: list[Extensive],
    eos: EquationOfState,
    extensive_updater: AMRExtensiveUpdater,
    gradients: list[Gradient] | None = None,
    anchors: np.ndarray | None = None,
) -> tuple[dict[int, Extensive], dict[int, Extensive]]:
    """Conserved quantities handed from old cells to the new cells.

    Args:
        tess: Tessellation after insertion.
        new_indices: Indices of the inserted points in ``tess``.
        snapshot: Geometry before insertion.
        outer: Outer boundary.
        old_cells: Primitive states before insertion.
        old_extensives: Conserved states before insertion.
        eos: Equation of state.
        extensive_updater: Converts reconstructed states to conserved ones.
        gradients: Slopes of the old cells; ``None`` transfers average states.
        anchors: Positions the old cell states refer to, shape (N, 2);
            defaults to the old centroids.

    Returns:
        ``(received, remaining)``: new index -> conserved state, and donor
        index -> what the donor keeps.

    Raises:
        GeometryError: If a new cell overlaps no old cell.
    """
    # donor -> [(new index, area, centroid)]
    shares: dict[int, list[tuple[int, float, np.ndarray]]] = {}
    for k in new_indices:
        found = overlaps(tess.cell_polygon(int(k)), snapshot, outer)
        if not found:
            raise GeometryError(f"New cell {int(k)} does not overlap any existing cell")
        for j, (area, centroid) in found.items():
            shares.setdefault(j, []).append((int(k), area, centroid))

    if anchors is None:
        anchors = snapshot.centroids

    received: dict[int, Extensive] = {int(k): Extensive() for k in new_indices}
    remaining: dict[int, Extensive] = {}
    for j, parts in shares.items():
        donor = old_extensives[j]
        given = None
        if gradients is not None:
            given = [
                extensive_updater.convert_primitive_to_extensive(
                    interpolate(old_cells[j], gradients[j], centroid - anchors[j]),
                    eos,
                    area,
                )
                for _, area, centroid in parts
            ]
            left = donor
            for ext in given:
                left = left - ext
            if left.mass <= 0.0 or _thermal_energy(left) <= 0.0:
                logger.warning(
                    "Slope transfer would empty cell %d; using its average state instead",
                    j,
                )
                given = None
        if given is None:
            given = [donor * (area / snapshot.volumes[j]) for _, area, _ in parts]

        left = donor.copy()
        for (k, _, _), ext in zip(parts, given):
            received[k] = received[k] + ext
            left = left - ext
        remaining[j] = left

    return received, remaining


def merge_extensives(
    tess: VoronoiMesh,
    removed: list[int],
    remap: np.ndarray,
    snapshot: MeshSnapshot,
    outer: SquareBox,
    old_extensives: list[Extensive],
) -> dict[int, Extensive]:
    """Conserved quantities of removed cells, handed to the surviving cells.

    Args:
        tess: Tessellation after removal.
        removed: Old indices of the removed points.
        remap: Old index -> new index (``-1`` for removed points).
        snapshot: Geometry before removal.
        outer: Outer boundary.
        old_extensives: Conserved states before removal.

    Returns:
        New index -> conserved state to add to that cell.

    Raises:
        GeometryError: If a removed cell's area is not taken over by any survivor.
    """
    gained: dict[int, Extensive] = {}
    for r in removed:
        receivers = sorted({j for j in snapshot.neighbors[r] if remap[j] >= 0})
        weights: dict[int, float] = {}
        for j in receivers:
            new_j = int(remap[j])
            found = overlaps(tess.cell_polygon(new_j), snapshot, outer, candidates=[r])
            if r in found:
                weights[new_j] = found[r][0]
        total = sum(weights.values())
        if total <= 0.0:
            raise GeometryError(f"No surviving cell covers removed cell {r}")
        for new_j, area in weights.items():
            share = old_extensives[r] * (area / total)
            gained[new_j] = gained[new_j] + share if new_j in gained else share
        logger.debug("Removed cell %d merged into %d neighbours", r, len(weights))
    return gained
