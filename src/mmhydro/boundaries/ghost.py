"""Ghost states for mesh points across the outer boundary.

The flux calculator needs a state on both sides of every edge. For an edge
between a real cell and a ghost point those states come from here.

``RigidWallGenerator``
    A mirror ghost copies the real cell it is the image of, with the
    velocity component normal to the wall reversed, ``v' = v - 2 (v . n) n``.
    The normal points from the real point towards the wall it was mirrored
    across. Only the rigid axes of the ghost's shift are reflected, so in a
    box with one periodic axis a ghost translated along it and mirrored
    across the other is reflected once. Periodic ghosts copy their real
    cell unchanged. Ghost gradients are zero: nothing is reconstructed
    across a rigid wall.

``FreeFlowGenerator``
    Ghosts copy the real cell they are an image of, unchanged (outflow);
    ghost gradients are zero.
"""

from __future__ import annotations

import logging

import numpy as np

from mmhydro.core.bases import ComputationalCell, GhostPointGenerator
from mmhydro.tessellation.voronoi import Edge, VoronoiMesh

logger = logging.getLogger(__name__)


def outer_edge_indices(tess: VoronoiMesh) -> list[tuple[int, int]]:
    """Edges between a real point and a ghost point.

    Returns:
        ``(edge index, side)`` pairs; side 1 means ``neighbors[0]`` is the
        ghost, side 2 means ``neighbors[1]`` is.
    """
    out = []
    for index, edge in enumerate(tess.edges):
        first, second = edge.neighbors
        if tess.is_ghost(first) and not tess.is_ghost(second):
            out.append((index, 1))
        elif tess.is_ghost(second) and not tess.is_ghost(first):
            out.append((index, 2))
    return out


def ghost_of_edge(edge: Edge, side: int) -> int:
    return edge.neighbors[0] if side == 1 else edge.neighbors[1]


def reverse_normal_velocity(cell: ComputationalCell, normal: np.ndarray) -> None:
    """Reverse the component of ``cell.velocity`` along ``normal`` (in place)."""
    n = np.asarray(normal, dtype=float)
    n = n / np.linalg.norm(n)
    cell.velocity = cell.velocity - 2.0 * float(np.dot(cell.velocity, n)) * n


def wall_normals(tess: VoronoiMesh, ghost: int) -> list[np.ndarray]:
    """Unit normals of the walls a mirror ghost was reflected across."""
    shift = tess.ghost_shift(ghost)
    normals = []
    for axis, s in enumerate(shift):
        if s == 0 or tess.outer.is_periodic(axis):
            continue
        n = np.zeros(2)
        n[axis] = float(s)
        normals.append(n)
    return normals


def zero_cell(template: ComputationalCell) -> ComputationalCell:
    """A cell with every field of ``template`` set to zero (stickers kept)."""
    return ComputationalCell(
        density=0.0,
        pressure=0.0,
        velocity=np.zeros_like(template.velocity),
        tracers={name: 0.0 for name in template.tracers},
        stickers=dict(template.stickers),
    )


def _ghost_indices(tess: VoronoiMesh) -> list[int]:
    seen: dict[int, None] = {}
    for edge_index, side in outer_edge_indices(tess):
        seen.setdefault(ghost_of_edge(tess.edge(edge_index), side), None)
    return list(seen)


class RigidWallGenerator(GhostPointGenerator):
    """Reflecting walls."""

    def __call__(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> dict[int, ComputationalCell]:
        res: dict[int, ComputationalCell] = {}
        for ghost in _ghost_indices(tess):
            state = cells[tess.original_index(ghost)].copy()
            if not tess.is_periodic_ghost(ghost):
                for normal in wall_normals(tess, ghost):
                    reverse_normal_velocity(state, normal)
            res[ghost] = state
        logger.debug("Generated %d rigid-wall ghost states", len(res))
        return res

    def get_ghost_gradient(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        gradients: list[tuple[ComputationalCell, ComputationalCell]],
        ghost_index: int,
        time: float,
        edge: Edge,
    ) -> tuple[ComputationalCell, ComputationalCell]:
        cell = zero_cell(cells[tess.original_index(ghost_index)])
        return cell, cell.copy()


class FreeFlowGenerator(GhostPointGenerator):
    """Outflow boundaries."""

    def __call__(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> dict[int, ComputationalCell]:
        return {ghost: cells[tess.original_index(ghost)].copy() for ghost in _ghost_indices(tess)}

    def get_ghost_gradient(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        gradients: list[tuple[ComputationalCell, ComputationalCell]],
        ghost_index: int,
        time: float,
        edge: Edge,
    ) -> tuple[ComputationalCell, ComputationalCell]:
        cell = zero_cell(cells[tess.original_index(ghost_index)])
        return cell, cell.copy()
