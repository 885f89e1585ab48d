"""Positions of the mesh points inserted by refinement.

Two placement rules are available:

``"offset"``
    Step from the refined cell's mesh point towards its farthest
    neighbour. The step is ``offset_fraction`` of the cell width, but
    never more than a quarter of the distance to that neighbour, so the
    new point stays well inside the cell.

``"arepo"``
    Aim the new point so that the bisector between it and the old point
    passes through the cell centroid (``q = 2c - p``). When the mesh point
    already sits on the centroid, step from the centroid towards the
    farthest cell vertex instead. Repeated refinement then keeps cells
    round, as in AREPO.

Every candidate is checked before it is accepted; a candidate that fails
any check is dropped for this pass and never retried:

- inside the outer boundary (periodic axes wrap first), at least
  ``boundary_margin`` cell widths from a rigid wall
- inside the refined cell
- at least ``min_separation`` cell widths from the cell's mesh point, its
  neighbours and every point already accepted in this pass
- inside the process hull and at least ``hull_margin`` from its edge
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from mmhydro.geometry.polygon import distance_to_polygon_boundary, point_in_convex_polygon
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import VoronoiMesh

logger = logging.getLogger(__name__)

PLACEMENT_METHODS = ("offset", "arepo")


@dataclass
class PlacementResult:
    """Output of ``NewPointPlacer.get_new_points``.

    Attributes:
        new_points: ``(parent index, position)`` for every accepted candidate.
        moved: Parent index -> displacement applied to its new point when the
            candidate crossed a periodic side and was wrapped into the box.
        rejected: Refinement candidates that produced no valid point.
    """

    new_points: list[tuple[int, np.ndarray]] = field(default_factory=list)
    moved: dict[int, np.ndarray] = field(default_factory=dict)
    rejected: list[int] = field(default_factory=list)

    @property
    def parents(self) -> list[int]:
        return [parent for parent, _ in self.new_points]

    @property
    def positions(self) -> np.ndarray:
        if not self.new_points:
            return np.zeros((0, 2))
        return np.array([pos for _, pos in self.new_points])


def near_process_hull(point: np.ndarray, proc_hull: np.ndarray | None, margin: float) -> bool:
    """True if ``point`` is outside ``proc_hull`` or within ``margin`` of its edge."""
    if proc_hull is None:
        return False
    x, y = float(point[0]), float(point[1])
    if not point_in_convex_polygon(x, y, proc_hull):
        return True
    return distance_to_polygon_boundary(x, y, proc_hull) < margin


class NewPointPlacer:
    """Computes where refinement inserts new mesh points.

    Args:
        method: ``"offset"`` or ``"arepo"``.
        offset_fraction: Step length in units of the cell width.
        min_separation: Minimum distance to existing points, in cell widths.
        boundary_margin: Minimum distance to rigid walls, in cell widths.
        hull_margin: Minimum distance to the process hull edge (absolute).
    """

    def __init__(
        self,
        method: str = "offset",
        offset_fraction: float = 0.5,
        min_separation: float = 0.1,
        boundary_margin: float = 0.05,
        hull_margin: float = 0.0,
    ) -> None:
        if method not in PLACEMENT_METHODS:
            raise ValueError(f"placement method must be 'offset' or 'arepo', got '{method}'")
        self.method = method
        self.offset_fraction = offset_fraction
        self.min_separation = min_separation
        self.boundary_margin = boundary_margin
        self.hull_margin = hull_margin

    # ----------------------------------------------------------
    # Candidate positions
    # ----------------------------------------------------------

    def offset_candidate(self, parent: int, tess: VoronoiMesh) -> np.ndarray | None:
        """Variant 1: step towards the farthest neighbour."""
        p = tess.mesh_point(parent)
        neighbors = tess.neighbors(parent)
        if not neighbors:
            return None
        deltas = np.array([tess.mesh_point(j) - p for j in neighbors])
        distances = np.linalg.norm(deltas, axis=1)
        far = int(np.argmax(distances))
        if distances[far] <= 0.0:
            return None
        direction = deltas[far] / distances[far]
        step = min(self.offset_fraction * tess.width(parent), 0.25 * distances[far])
        return p + step * direction

    def arepo_candidate(self, parent: int, tess: VoronoiMesh) -> np.ndarray | None:
        """Variant 2: mirror the mesh point through the cell centroid."""
        p = tess.mesh_point(parent)
        c = tess.cell_cm(parent)
        width = tess.width(parent)
        delta = c - p
        dist = float(np.linalg.norm(delta))
        if dist > 1e-3 * width:
            return 2.0 * c - p
        poly = tess.cell_polygon(parent)
        spokes = poly - c
        lengths = np.linalg.norm(spokes, axis=1)
        far = int(np.argmax(lengths))
        if lengths[far] <= 0.0:
            return None
        return c + 0.5 * self.offset_fraction * width * spokes[far] / lengths[far]

    def candidate(self, parent: int, tess: VoronoiMesh) -> np.ndarray | None:
        if self.method == "arepo":
            return self.arepo_candidate(parent, tess)
        return self.offset_candidate(parent, tess)

    # ----------------------------------------------------------
    # Validation
    # ----------------------------------------------------------

    def accept_candidate(
        self,
        candidate: np.ndarray,
        parent: int,
        tess: VoronoiMesh,
        outer: SquareBox,
        accepted: list[np.ndarray] | None = None,
        proc_hull: np.ndarray | None = None,
    ) -> bool:
        """True if ``candidate`` may be inserted as the child of ``parent``.

        ``candidate`` is in the parent's (unwrapped) frame.
        """
        candidate = np.asarray(candidate, dtype=float)
        width = tess.width(parent)
        wrapped = outer.wrap(candidate)

        if not outer.contains(wrapped, margin=self.boundary_margin * width):
            logger.debug("Candidate %s of cell %d outside %s", candidate.tolist(), parent, outer)
            return False

        if not point_in_convex_polygon(float(candidate[0]), float(candidate[1]), tess.cell_polygon(parent)):
            logger.debug("Candidate %s falls outside cell %d", candidate.tolist(), parent)
            return False

        min_dist = self.min_separation * width
        others = [parent] + tess.neighbors(parent)
        existing = np.array([tess.mesh_point(j) for j in others])
        if np.min(np.linalg.norm(existing - candidate, axis=1)) < min_dist:
            logger.debug("Candidate %s too close to an existing point", candidate.tolist())
            return False

        for other in accepted or []:
            for offset in outer.periodic_offsets():
                if np.linalg.norm(other + offset - wrapped) < min_dist:
                    logger.debug("Candidate %s too close to another new point", candidate.tolist())
                    return False

        if near_process_hull(wrapped, proc_hull, self.hull_margin):
            logger.debug("Candidate %s too close to the process hull", candidate.tolist())
            return False

        return True

    # ----------------------------------------------------------
    # Entry point
    # ----------------------------------------------------------

    def get_new_points(
        self,
        to_refine,
        tess: VoronoiMesh,
        outer: SquareBox,
        proc_hull: np.ndarray | None = None,
    ) -> PlacementResult:
        """Positions of the new points for the cells in ``to_refine``."""
        result = PlacementResult()
        accepted: list[np.ndarray] = []
        for parent in sorted({int(i) for i in to_refine}):
            if near_process_hull(tess.mesh_point(parent), proc_hull, self.hull_margin):
                logger.debug("Cell %d skipped: too close to the process hull", parent)
                result.rejected.append(parent)
                continue
            candidate = self.candidate(parent, tess)
            if candidate is None or not self.accept_candidate(
                candidate, parent, tess, outer, accepted, proc_hull
            ):
                result.rejected.append(parent)
                continue
            position = outer.wrap(candidate)
            if not np.array_equal(position, candidate):
                result.moved[parent] = position - candidate
            accepted.append(position)
            result.new_points.append((parent, position))

        logger.debug(
            "Placement (%s): %d accepted, %d rejected",
            self.method,
            len(result.new_points),
            len(result.rejected),
        )
        return result
