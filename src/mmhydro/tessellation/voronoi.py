"""Two-dimensional Voronoi tessellation of a rectangular domain.

The mesh is built with ``scipy.spatial.Voronoi`` after surrounding the real
points with their eight images in the neighbouring boxes: mirror images
across rigid walls, translated copies across periodic sides. Image points
that share an edge with a real cell become the mesh's ghost points.

Indexing:
    0 .. N-1        real mesh points (stable between updates)
    N .. N+G-1      ghost points, each the image of a real point
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.spatial import Voronoi

from mmhydro.geometry.polygon import order_counter_clockwise, polygon_area_centroid
from mmhydro.tessellation.outer_boundary import SquareBox

logger = logging.getLogger(__name__)

# Edges shorter than this fraction of the domain size are dropped
EDGE_TOLERANCE = 1e-12


@dataclass
class Edge:
    """An interface between two mesh points.

    Attributes:
        vertices: End points, shape (2, 2): ``vertices[0]`` and ``vertices[1]``.
        neighbors: Indices of the two mesh points sharing the edge.
    """

    vertices: np.ndarray
    neighbors: tuple[int, int]

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.vertices[1] - self.vertices[0]))

    @property
    def midpoint(self) -> np.ndarray:
        return 0.5 * (self.vertices[0] + self.vertices[1])


class VoronoiMesh:
    """Voronoi tessellation of a point set inside a ``SquareBox``.

    Args:
        points: Mesh point positions, shape (N, 2).
        outer: Outer boundary of the domain.
        min_points: Smallest point count accepted.

    Raises:
        ValueError: If a point lies outside the box or there are fewer
            than ``min_points`` points.
    """

    def __init__(self, points: np.ndarray, outer: SquareBox, min_points: int = 4) -> None:
        self.outer = outer
        self.min_points = min_points
        self.update(points)

    # ----------------------------------------------------------
    # Construction
    # ----------------------------------------------------------

    def update(self, points: np.ndarray) -> None:
        """Rebuild the tessellation for a new set of real points."""
        pts = np.array(points, dtype=float).reshape(-1, 2)
        n = len(pts)
        if n < self.min_points:
            raise ValueError(f"A tessellation needs at least {self.min_points} points, got {n}")
        for p in pts:
            if not self.outer.contains(p):
                raise ValueError(f"Mesh point {p.tolist()} lies outside {self.outer}")

        shifts = self.outer.image_shifts()
        all_points = np.vstack([pts] + [self.outer.image(pts, s) for s in shifts])
        vor = Voronoi(all_points)

        tol = EDGE_TOLERANCE * float(self.outer.lengths.max())
        ghost_of: dict[int, int] = {}
        ghost_points: list[np.ndarray] = []
        ghost_original: list[int] = []
        ghost_shifts: list[tuple[int, int]] = []

        edges: list[Edge] = []
        cell_edges: list[list[int]] = [[] for _ in range(n)]
        cell_vertices: list[set[int]] = [set() for _ in range(n)]

        def local_index(g: int) -> int:
            if g < n:
                return g
            if g not in ghost_of:
                shift = shifts[g // n - 1]
                ghost_of[g] = n + len(ghost_points)
                ghost_points.append(all_points[g])
                ghost_original.append(g % n)
                ghost_shifts.append(shift)
            return ghost_of[g]

        for (p, q), verts in zip(vor.ridge_points, vor.ridge_vertices):
            if min(p, q) >= n:
                continue
            if -1 in verts:
                raise ValueError("Unbounded Voronoi ridge next to a real point; the point set is degenerate")
            for g in (p, q):
                if g < n:
                    cell_vertices[g].update(verts)
            ends = vor.vertices[verts]
            if np.linalg.norm(ends[1] - ends[0]) <= tol:
                continue
            edge_index = len(edges)
            edges.append(Edge(vertices=ends.copy(), neighbors=(local_index(int(p)), local_index(int(q)))))
            for g in (p, q):
                if g < n:
                    cell_edges[g].append(edge_index)

        self._points = np.vstack([pts] + ([np.array(ghost_points)] if ghost_points else []))
        self._n = n
        self._original = np.concatenate([np.arange(n), np.array(ghost_original, dtype=int)])
        self._ghost_shifts = ghost_shifts
        self._edges = edges
        self._cell_edges = cell_edges

        self._polygons: list[np.ndarray] = []
        self._volumes = np.empty(n)
        self._centroids = np.empty((n, 2))
        for i in range(n):
            poly = order_counter_clockwise(vor.vertices[sorted(cell_vertices[i])])
            area, cx, cy = polygon_area_centroid(poly)
            self._polygons.append(poly)
            self._volumes[i] = area
            self._centroids[i] = (cx, cy)

        logger.debug(
            "Tessellation built: %d points, %d ghosts, %d edges",
            n,
            len(ghost_points),
            len(edges),
        )

    def insert_points(self, points: np.ndarray) -> np.ndarray:
        """Append new real points and rebuild.

        Args:
            points: New positions, shape (k, 2).

        Returns:
            Indices assigned to the new points.
        """
        new = np.array(points, dtype=float).reshape(-1, 2)
        self.update(np.vstack([self.mesh_points, new]))
        return np.arange(self._n - len(new), self._n)

    def remove_points(self, indices) -> np.ndarray:
        """Erase real points and rebuild, compacting the surviving indices.

        Returns:
            Array of length N (old count) mapping old index -> new index,
            ``-1`` for removed points.
        """
        keep = np.ones(self._n, dtype=bool)
        keep[np.asarray(list(indices), dtype=int)] = False
        remap = np.full(self._n, -1, dtype=int)
        remap[keep] = np.arange(int(keep.sum()))
        self.update(self.mesh_points[keep])
        return remap

    # ----------------------------------------------------------
    # Queries
    # ----------------------------------------------------------

    @property
    def point_count(self) -> int:
        """Number of real mesh points."""
        return self._n

    @property
    def total_points(self) -> int:
        """Number of real plus ghost points."""
        return len(self._points)

    @property
    def mesh_points(self) -> np.ndarray:
        """Copy of the real point positions, shape (N, 2)."""
        return self._points[: self._n].copy()

    def mesh_point(self, index: int) -> np.ndarray:
        return self._points[index]

    def original_index(self, index: int) -> int:
        """Real point a ghost is the image of (identity for real points)."""
        return int(self._original[index])

    def is_ghost(self, index: int) -> bool:
        return index >= self._n

    def ghost_shift(self, index: int) -> tuple[int, int]:
        """Neighbouring box a ghost lies in; ``(0, 0)`` for real points."""
        if index < self._n:
            return (0, 0)
        return self._ghost_shifts[index - self._n]

    def is_periodic_ghost(self, index: int) -> bool:
        """True for a ghost that is a translated (not mirrored) copy of a real point."""
        return index >= self._n and self.outer.is_periodic_shift(self.ghost_shift(index))

    @property
    def edges(self) -> list[Edge]:
        return self._edges

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def edge(self, index: int) -> Edge:
        return self._edges[index]

    def cell_edges(self, index: int) -> list[int]:
        return self._cell_edges[index]

    def neighbors(self, index: int) -> list[int]:
        """Mesh points (real or ghost) sharing an edge with real point ``index``."""
        out = []
        for e in self._cell_edges[index]:
            a, b = self._edges[e].neighbors
            out.append(b if a == index else a)
        return out

    def real_neighbors(self, index: int) -> list[int]:
        return [j for j in self.neighbors(index) if j < self._n]

    def volume(self, index: int) -> float:
        return float(self._volumes[index])

    @property
    def volumes(self) -> np.ndarray:
        return self._volumes.copy()

    def cell_cm(self, index: int) -> np.ndarray:
        return self._centroids[index]

    @property
    def centroids(self) -> np.ndarray:
        return self._centroids.copy()

    def cell_polygon(self, index: int) -> np.ndarray:
        """Counter-clockwise vertices of real cell ``index``."""
        return self._polygons[index]

    def width(self, index: int) -> float:
        """Radius of the disc with the same area as the cell."""
        return float(np.sqrt(self._volumes[index] / np.pi))

    def __repr__(self) -> str:
        return (
            f"VoronoiMesh(points={self._n}, ghosts={self.total_points - self._n}, "
            f"edges={self.edge_count})"
        )
