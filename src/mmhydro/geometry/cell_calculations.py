"""Tetrahedral decomposition of polyhedral cells.

A cell is a collection of planar faces, each an ordered loop of vertices.
The cell is split into tetrahedra that share one apex, the unweighted
average of the cell's distinct vertices. Every face is fan-triangulated
from its first vertex:

    (v0, v1, v2), (v0, v2, v3), ..., (v0, v_{n-2}, v_{n-1})

and each triangle together with the apex forms one tetrahedron. The cell
volume is the sum of the tetrahedron volumes and the center of mass is
their volume-weighted centroid.

Pre-optimisation meshes contain near-zero-area faces. Those produce
degenerate tetrahedra which still count towards the volume but are left
out of the centroid average.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np
from numba import njit

from mmhydro.geometry.vector_repository import VectorRef, VectorRepository, default_repository

logger = logging.getLogger(__name__)

# Tetrahedra below this volume are excluded from the centroid average
DEGENERATE_VOLUME = 1e-30


class GeometryError(ValueError):
    """A cell whose geometry admits no volume or center of mass."""


@dataclass
class Face:
    """One planar side of a polyhedral cell.

    Attributes:
        vertices: Ordered vertex handles, at least three.
    """

    vertices: list[VectorRef]

    def __post_init__(self) -> None:
        if len(self.vertices) < 3:
            raise GeometryError(f"A face needs at least 3 vertices, got {len(self.vertices)}")

    @classmethod
    def from_points(
        cls,
        points: Sequence[Sequence[float]] | np.ndarray,
        repository: VectorRepository | None = None,
    ) -> Face:
        """Build a face, interning its vertices in ``repository``."""
        repo = default_repository if repository is None else repository
        return cls([repo.get(p) for p in points])

    def __len__(self) -> int:
        return len(self.vertices)


@njit(cache=True)
def _tetrahedron_volume(a: np.ndarray, b: np.ndarray, c: np.ndarray, d: np.ndarray) -> float:
    u0 = b[0] - a[0]
    u1 = b[1] - a[1]
    u2 = b[2] - a[2]
    v0 = c[0] - a[0]
    v1 = c[1] - a[1]
    v2 = c[2] - a[2]
    w0 = d[0] - a[0]
    w1 = d[1] - a[1]
    w2 = d[2] - a[2]
    det = u0 * (v1 * w2 - v2 * w1) - u1 * (v0 * w2 - v2 * w0) + u2 * (v0 * w1 - v1 * w0)
    return abs(det) / 6.0


@njit(cache=True)
def tetrahedra_volumes_and_centers(vertices: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Volumes and centroids of a batch of tetrahedra.

    Args:
        vertices: Array of shape (n, 4, 3).

    Returns:
        ``(volumes, centers)`` of shapes (n,) and (n, 3).
    """
    n = vertices.shape[0]
    volumes = np.empty(n)
    centers = np.empty((n, 3))
    for k in range(n):
        volumes[k] = _tetrahedron_volume(vertices[k, 0], vertices[k, 1], vertices[k, 2], vertices[k, 3])
        for dim in range(3):
            centers[k, dim] = 0.25 * (
                vertices[k, 0, dim] + vertices[k, 1, dim] + vertices[k, 2, dim] + vertices[k, 3, dim]
            )
    return volumes, centers


class Tetrahedron:
    """Four vertex positions; volume and centroid are computed on demand."""

    __slots__ = ("vertices",)

    def __init__(self, apex: VectorRef, a: VectorRef, b: VectorRef, c: VectorRef) -> None:
        self.vertices = (apex, a, b, c)

    def as_array(self) -> np.ndarray:
        return np.array([v.vector for v in self.vertices])

    def volume(self) -> float:
        pts = self.as_array()
        return _tetrahedron_volume(pts[0], pts[1], pts[2], pts[3])

    def center(self) -> np.ndarray:
        return self.as_array().mean(axis=0)


def cell_center(cell: Sequence[Face]) -> np.ndarray:
    """Unweighted average of the distinct vertices of ``cell``.

    A vertex shared by several faces is counted once.

    Raises:
        GeometryError: If the cell has no faces.
    """
    if len(cell) == 0:
        raise GeometryError("Cannot compute the center of a cell with no faces")
    seen: set[int] = set()
    total = np.zeros(3)
    for face in cell:
        for vertex in face.vertices:
            if id(vertex) in seen:
                continue
            seen.add(id(vertex))
            total += vertex.vector
    return total / len(seen)


def iter_tetrahedra(cell: Sequence[Face], apex: VectorRef | None = None) -> Iterator[Tetrahedron]:
    """Lazily yield the tetrahedra covering ``cell``."""
    if apex is None:
        apex = VectorRef(cell_center(cell))
    for face in cell:
        v = face.vertices
        for i in range(1, len(v) - 1):
            yield Tetrahedron(apex, v[0], v[i], v[i + 1])


def split_cell(cell: Sequence[Face]) -> list[Tetrahedron]:
    """Split ``cell`` into tetrahedra that all touch the cell center."""
    expected = sum(len(face) - 1 for face in cell)
    tetrahedra: list[Tetrahedron | None] = [None] * expected
    n = 0
    for tet in iter_tetrahedra(cell):
        tetrahedra[n] = tet
        n += 1
    del tetrahedra[n:]
    return tetrahedra  # type: ignore[return-value]


def _tetrahedra_array(cell: Sequence[Face]) -> np.ndarray:
    expected = sum(len(face) - 1 for face in cell)
    apex = cell_center(cell)
    out = np.empty((expected, 4, 3))
    n = 0
    for face in cell:
        v = face.vertices
        for i in range(1, len(v) - 1):
            out[n, 0] = apex
            out[n, 1] = v[0].vector
            out[n, 2] = v[i].vector
            out[n, 3] = v[i + 1].vector
            n += 1
    return out[:n]


def calculate_cell_dimensions(cell: Sequence[Face]) -> tuple[float, np.ndarray]:
    """Volume and center of mass of a polyhedral cell.

    Args:
        cell: Faces bounding the cell.

    Returns:
        ``(volume, center_of_mass)``.

    Raises:
        GeometryError: If the cell has no faces or its total volume is zero.
    """
    tets = _tetrahedra_array(cell)
    volumes, centers = tetrahedra_volumes_and_centers(tets)
    volume = float(volumes.sum())

    mask = volumes >= DEGENERATE_VOLUME
    n_skipped = int(np.count_nonzero(~mask))
    if n_skipped:
        logger.debug("Skipped %d degenerate tetrahedra out of %d", n_skipped, len(volumes))

    weighted = volumes[mask]
    if volume < DEGENERATE_VOLUME or weighted.sum() <= 0.0:
        raise GeometryError(f"Cell has zero total volume ({volume:.3e}); center of mass undefined")

    center_of_mass = (centers[mask] * weighted[:, None]).sum(axis=0) / volume
    return volume, center_of_mass
