"""Geometry primitives: polyhedral cell decomposition and planar polygons."""

from mmhydro.geometry.cell_calculations import (
    DEGENERATE_VOLUME,
    Face,
    GeometryError,
    Tetrahedron,
    calculate_cell_dimensions,
    cell_center,
    iter_tetrahedra,
    split_cell,
)
from mmhydro.geometry.vector_repository import VectorRef, VectorRepository

__all__ = [
    "DEGENERATE_VOLUME",
    "Face",
    "GeometryError",
    "Tetrahedron",
    "VectorRef",
    "VectorRepository",
    "calculate_cell_dimensions",
    "cell_center",
    "iter_tetrahedra",
    "split_cell",
]
