"""Tessellation of the computational domain (external collaborator of the AMR core)."""

from mmhydro.tessellation.logger import BinLogger
from mmhydro.tessellation.mesh_generator import cartesian_mesh, perturbed_cartesian_mesh
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import Edge, VoronoiMesh

__all__ = [
    "BinLogger",
    "Edge",
    "SquareBox",
    "VoronoiMesh",
    "cartesian_mesh",
    "perturbed_cartesian_mesh",
]
