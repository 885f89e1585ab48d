"""Boundary ghost-state generators used by the flux calculator."""

from mmhydro.boundaries.ghost import (
    FreeFlowGenerator,
    RigidWallGenerator,
    outer_edge_indices,
    reverse_normal_velocity,
)

__all__ = [
    "FreeFlowGenerator",
    "RigidWallGenerator",
    "outer_edge_indices",
    "reverse_normal_velocity",
]
