"""Initial point sets for the tessellation."""

from __future__ import annotations

import numpy as np

from mmhydro.tessellation.outer_boundary import SquareBox


def cartesian_mesh(nx: int, ny: int, lower_left, upper_right) -> np.ndarray:
    """Cell-centred points of a regular ``nx`` by ``ny`` grid.

    Returns:
        Array of shape (nx * ny, 2), x varying fastest.
    """
    (x0, y0), (x1, y1) = lower_left, upper_right
    dx = (x1 - x0) / nx
    dy = (y1 - y0) / ny
    xs = x0 + (np.arange(nx) + 0.5) * dx
    ys = y0 + (np.arange(ny) + 0.5) * dy
    gx, gy = np.meshgrid(xs, ys)
    return np.column_stack([gx.ravel(), gy.ravel()])


def perturbed_cartesian_mesh(
    nx: int,
    ny: int,
    outer: SquareBox,
    perturbation: float = 0.1,
    seed: int | None = 0,
) -> np.ndarray:
    """Regular grid with each point displaced by up to ``perturbation`` grid spacings.

    Exact cocircular quadruples make the Voronoi diagram degenerate, so test
    meshes are usually perturbed slightly.
    """
    if not 0.0 <= perturbation < 0.5:
        raise ValueError(f"perturbation must be in [0, 0.5), got {perturbation}")
    points = cartesian_mesh(nx, ny, outer.lower_left, outer.upper_right)
    spacing = outer.lengths / np.array([nx, ny])
    rng = np.random.default_rng(seed)
    points += rng.uniform(-perturbation, perturbation, size=points.shape) * spacing
    return points
