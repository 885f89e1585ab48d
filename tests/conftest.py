"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from mmhydro.config import SimulationConfig
from mmhydro.core.bases import ComputationalCell
from mmhydro.fluid.eos import IdealGasEOS
from mmhydro.tessellation.mesh_generator import perturbed_cartesian_mesh
from mmhydro.tessellation.outer_boundary import SquareBox
from mmhydro.tessellation.voronoi import VoronoiMesh


@pytest.fixture
def unit_box():
    """Unit square with rigid walls."""
    return SquareBox((0.0, 0.0), (1.0, 1.0))


@pytest.fixture
def periodic_box():
    """Unit square, periodic along both axes."""
    return SquareBox((0.0, 0.0), (1.0, 1.0), "periodic", "periodic")


@pytest.fixture
def eos():
    return IdealGasEOS(gamma=5.0 / 3.0)


@pytest.fixture
def mesh(unit_box):
    """Small perturbed grid: 6 x 6 points in the unit square."""
    points = perturbed_cartesian_mesh(6, 6, unit_box, perturbation=0.1, seed=1)
    return VoronoiMesh(points, unit_box)


@pytest.fixture
def uniform_cells(mesh):
    """Uniform medium moving diagonally, one tracer."""
    return [
        ComputationalCell(
            density=1.0,
            pressure=1.0,
            velocity=np.array([0.3, -0.2]),
            tracers={"dye": 0.5},
        )
        for _ in range(mesh.point_count)
    ]


@pytest.fixture
def sample_config_dict():
    """Minimal valid SimulationConfig as a dictionary."""
    return {
        "gamma": 1.4,
        "mesh": {"nx": 6, "ny": 6, "perturbation": 0.1, "seed": 3},
        "initial": {"density": 1.0, "pressure": 1.0},
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Small SimulationConfig for fast unit tests."""
    return SimulationConfig(**sample_config_dict)
