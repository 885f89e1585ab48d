"""Core abstract base classes and shared data structures.

Defines the state containers and interface contracts used by the AMR core:
- ``ComputationalCell``: primitive (intensive) state of one mesh point
- ``Extensive``: conserved (extensive) state of one mesh point
- ``EquationOfState``: ABC for pressure <-> internal energy closures
- ``AMRCellUpdater`` / ``AMRExtensiveUpdater``: ABCs for state conversion
- ``CellsToRefine`` / ``CellsToRemove``: ABCs for refinement policies
- ``GhostPointGenerator``: ABC for boundary ghost states
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from mmhydro.tessellation.voronoi import Edge, VoronoiMesh


def _zero_vector() -> np.ndarray:
    return np.zeros(2)


@dataclass
class ComputationalCell:
    """Primitive state of a single cell.

    Attributes:
        density: Mass density.
        pressure: Thermal pressure.
        velocity: Velocity vector, shape (2,).
        tracers: Passive scalar concentrations (name -> mass fraction).
        stickers: Named boolean flags carried with the cell.
    """

    density: float = 0.0
    pressure: float = 0.0
    velocity: np.ndarray = field(default_factory=_zero_vector)
    tracers: dict[str, float] = field(default_factory=dict)
    stickers: dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.velocity = np.asarray(self.velocity, dtype=float).copy()

    def copy(self) -> ComputationalCell:
        """Return a deep copy (velocity and mappings are not shared)."""
        return ComputationalCell(
            density=self.density,
            pressure=self.pressure,
            velocity=self.velocity.copy(),
            tracers=dict(self.tracers),
            stickers=dict(self.stickers),
        )


@dataclass
class Extensive:
    """Conserved state of a single cell.

    Attributes:
        mass: Total mass.
        energy: Total (kinetic + internal) energy.
        momentum: Momentum vector, shape (2,).
        tracers: Tracer masses (name -> mass).
    """

    mass: float = 0.0
    energy: float = 0.0
    momentum: np.ndarray = field(default_factory=_zero_vector)
    tracers: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.momentum = np.asarray(self.momentum, dtype=float).copy()

    def copy(self) -> Extensive:
        return Extensive(
            mass=self.mass,
            energy=self.energy,
            momentum=self.momentum.copy(),
            tracers=dict(self.tracers),
        )

    def __add__(self, other: Extensive) -> Extensive:
        tracers = dict(self.tracers)
        for name, value in other.tracers.items():
            tracers[name] = tracers.get(name, 0.0) + value
        return Extensive(
            mass=self.mass + other.mass,
            energy=self.energy + other.energy,
            momentum=self.momentum + other.momentum,
            tracers=tracers,
        )

    def __sub__(self, other: Extensive) -> Extensive:
        return self + other * -1.0

    def __mul__(self, factor: float) -> Extensive:
        return Extensive(
            mass=self.mass * factor,
            energy=self.energy * factor,
            momentum=self.momentum * factor,
            tracers={name: value * factor for name, value in self.tracers.items()},
        )

    __rmul__ = __mul__


class EquationOfState(ABC):
    """Abstract equation of state (per unit mass)."""

    @abstractmethod
    def dp2e(self, density: float, pressure: float, tracers: dict[str, float] | None = None) -> float:
        """Specific internal energy from density and pressure."""

    @abstractmethod
    def de2p(self, density: float, energy: float, tracers: dict[str, float] | None = None) -> float:
        """Pressure from density and specific internal energy."""

    @abstractmethod
    def dp2c(self, density: float, pressure: float, tracers: dict[str, float] | None = None) -> float:
        """Adiabatic sound speed."""


class AMRExtensiveUpdater(ABC):
    """Converts a primitive cell to its conserved quantities."""

    @abstractmethod
    def convert_primitive_to_extensive(
        self,
        cell: ComputationalCell,
        eos: EquationOfState,
        volume: float,
    ) -> Extensive:
        """Conserved quantities of ``cell`` occupying ``volume``."""


class AMRCellUpdater(ABC):
    """Converts conserved quantities back to a primitive cell."""

    @abstractmethod
    def convert_extensive_to_primitive(
        self,
        extensive: Extensive,
        eos: EquationOfState,
        volume: float,
        old_cell: ComputationalCell,
    ) -> ComputationalCell:
        """Primitive state of ``extensive`` occupying ``volume``.

        Args:
            extensive: Conserved quantities of the cell.
            eos: Equation of state.
            volume: Cell volume.
            old_cell: Previous state of the cell (or of its parent for a
                freshly created cell), used for anything that cannot be
                derived from ``extensive``.
        """


class CellsToRefine(ABC):
    """Chooses which cells should be refined."""

    @abstractmethod
    def to_refine(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> list[int]:
        """Indices of the cells to refine."""


class CellsToRemove(ABC):
    """Chooses which cells should be removed."""

    @abstractmethod
    def to_remove(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> tuple[list[int], list[float]]:
        """Indices of the cells to remove with a parallel list of merits.

        When two candidates are neighbors only one of them can be removed;
        the one with the higher merit wins.
        """


class GhostPointGenerator(ABC):
    """Produces states for ghost points across the outer boundary."""

    @abstractmethod
    def __call__(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> dict[int, ComputationalCell]:
        """Map every ghost index adjacent to a real cell to its state."""

    @abstractmethod
    def get_ghost_gradient(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        gradients: list[tuple[ComputationalCell, ComputationalCell]],
        ghost_index: int,
        time: float,
        edge: Edge,
    ) -> tuple[ComputationalCell, ComputationalCell]:
        """Gradient (x, y components) to use for a ghost point."""


def total_extensive(extensives: list[Extensive]) -> Extensive:
    """Sum of a list of conserved states."""
    total = Extensive()
    for ext in extensives:
        total = total + ext
    return total


def describe_extensive(ext: Extensive) -> dict[str, Any]:
    """Plain-scalar summary of an extensive state, for logging and the CLI."""
    summary: dict[str, Any] = {
        "mass": float(ext.mass),
        "energy": float(ext.energy),
        "momentum_x": float(ext.momentum[0]),
        "momentum_y": float(ext.momentum[1]),
    }
    for name, value in sorted(ext.tracers.items()):
        summary[f"tracer_{name}"] = float(value)
    return summary
