"""Pydantic v2 configuration for moving-mesh AMR runs.

Provides validated, typed configuration with submodels for the domain,
the initial mesh, the initial state and the AMR scheme. Supports JSON I/O
and cross-field validation.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class BoxConfig(BaseModel):
    """Rectangular domain and its boundary kinds."""

    lower_left: list[float] = Field(
        default_factory=lambda: [0.0, 0.0], min_length=2, max_length=2, description="(x, y) of lower-left corner"
    )
    upper_right: list[float] = Field(
        default_factory=lambda: [1.0, 1.0], min_length=2, max_length=2, description="(x, y) of upper-right corner"
    )
    x_boundary: str = Field("rigid", description="Boundary along x: 'rigid' or 'periodic'")
    y_boundary: str = Field("rigid", description="Boundary along y: 'rigid' or 'periodic'")

    @model_validator(mode="after")
    def check_box(self) -> BoxConfig:
        if any(hi <= lo for lo, hi in zip(self.lower_left, self.upper_right)):
            raise ValueError("upper_right must exceed lower_left along both axes")
        for kind in (self.x_boundary, self.y_boundary):
            if kind not in ("rigid", "periodic"):
                raise ValueError(f"boundary must be 'rigid' or 'periodic', got '{kind}'")
        return self


class MeshConfig(BaseModel):
    """Initial point set: a perturbed Cartesian grid."""

    nx: int = Field(10, ge=2, description="Points along x")
    ny: int = Field(10, ge=2, description="Points along y")
    perturbation: float = Field(0.1, ge=0, lt=0.45, description="Random displacement [grid spacings]")
    seed: int = Field(0, description="Random seed for the perturbation")


class InitialConditionsConfig(BaseModel):
    """Uniform medium with an optional over-pressured central disc (Sedov-style)."""

    density: float = Field(1.0, gt=0, description="Ambient density")
    pressure: float = Field(0.01, gt=0, description="Ambient pressure")
    velocity: list[float] = Field(
        default_factory=lambda: [0.0, 0.0], min_length=2, max_length=2, description="Ambient velocity"
    )
    blast_radius: float = Field(0.0, ge=0, description="Radius of the over-pressured disc (0 = none)")
    blast_pressure: float = Field(1e4, gt=0, description="Pressure inside the disc")
    tracers: dict[str, float] = Field(default_factory=dict, description="Initial tracer concentrations")


class AMRConfig(BaseModel):
    """Adaptive mesh refinement parameters.

    Attributes:
        scheme: 'conservative', 'conservative_old' or 'nonconservative'.
        placement: New-point rule, 'offset' or 'arepo'.
        offset_fraction: Step of a new point from its parent [cell widths].
        min_separation: Closest allowed approach of a new point [cell widths].
        boundary_margin: Closest allowed approach to a rigid wall [cell widths].
        hull_margin: Closest allowed approach to the process hull [length].
        min_points: Removal never leaves fewer points than this.
        refine_density: Cells denser than this are refined.
        max_volume: Cells at or below this volume are not refined.
        remove_volume: Cells below this volume are removed.
        slopes: Slope-limited reconstruction in the conservative split.
    """

    scheme: str = Field("conservative")
    placement: str = Field("offset")
    offset_fraction: float = Field(0.5, gt=0, le=1.0)
    min_separation: float = Field(0.1, ge=0, lt=1.0)
    boundary_margin: float = Field(0.05, ge=0, lt=1.0)
    hull_margin: float = Field(0.0, ge=0)
    min_points: int = Field(4, ge=4)
    refine_density: float = Field(2.0, gt=0)
    max_volume: float = Field(0.0, ge=0)
    remove_volume: float = Field(0.0, ge=0)
    slopes: bool = Field(True)

    @model_validator(mode="after")
    def validate_choices(self) -> AMRConfig:
        if self.scheme not in ("conservative", "conservative_old", "nonconservative"):
            raise ValueError(
                "scheme must be 'conservative', 'conservative_old' or 'nonconservative', "
                f"got '{self.scheme}'"
            )
        if self.placement not in ("offset", "arepo"):
            raise ValueError(f"placement must be 'offset' or 'arepo', got '{self.placement}'")
        return self


class SimulationConfig(BaseModel):
    """Top-level configuration."""

    gamma: float = Field(5.0 / 3.0, gt=1, description="Adiabatic index")
    time: float = Field(0.0, ge=0, description="Simulation time the state refers to")
    box: BoxConfig = Field(default_factory=BoxConfig)
    mesh: MeshConfig = Field(default_factory=MeshConfig)
    initial: InitialConditionsConfig = Field(default_factory=InitialConditionsConfig)
    amr: AMRConfig = Field(default_factory=AMRConfig)

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out
