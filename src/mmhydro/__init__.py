"""Moving-mesh hydrodynamics: Voronoi tessellation, polyhedral cell geometry
and conservative adaptive mesh refinement."""

from __future__ import annotations

__version__ = "0.1.0"
