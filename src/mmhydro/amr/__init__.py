"""Adaptive mesh refinement for the moving Voronoi mesh.

Refinement inserts mesh points inside selected cells; removal erases
selected points. Both mutate the tessellation and resize the per-point
primitive and conserved state lists in place.
"""

from mmhydro.amr.driver import (
    AMR,
    ConservativeAMR,
    ConservativeAMROld,
    NonConservativeAMR,
    make_amr,
)
from mmhydro.amr.placement import NewPointPlacer, PlacementResult
from mmhydro.amr.selectors import (
    DensityRefine,
    IndexRefine,
    IndexRemove,
    VolumeRemove,
    resolve_removal_conflicts,
)
from mmhydro.amr.slopes import compute_gradients, interpolate
from mmhydro.amr.updaters import (
    ConservativeAMRCellUpdater,
    SimpleAMRCellUpdater,
    SimpleAMRExtensiveUpdater,
)

__all__ = [
    "AMR",
    "ConservativeAMR",
    "ConservativeAMRCellUpdater",
    "ConservativeAMROld",
    "DensityRefine",
    "IndexRefine",
    "IndexRemove",
    "NewPointPlacer",
    "NonConservativeAMR",
    "PlacementResult",
    "SimpleAMRCellUpdater",
    "SimpleAMRExtensiveUpdater",
    "VolumeRemove",
    "compute_gradients",
    "interpolate",
    "make_amr",
    "resolve_removal_conflicts",
]
