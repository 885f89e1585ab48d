"""Core data structures and interface contracts."""

from mmhydro.core.bases import (
    AMRCellUpdater,
    AMRExtensiveUpdater,
    CellsToRefine,
    CellsToRemove,
    ComputationalCell,
    EquationOfState,
    Extensive,
    GhostPointGenerator,
    describe_extensive,
    total_extensive,
)

__all__ = [
    "AMRCellUpdater",
    "AMRExtensiveUpdater",
    "CellsToRefine",
    "CellsToRemove",
    "ComputationalCell",
    "EquationOfState",
    "Extensive",
    "GhostPointGenerator",
    "describe_extensive",
    "total_extensive",
]
