"""Refinement and removal policies, and merit-based conflict resolution.

Policies decide *which* cells change; they are injected into the AMR
driver. Two neighbouring cells are never removed in the same pass: the
candidates are visited in order of decreasing merit and a candidate is
kept only if none of its neighbours has already been kept.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import numpy as np

from mmhydro.core.bases import CellsToRefine, CellsToRemove, ComputationalCell
from mmhydro.tessellation.voronoi import VoronoiMesh

logger = logging.getLogger(__name__)


class DensityRefine(CellsToRefine):
    """Refine cells denser than ``density`` whose volume exceeds ``max_volume``.

    Args:
        density: Density threshold.
        max_volume: Cells at or below this volume are left alone.
    """

    def __init__(self, density: float, max_volume: float = 0.0) -> None:
        self.density = density
        self.max_volume = max_volume

    def to_refine(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> list[int]:
        return [
            i
            for i in range(tess.point_count)
            if cells[i].density > self.density and tess.volume(i) > self.max_volume
        ]


class VolumeRemove(CellsToRemove):
    """Remove cells smaller than ``volume`` (and lighter than ``max_density``).

    Merit is the ratio ``volume / cell volume``: the smaller a cell, the
    stronger its claim to be removed.
    """

    def __init__(self, volume: float, max_density: float = np.inf) -> None:
        self.volume = volume
        self.max_density = max_density

    def to_remove(
        self,
        tess: VoronoiMesh,
        cells: list[ComputationalCell],
        time: float,
    ) -> tuple[list[int], list[float]]:
        indices: list[int] = []
        merits: list[float] = []
        for i in range(tess.point_count):
            v = tess.volume(i)
            if v < self.volume and cells[i].density < self.max_density:
                indices.append(i)
                merits.append(self.volume / max(v, 1e-300))
        return indices, merits


class IndexRefine(CellsToRefine):
    """Refine a fixed list of cells (scripted scenarios and tests)."""

    def __init__(self, indices: Iterable[int]) -> None:
        self.indices = list(indices)

    def to_refine(self, tess, cells, time) -> list[int]:
        return [i for i in self.indices if i < tess.point_count]


class IndexRemove(CellsToRemove):
    """Remove a fixed list of cells with given merits."""

    def __init__(self, indices: Iterable[int], merits: Iterable[float] | None = None) -> None:
        self.indices = list(indices)
        self.merits = list(merits) if merits is not None else [1.0] * len(self.indices)
        if len(self.merits) != len(self.indices):
            raise ValueError("indices and merits must have the same length")

    def to_remove(self, tess, cells, time) -> tuple[list[int], list[float]]:
        pairs = [(i, m) for i, m in zip(self.indices, self.merits) if i < tess.point_count]
        return [i for i, _ in pairs], [m for _, m in pairs]


def resolve_removal_conflicts(
    tess: VoronoiMesh,
    candidates: Sequence[int],
    merits: Sequence[float],
) -> list[int]:
    """Drop candidates that neighbour a higher-merit candidate.

    Greedy by descending merit, ties broken by the lower index. The result
    is an independent set of the candidates in the neighbour graph.

    Returns:
        Surviving candidates, sorted by index.
    """
    if len(candidates) != len(merits):
        raise ValueError(f"{len(candidates)} candidates but {len(merits)} merits")
    best: dict[int, float] = {}
    for index, merit in zip(candidates, merits):
        best[int(index)] = max(float(merit), best.get(int(index), -np.inf))

    order = sorted(best, key=lambda i: (-best[i], i))
    accepted: set[int] = set()
    for index in order:
        clash = [j for j in tess.neighbors(index) if tess.original_index(j) in accepted]
        if clash:
            logger.debug(
                "Removal candidate %d (merit %.3g) dropped: neighbour %d already chosen",
                index,
                best[index],
                tess.original_index(clash[0]),
            )
            continue
        accepted.add(index)
    return sorted(accepted)
