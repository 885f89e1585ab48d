"""Binary snapshots of a tessellation.

Layout (little-endian, int32 and float64):

    edge count
    for every edge: x of first vertex, x of second vertex
    for every edge: y of first vertex, y of second vertex
    for every edge: first neighbor, second neighbor
    point count
    for every point: x, y
    for every point: number of edges, then that many edge indices
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from mmhydro.tessellation.voronoi import VoronoiMesh

logger = logging.getLogger(__name__)

_INT = np.dtype("<i4")
_DOUBLE = np.dtype("<f8")


class BinLogger:
    """Writes tessellation snapshots to ``file_name``."""

    def __init__(self, file_name: str | Path) -> None:
        self.file_name = Path(file_name)

    def output(self, tess: VoronoiMesh) -> None:
        """Write ``tess`` in the binary snapshot layout."""
        edges = tess.edges
        n_edges = len(edges)
        if n_edges:
            vertices = np.array([e.vertices for e in edges])  # (E, 2 ends, 2 coords)
            neighbors = np.array([e.neighbors for e in edges], dtype=_INT)
        else:
            vertices = np.zeros((0, 2, 2))
            neighbors = np.zeros((0, 2), dtype=_INT)

        with self.file_name.open("wb") as f:
            f.write(np.array([n_edges], dtype=_INT).tobytes())
            f.write(vertices[:, :, 0].astype(_DOUBLE).tobytes())
            f.write(vertices[:, :, 1].astype(_DOUBLE).tobytes())
            f.write(neighbors.astype(_INT).tobytes())
            f.write(np.array([tess.point_count], dtype=_INT).tobytes())
            f.write(tess.mesh_points.astype(_DOUBLE).tobytes())
            for i in range(tess.point_count):
                indices = tess.cell_edges(i)
                f.write(np.array([len(indices)], dtype=_INT).tobytes())
                f.write(np.asarray(indices, dtype=_INT).tobytes())

        logger.info("Wrote tessellation snapshot %s (%d points, %d edges)", self.file_name, tess.point_count, n_edges)

    @staticmethod
    def read(location: str | Path) -> np.ndarray:
        """Read the mesh points of a snapshot.

        Returns:
            Array of shape (N, 2).

        Raises:
            RuntimeError: If the file cannot be opened.
            ValueError: If the stream is truncated.
        """
        try:
            data = Path(location).read_bytes()
        except OSError as exc:
            raise RuntimeError("Error opening voronoi logger file") from exc

        reader = _StreamReader(data)
        n_edges = reader.ints(1)[0]
        reader.doubles(4 * n_edges)
        reader.ints(2 * n_edges)
        n_points = reader.ints(1)[0]
        return reader.doubles(2 * n_points).reshape(n_points, 2)

    @staticmethod
    def read_full(location: str | Path) -> dict[str, object]:
        """Read every section of a snapshot.

        Returns:
            Dictionary with ``edge_x`` and ``edge_y`` (E, 2), ``neighbors`` (E, 2),
            ``points`` (N, 2) and ``cell_edges`` (list of N int arrays).
        """
        try:
            data = Path(location).read_bytes()
        except OSError as exc:
            raise RuntimeError("Error opening voronoi logger file") from exc

        reader = _StreamReader(data)
        n_edges = reader.ints(1)[0]
        edge_x = reader.doubles(2 * n_edges).reshape(n_edges, 2)
        edge_y = reader.doubles(2 * n_edges).reshape(n_edges, 2)
        neighbors = reader.ints(2 * n_edges).reshape(n_edges, 2)
        n_points = reader.ints(1)[0]
        points = reader.doubles(2 * n_points).reshape(n_points, 2)
        cell_edges = []
        for _ in range(n_points):
            count = reader.ints(1)[0]
            cell_edges.append(reader.ints(count))
        return {
            "edge_x": edge_x,
            "edge_y": edge_y,
            "neighbors": neighbors,
            "points": points,
            "cell_edges": cell_edges,
        }


class _StreamReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    def _take(self, dtype: np.dtype, count: int) -> np.ndarray:
        size = dtype.itemsize * count
        if count < 0 or self._offset + size > len(self._data):
            raise ValueError("Truncated voronoi logger file")
        out = np.frombuffer(self._data, dtype=dtype, count=count, offset=self._offset)
        self._offset += size
        return out.copy()

    def ints(self, count: int) -> np.ndarray:
        return self._take(_INT, count)

    def doubles(self, count: int) -> np.ndarray:
        return self._take(_DOUBLE, count)
