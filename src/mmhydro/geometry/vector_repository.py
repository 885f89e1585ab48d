"""Deduplicating vertex repository for polyhedral cells.

Faces refer to their vertices through ``VectorRef`` handles. Two handles
created from identical coordinates are the same object, so vertices shared
between faces of a cell are recognised by identity. Entries are held
weakly: a vertex disappears from the repository once no face refers to it.
"""

from __future__ import annotations

import weakref
from collections.abc import Sequence

import numpy as np


class VectorRef:
    """Shared handle to an immutable 3D position."""

    __slots__ = ("_vector", "__weakref__")

    def __init__(self, vector: np.ndarray) -> None:
        vec = np.array(vector, dtype=float)
        vec.setflags(write=False)
        self._vector = vec

    @property
    def vector(self) -> np.ndarray:
        return self._vector

    def __array__(self, dtype=None, copy=None) -> np.ndarray:
        if dtype is None:
            return self._vector
        return self._vector.astype(dtype)

    def __repr__(self) -> str:
        return f"VectorRef({self._vector.tolist()})"


class VectorRepository:
    """Value-keyed store of ``VectorRef`` handles."""

    def __init__(self) -> None:
        self._refs: weakref.WeakValueDictionary[tuple[float, ...], VectorRef] = (
            weakref.WeakValueDictionary()
        )

    def get(self, vector: Sequence[float] | np.ndarray) -> VectorRef:
        """Return the handle for ``vector``, creating it if needed."""
        key = tuple(float(c) for c in vector)
        ref = self._refs.get(key)
        if ref is None:
            ref = VectorRef(np.array(key))
            self._refs[key] = ref
        return ref

    def __len__(self) -> int:
        return len(self._refs)

    def __contains__(self, vector: Sequence[float] | np.ndarray) -> bool:
        return tuple(float(c) for c in vector) in self._refs


default_repository = VectorRepository()
