"""Rectangular outer boundary of the computational domain.

Each axis is either ``"rigid"`` (points are mirrored across the wall to
build ghost points) or ``"periodic"`` (points are translated by the box
length).
"""

from __future__ import annotations

from itertools import product

import numpy as np

BOUNDARY_KINDS = ("rigid", "periodic")


class SquareBox:
    """Axis-aligned box ``[x_lo, x_hi] x [y_lo, y_hi]``.

    Args:
        lower_left: (x_lo, y_lo).
        upper_right: (x_hi, y_hi).
        x_kind: Boundary kind along x.
        y_kind: Boundary kind along y.
    """

    def __init__(
        self,
        lower_left=(0.0, 0.0),
        upper_right=(1.0, 1.0),
        x_kind: str = "rigid",
        y_kind: str = "rigid",
    ) -> None:
        self.lower_left = np.asarray(lower_left, dtype=float)
        self.upper_right = np.asarray(upper_right, dtype=float)
        if np.any(self.upper_right <= self.lower_left):
            raise ValueError(
                f"upper_right {self.upper_right.tolist()} must exceed "
                f"lower_left {self.lower_left.tolist()}"
            )
        for kind in (x_kind, y_kind):
            if kind not in BOUNDARY_KINDS:
                raise ValueError(f"boundary kind must be 'rigid' or 'periodic', got '{kind}'")
        self.kinds = (x_kind, y_kind)

    @property
    def lengths(self) -> np.ndarray:
        return self.upper_right - self.lower_left

    def is_periodic(self, axis: int) -> bool:
        return self.kinds[axis] == "periodic"

    def contains(self, point: np.ndarray, margin: float = 0.0) -> bool:
        """True if ``point`` lies strictly inside, at least ``margin`` from every rigid wall.

        Periodic axes only require the point to lie within the box.
        """
        p = np.asarray(point, dtype=float)
        for axis in range(2):
            lo = self.lower_left[axis]
            hi = self.upper_right[axis]
            if self.is_periodic(axis):
                if not lo <= p[axis] < hi:
                    return False
            elif not lo + margin < p[axis] < hi - margin:
                return False
        return True

    def wrap(self, point: np.ndarray) -> np.ndarray:
        """Map ``point`` into the box along periodic axes."""
        p = np.array(point, dtype=float)
        for axis in range(2):
            if self.is_periodic(axis):
                lo = self.lower_left[axis]
                p[axis] = lo + np.mod(p[axis] - lo, self.lengths[axis])
        return p

    def image(self, points: np.ndarray, shift: tuple[int, int]) -> np.ndarray:
        """Image of ``points`` in the neighbouring box ``shift`` (each entry in {-1, 0, 1})."""
        out = np.array(points, dtype=float, copy=True)
        for axis, s in enumerate(shift):
            if s == 0:
                continue
            if self.is_periodic(axis):
                out[:, axis] += s * self.lengths[axis]
            else:
                wall = self.upper_right[axis] if s > 0 else self.lower_left[axis]
                out[:, axis] = 2.0 * wall - out[:, axis]
        return out

    def image_shifts(self) -> list[tuple[int, int]]:
        """The eight neighbouring boxes used to surround the real points."""
        return [s for s in product((-1, 0, 1), repeat=2) if s != (0, 0)]

    def is_periodic_shift(self, shift: tuple[int, int]) -> bool:
        """True if ``shift`` only crosses periodic sides (a pure translation)."""
        return all(s == 0 or self.is_periodic(axis) for axis, s in enumerate(shift))

    def periodic_offsets(self) -> list[np.ndarray]:
        """Translation vectors relating periodic copies of the domain, (0, 0) first."""
        ranges = [(-1, 0, 1) if self.is_periodic(axis) else (0,) for axis in range(2)]
        offsets = [np.array(s, dtype=float) * self.lengths for s in product(*ranges)]
        offsets.sort(key=lambda v: float(np.abs(v).sum()))
        return offsets

    def __repr__(self) -> str:
        return (
            f"SquareBox(lower_left={self.lower_left.tolist()}, "
            f"upper_right={self.upper_right.tolist()}, kinds={self.kinds})"
        )
