"""Numba kernels for convex polygons in the plane.

Polygons are arrays of shape (n, 2) listing vertices counter-clockwise.
Voronoi cells are convex, so clipping one cell against another uses the
Sutherland-Hodgman algorithm, which is exact for a convex clip window.
"""

from __future__ import annotations

import numpy as np
from numba import njit


@njit(cache=True)
def _cross(ux: float, uy: float, vx: float, vy: float) -> float:
    return ux * vy - uy * vx


@njit(cache=True)
def polygon_area_centroid(poly: np.ndarray) -> tuple[float, float, float]:
    """Signed area and centroid of a simple polygon (shoelace formula).

    Args:
        poly: Vertices, shape (n, 2).

    Returns:
        ``(area, cx, cy)``. Area is positive for counter-clockwise order.
        For a degenerate polygon the centroid is the vertex mean.
    """
    n = poly.shape[0]
    area2 = 0.0
    cx = 0.0
    cy = 0.0
    for i in range(n):
        j = (i + 1) % n
        c = poly[i, 0] * poly[j, 1] - poly[j, 0] * poly[i, 1]
        area2 += c
        cx += (poly[i, 0] + poly[j, 0]) * c
        cy += (poly[i, 1] + poly[j, 1]) * c
    if n == 0:
        return 0.0, 0.0, 0.0
    if abs(area2) < 1e-300:
        mx = 0.0
        my = 0.0
        for i in range(n):
            mx += poly[i, 0]
            my += poly[i, 1]
        return 0.0, mx / n, my / n
    return 0.5 * area2, cx / (3.0 * area2), cy / (3.0 * area2)


@njit(cache=True)
def clip_convex_polygon(subject: np.ndarray, clip: np.ndarray) -> np.ndarray:
    """Intersection of ``subject`` with the convex polygon ``clip``.

    Both polygons must be counter-clockwise. Returns an (m, 2) array,
    possibly empty.
    """
    n_clip = clip.shape[0]
    n_max = subject.shape[0] + n_clip + 1
    buf = np.empty((n_max, 2))
    count = subject.shape[0]
    buf[:count] = subject

    for k in range(n_clip):
        if count == 0:
            break
        ax = clip[k, 0]
        ay = clip[k, 1]
        ex = clip[(k + 1) % n_clip, 0] - ax
        ey = clip[(k + 1) % n_clip, 1] - ay
        out = np.empty((n_max, 2))
        m = 0
        for i in range(count):
            prev = i - 1 if i > 0 else count - 1
            px = buf[prev, 0]
            py = buf[prev, 1]
            qx = buf[i, 0]
            qy = buf[i, 1]
            prev_in = _cross(ex, ey, px - ax, py - ay) >= 0.0
            cur_in = _cross(ex, ey, qx - ax, qy - ay) >= 0.0
            if cur_in != prev_in:
                dx = qx - px
                dy = qy - py
                denom = _cross(ex, ey, dx, dy)
                if denom != 0.0:
                    t = _cross(ex, ey, ax - px, ay - py) / denom
                else:
                    t = 1.0
                out[m, 0] = px + t * dx
                out[m, 1] = py + t * dy
                m += 1
            if cur_in:
                out[m, 0] = qx
                out[m, 1] = qy
                m += 1
        buf = out
        count = m

    return buf[:count].copy()


@njit(cache=True)
def overlap_area_centroid(a: np.ndarray, b: np.ndarray) -> tuple[float, float, float]:
    """Area and centroid of the intersection of two convex polygons."""
    inter = clip_convex_polygon(a, b)
    if inter.shape[0] < 3:
        return 0.0, 0.0, 0.0
    area, cx, cy = polygon_area_centroid(inter)
    return abs(area), cx, cy


@njit(cache=True)
def point_in_convex_polygon(x: float, y: float, poly: np.ndarray) -> bool:
    """True if (x, y) lies inside or on a counter-clockwise convex polygon."""
    n = poly.shape[0]
    for k in range(n):
        ax = poly[k, 0]
        ay = poly[k, 1]
        ex = poly[(k + 1) % n, 0] - ax
        ey = poly[(k + 1) % n, 1] - ay
        if _cross(ex, ey, x - ax, y - ay) < 0.0:
            return False
    return True


@njit(cache=True)
def distance_to_polygon_boundary(x: float, y: float, poly: np.ndarray) -> float:
    """Shortest distance from (x, y) to the closed polyline ``poly``."""
    n = poly.shape[0]
    best = np.inf
    for k in range(n):
        ax = poly[k, 0]
        ay = poly[k, 1]
        ex = poly[(k + 1) % n, 0] - ax
        ey = poly[(k + 1) % n, 1] - ay
        length2 = ex * ex + ey * ey
        t = 0.0
        if length2 > 0.0:
            t = ((x - ax) * ex + (y - ay) * ey) / length2
            t = min(1.0, max(0.0, t))
        dx = ax + t * ex - x
        dy = ay + t * ey - y
        d = (dx * dx + dy * dy) ** 0.5
        if d < best:
            best = d
    return best


def order_counter_clockwise(points: np.ndarray) -> np.ndarray:
    """Sort the vertices of a convex polygon counter-clockwise."""
    pts = np.asarray(points, dtype=float)
    center = pts.mean(axis=0)
    angles = np.arctan2(pts[:, 1] - center[1], pts[:, 0] - center[0])
    return pts[np.argsort(angles)]
