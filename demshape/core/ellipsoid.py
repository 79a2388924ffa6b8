from __future__ import annotations
import math
from typing import Optional, Sequence
import numpy as np


def surface_point(origin: np.ndarray, direction: np.ndarray, radii: Sequence[float]) -> Optional[np.ndarray]:
    """Nearest intersection of a ray with a tri-axial ellipsoid centred at the origin.

    Returns ``None`` when the ray misses or points away from the body. An
    origin inside the ellipsoid yields the exit point.
    """
    r = np.asarray(radii, dtype=np.float64)
    o = np.asarray(origin, dtype=np.float64) / r
    d = np.asarray(direction, dtype=np.float64) / r

    # |o + t d|^2 = 1  ->  a t^2 + 2 b t + c = 0
    a = float(np.dot(d, d))
    b = float(np.dot(o, d))
    c = float(np.dot(o, o)) - 1.0
    disc = b * b - a * c
    if a == 0.0 or disc < 0.0:
        return None
    root = math.sqrt(disc)
    if c > 0.0 or (c == 0.0 and b < 0.0):
        if b >= 0.0:
            return None
        t = c / (root - b)
    else:
        t = (root - b) / a
    return np.asarray(origin, dtype=np.float64) + t * np.asarray(direction, dtype=np.float64)


def ellipsoid_normal(point: np.ndarray, radii: Sequence[float]) -> np.ndarray:
    """Outward unit normal of the ellipsoid at (or near) ``point``."""
    r = np.asarray(radii, dtype=np.float64)
    n = np.asarray(point, dtype=np.float64) / (r * r)
    mag = float(np.linalg.norm(n))
    if mag == 0.0:
        raise ValueError("Ellipsoid normal is undefined at the body centre.")
    return n / mag


class EllipsoidApproximator:
    """Ray intersection with a sphere standing in for the local DEM surface.

    The radius estimate is applied equally to all three axes. This isotropic
    approximation is kept on purpose: both the initial guess and the
    fixed-point refinement converge against it.
    """

    def intersect(self, origin: np.ndarray, direction: np.ndarray, radius: float) -> Optional[np.ndarray]:
        if not math.isfinite(radius) or radius <= 0.0:
            return None
        return surface_point(origin, direction, (radius, radius, radius))
