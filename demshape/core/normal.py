from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from .ellipsoid import ellipsoid_normal


@dataclass(frozen=True)
class NormalResult:
    normal: np.ndarray   # (3,) unit, or zeros when invalid
    valid: bool


class NormalEstimator:
    """Surface normals at an intersection point."""

    def local_normal(
        self,
        neighbors: Optional[Sequence[np.ndarray]],
        intersection_point: np.ndarray,
    ) -> NormalResult:
        """Normal from four neighbouring surface points ordered top, bottom, left, right."""
        if neighbors is None or len(neighbors) == 0:
            return NormalResult(np.zeros(3), False)
        if len(neighbors) != 4:
            raise ValueError(f"Expected 4 neighbour points (top, bottom, left, right), got {len(neighbors)}")

        top, bottom, left, right = (np.asarray(p, dtype=np.float64) for p in neighbors)
        normal = np.cross(top - bottom, right - left)
        mag = float(np.linalg.norm(normal))
        if mag == 0.0 or not np.isfinite(mag):
            return NormalResult(np.zeros(3), False)
        normal = normal / mag

        # outward: same hemisphere as the radius vector
        center = np.asarray(intersection_point, dtype=np.float64)
        center_mag = float(np.linalg.norm(center))
        if center_mag > 0.0 and np.dot(normal, center / center_mag) < 0.0:
            normal = -normal
        return NormalResult(normal, True)

    def default_normal(self, point: np.ndarray, radii_km: Sequence[float]) -> NormalResult:
        return NormalResult(ellipsoid_normal(point, radii_km), True)
