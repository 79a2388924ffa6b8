from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .utils import as_vec3


@dataclass
class Ray:
    origin: np.ndarray      # (3,) km, body-fixed
    direction: np.ndarray   # (3,) not normalised; |direction| scales t

    def __post_init__(self) -> None:
        self.origin = as_vec3(self.origin)
        self.direction = as_vec3(self.direction)
        if not np.all(np.isfinite(self.origin)) or not np.all(np.isfinite(self.direction)):
            raise ValueError("Ray origin and direction must be finite.")
        if not np.any(self.direction):
            raise ValueError("Ray direction must be non-zero.")

    def point_at(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction

    def parameter_of(self, point: np.ndarray) -> float:
        """Ray parameter of the orthogonal projection of ``point`` onto the ray."""
        d = self.direction
        return float(np.dot(np.asarray(point, dtype=np.float64) - self.origin, d) / np.dot(d, d))

    def distance_km(self, t: float) -> float:
        """Physical range (km) from the origin to ``point_at(t)``."""
        return abs(t) * float(np.linalg.norm(self.direction))
