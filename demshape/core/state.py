from __future__ import annotations
from typing import Callable, Optional
import numpy as np


class IntersectionState:
    """Current surface point of one ray, with a lazily computed resolution.

    The resolution (m/pixel) depends on the point, so it is dropped whenever
    the point changes and recomputed on the next request.
    """
    def __init__(self, resolver: Optional[Callable[[np.ndarray], float]] = None) -> None:
        self._point: Optional[np.ndarray] = None
        self._has_intersection = False
        self._resolution: Optional[float] = None
        self._resolver = resolver

    @property
    def point(self) -> Optional[np.ndarray]:
        return None if self._point is None else self._point.copy()

    @property
    def has_intersection(self) -> bool:
        return self._has_intersection

    def set_intersection(self, point: np.ndarray, resolver: Optional[Callable[[np.ndarray], float]] = None) -> None:
        self._point = np.asarray(point, dtype=np.float64).copy()
        self._has_intersection = True
        self._resolution = None
        if resolver is not None:
            self._resolver = resolver

    def clear(self) -> None:
        self._point = None
        self._has_intersection = False
        self._resolution = None

    def resolution(self) -> Optional[float]:
        if self._point is None or self._resolver is None:
            return None
        if self._resolution is None:
            self._resolution = float(self._resolver(self._point))
        return self._resolution
