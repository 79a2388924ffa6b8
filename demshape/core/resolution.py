from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol
import numpy as np


class ResolutionModel(Protocol):
    def resolution(self, observer: np.ndarray, point: np.ndarray) -> float: ...


@dataclass(frozen=True)
class AngularResolution:
    """Ground sample distance (m/pixel) from an angular pixel size."""
    ifov_rad: float

    def __post_init__(self) -> None:
        if self.ifov_rad <= 0:
            raise ValueError("ifov_rad must be positive")

    def resolution(self, observer: np.ndarray, point: np.ndarray) -> float:
        distance_km = float(np.linalg.norm(np.asarray(point, dtype=np.float64) - np.asarray(observer, dtype=np.float64)))
        return distance_km * 1000.0 * self.ifov_rad


@dataclass(frozen=True)
class FixedResolution:
    m_per_pixel: float

    def __post_init__(self) -> None:
        if self.m_per_pixel <= 0:
            raise ValueError("m_per_pixel must be positive")

    def resolution(self, observer: np.ndarray, point: np.ndarray) -> float:
        return self.m_per_pixel
