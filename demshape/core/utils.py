from __future__ import annotations
import numpy as np
import math
import logging

def get_logger(name: str = "demshape") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def ensure_unit_vectors(v: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    norms = np.linalg.norm(v, axis=1, keepdims=True)
    norms = np.clip(norms, eps, None)
    return v / norms

def as_vec3(v) -> np.ndarray:
    arr = np.asarray(v, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {np.shape(v)}")
    return arr

def lat_lon_from_point(point: np.ndarray) -> tuple[float, float]:
    """Planetocentric latitude and positive-east longitude in [0, 360), degrees.

    Closed form on purpose: this sits in the innermost refinement loop.
    """
    x, y, z = float(point[0]), float(point[1]), float(point[2])
    lat = math.degrees(math.atan2(z, math.sqrt(x * x + y * y)))
    lon = math.degrees(math.atan2(y, x))
    if lon < 0.0:
        lon += 360.0
    return lat, lon

def point_from_lat_lon(lat_deg: float, lon_deg: float, radius_km: float) -> np.ndarray:
    lat = math.radians(lat_deg)
    lon = math.radians(lon_deg)
    return np.array([
        radius_km * math.cos(lat) * math.cos(lon),
        radius_km * math.cos(lat) * math.sin(lon),
        radius_km * math.sin(lat),
    ], dtype=np.float64)
