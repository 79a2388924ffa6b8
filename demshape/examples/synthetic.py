from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np

PRESETS = ("flat", "ramp", "crater", "hole")


def _grid(scale: float) -> Tuple[np.ndarray, np.ndarray]:
    """Pixel-centre latitude/longitude grids of a global simple-cylindrical raster."""
    n_lines = int(round(180.0 * scale))
    n_samples = int(round(360.0 * scale))
    lat = 90.0 - (np.arange(n_lines, dtype=np.float64) + 0.5) / scale
    lon = (np.arange(n_samples, dtype=np.float64) + 0.5) / scale
    return np.meshgrid(lat, lon, indexing="ij")


def _flat(lat: np.ndarray, radius_m: float) -> np.ndarray:
    return np.full(lat.shape, radius_m, dtype=np.float64)


def _ramp(lon: np.ndarray, radius_m: float, relief_m: float) -> np.ndarray:
    # rises linearly with longitude, one step back down at the 0/360 seam
    return radius_m + relief_m * (lon / 360.0)


def _crater(lat: np.ndarray, lon: np.ndarray, radius_m: float, relief_m: float,
            center: Tuple[float, float] = (0.0, 180.0), rim_deg: float = 20.0) -> np.ndarray:
    clat, clon = np.radians(center[0]), np.radians(center[1])
    la, lo = np.radians(lat), np.radians(lon)
    cos_d = np.sin(la) * np.sin(clat) + np.cos(la) * np.cos(clat) * np.cos(lo - clon)
    dist_deg = np.degrees(np.arccos(np.clip(cos_d, -1.0, 1.0)))
    r = dist_deg / rim_deg
    bowl = np.where(r < 1.0, -relief_m * (1.0 - r**2), 0.0)
    rim = 0.25 * relief_m * np.exp(-((r - 1.0) / 0.15) ** 2)
    return radius_m + bowl + rim


def generate_dem(
    preset: str,
    path: Path,
    radius_km: float = 3396.19,
    scale: float = 1.0,
    relief_m: float = 5000.0,
    nodata: float = -32768.0,
) -> Path:
    """Write a synthetic global DEM (radii in metres) to ``path`` as ``.npz``.

    The archive carries its own label (``scale``, ``max_lat``, ``min_lon``,
    ``nodata``) so it loads without a mapping override.
    """
    preset = preset.lower()
    if scale <= 0:
        raise ValueError("scale must be positive")
    lat, lon = _grid(scale)
    radius_m = radius_km * 1000.0

    if preset == "flat":
        values = _flat(lat, radius_m)
    elif preset == "ramp":
        values = _ramp(lon, radius_m, relief_m)
    elif preset == "crater":
        values = _crater(lat, lon, radius_m, relief_m)
    elif preset == "hole":
        values = _flat(lat, radius_m)
        # no-data patch around the sub-observer point of the default scenarios
        values[(np.abs(lat) < 10.0) & ((lon < 10.0) | (lon > 350.0))] = nodata
    else:
        raise ValueError(f"Unknown synthetic DEM preset '{preset}'.")

    path = Path(path)
    if path.suffix.lower() != ".npz":
        path = path.with_suffix(".npz")
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        values=values.astype(np.float64),
        nodata=np.float64(nodata),
        scale=np.float64(scale),
        max_lat=np.float64(90.0),
        min_lon=np.float64(0.0),
    )
    return path
