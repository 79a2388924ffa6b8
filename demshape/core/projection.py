from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class SimpleCylindrical:
    """Equirectangular lat/lon <-> pixel mapping for a DEM raster.

    Pixel centres sit on integer 0-based (sample, line) coordinates; the
    upper-left corner of pixel (0, 0) is at (max_lat, min_lon).
    """
    scale: float          # pixels per degree
    max_lat: float = 90.0
    min_lon: float = 0.0

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise ValueError("Projection scale (pixels/degree) must be positive.")

    def normalize_lon(self, lon_deg: float) -> float:
        return self.min_lon + (lon_deg - self.min_lon) % 360.0

    def to_pixel(self, lat_deg: float, lon_deg: float) -> tuple[float, float]:
        x = (self.normalize_lon(lon_deg) - self.min_lon) * self.scale - 0.5
        y = (self.max_lat - lat_deg) * self.scale - 0.5
        return x, y

    def to_ground(self, x: float, y: float) -> tuple[float, float]:
        lon = self.min_lon + (x + 0.5) / self.scale
        lat = self.max_lat - (y + 0.5) / self.scale
        return lat, lon

    def wraps(self, n_samples: int) -> bool:
        """True when the raster spans the full 360 degrees of longitude."""
        return abs(n_samples / self.scale - 360.0) < 0.5 / self.scale
