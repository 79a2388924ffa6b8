from __future__ import annotations
import math
from typing import Literal, Optional, Sequence
import numpy as np

from .projection import SimpleCylindrical
from .raster import DemRaster
from .utils import get_logger

_log = get_logger()

ValueKind = Literal["radius", "height"]


class ElevationField:
    """Local radius lookup over a DEM raster.

    Raster values are metres, either planetary radii or heights above
    ``reference_radius_km``. Lookups bilinearly interpolate a 2x2 window and
    return ``None`` when any of the four pixels is no-data.

    Not re-entrant: the raster cache is shared state, so keep one field per
    thread.
    """
    PROBE_GRID = 5

    def __init__(
        self,
        raster: DemRaster,
        target_radii_km: Sequence[float],
        projection: Optional[SimpleCylindrical] = None,
        value_kind: ValueKind = "radius",
        reference_radius_km: Optional[float] = None,
    ) -> None:
        projection = projection if projection is not None else raster.mapping
        if projection is None:
            raise ValueError("ElevationField requires a map projection (none in the DEM label).")
        if value_kind not in ("radius", "height"):
            raise ValueError(f"Unknown DEM value kind '{value_kind}'")
        if value_kind == "height" and reference_radius_km is None:
            raise ValueError("value_kind='height' requires reference_radius_km.")
        radii = tuple(float(r) for r in target_radii_km)
        if len(radii) != 3 or min(radii) <= 0:
            raise ValueError("target_radii_km must be three positive radii.")

        self.raster = raster
        self.projection = projection
        self.value_kind = value_kind
        self.reference_radius_km = reference_radius_km
        self.target_radii_km = radii
        self._wrap = projection.wraps(raster.sample_count)
        self._dem_value: Optional[float] = None

    def dem_scale(self) -> float:
        return self.projection.scale

    def _to_radius_km(self, value_m: float) -> Optional[float]:
        if not math.isfinite(value_m):
            return None
        radius = value_m / 1000.0
        if self.value_kind == "height":
            radius += float(self.reference_radius_km)
        if radius <= 0.0:
            return None
        return radius

    def local_radius(self, lat: Optional[float], lon: Optional[float]) -> Optional[float]:
        if lat is None or lon is None or not (math.isfinite(lat) and math.isfinite(lon)):
            return None
        x, y = self.projection.to_pixel(lat, lon)
        s0 = math.floor(x)
        l0 = math.floor(y)
        window = self.raster.read_window(s0, l0, 2, 2, wrap_samples=self._wrap)
        if np.isnan(window).any():
            return None
        fx = x - s0
        fy = y - l0
        top = window[0, 0] * (1.0 - fx) + window[0, 1] * fx
        bottom = window[1, 0] * (1.0 - fx) + window[1, 1] * fx
        return self._to_radius_km(top * (1.0 - fy) + bottom * fy)

    def find_dem_value(self) -> float:
        """Representative DEM radius (km) used to seed the first intersection.

        Probes a coarse interior grid in scan order and returns the first valid
        sample, else the mean target radius. Cached after the first call.
        """
        if self._dem_value is not None:
            return self._dem_value

        n_s = self.raster.sample_count
        n_l = self.raster.line_count
        s_step = max(n_s // (self.PROBE_GRID + 1), 1)
        l_step = max(n_l // (self.PROBE_GRID + 1), 1)
        for line in range(l_step, n_l - l_step + 1, l_step):
            for sample in range(s_step, n_s - s_step + 1, s_step):
                radius = self._to_radius_km(self.raster.read_pixel(sample - 1, line - 1))
                if radius is not None:
                    _log.debug("DEM probe hit at sample=%d line=%d: %.6f km", sample, line, radius)
                    self._dem_value = radius
                    return radius

        self._dem_value = sum(self.target_radii_km) / 3.0
        _log.debug("No valid DEM probe; using mean target radius %.6f km", self._dem_value)
        return self._dem_value
