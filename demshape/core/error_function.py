from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import numpy as np

from .elevation import ElevationField
from .ray import Ray
from .utils import get_logger, lat_lon_from_point

_log = get_logger()

NO_DATA_ERROR = -1.0


@dataclass(frozen=True)
class EvalResult:
    t: float
    point: np.ndarray
    error: float             # km, point radius minus DEM radius
    success: bool
    lat: float
    lon: float
    surface_radius: Optional[float] = None


class RayRadiusErrorFunction:
    """Signed radial gap between a point on the ray and the DEM below it.

    Pure: evaluating never touches the shape's intersection state.
    """
    def __init__(self, field: ElevationField) -> None:
        self.field = field

    def evaluate(self, ray: Ray, t: float) -> EvalResult:
        point = ray.point_at(t)
        point_radius = float(np.linalg.norm(point))
        lat, lon = lat_lon_from_point(point)
        surface = self.field.local_radius(lat, lon)
        if surface is None:
            _log.debug("error(t=%.9f): no DEM data at lat=%.6f lon=%.6f", t, lat, lon)
            return EvalResult(t=t, point=point, error=NO_DATA_ERROR, success=False, lat=lat, lon=lon)
        err = point_radius - surface
        _log.debug("error(t=%.9f): surface=%.9f point=%.9f diff=%.3e km", t, surface, point_radius, err)
        return EvalResult(t=t, point=point, error=err, success=True, lat=lat, lon=lon, surface_radius=surface)

    __call__ = evaluate
