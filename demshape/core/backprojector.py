from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional
import numpy as np

from .pointcloud import GroundPoints
from .refiners import FailureReason
from .shape import DemShape
from .utils import get_logger, lat_lon_from_point
from ..sensors.camera import FramingCamera, PixelRays

_log = get_logger()

NormalMode = Literal["none", "ellipsoid", "local"]


@dataclass
class GroundRange:
    """Latitude, longitude and resolution extent of the back-projected pixels."""
    min_lat: float = float("inf")
    max_lat: float = float("-inf")
    min_lon: float = float("inf")
    max_lon: float = float("-inf")
    highest_resolution_m: float = float("inf")   # finest
    lowest_resolution_m: float = float("-inf")   # coarsest

    @property
    def empty(self) -> bool:
        return self.min_lat > self.max_lat

    def update(self, lat: np.ndarray, lon: np.ndarray, resolution_m: np.ndarray) -> None:
        if len(lat) == 0:
            return
        self.min_lat = min(self.min_lat, float(np.min(lat)))
        self.max_lat = max(self.max_lat, float(np.max(lat)))
        self.min_lon = min(self.min_lon, float(np.min(lon)))
        self.max_lon = max(self.max_lon, float(np.max(lon)))
        self.highest_resolution_m = min(self.highest_resolution_m, float(np.min(resolution_m)))
        self.lowest_resolution_m = max(self.lowest_resolution_m, float(np.max(resolution_m)))

    def to_dict(self) -> Dict[str, Optional[float]]:
        keys = ("min_lat", "max_lat", "min_lon", "max_lon", "highest_resolution_m", "lowest_resolution_m")
        if self.empty:
            return {k: None for k in keys}
        return {k: getattr(self, k) for k in keys}


@dataclass
class BackprojectorConfig:
    normals: NormalMode = "ellipsoid"


class Backprojector:
    """Maps camera pixels to DEM surface points.

    Each pixel ray goes through ``DemShape.intersect_surface``; hits are
    collected per camera batch into ``GroundPoints`` and streamed to a writer.
    With ``normals="local"`` the four neighbouring pixels (one pixel away) are
    intersected as well and the DEM-local normal replaces the ellipsoid one.
    """
    def __init__(self, shape: DemShape, camera: FramingCamera, cfg: Optional[BackprojectorConfig] = None) -> None:
        self.shape = shape
        self.camera = camera
        self.cfg = cfg or BackprojectorConfig()
        self.ground_range = GroundRange()
        self._failures: Dict[FailureReason, int] = {}

    def _neighbor_points(self, u: float, v: float) -> Optional[List[np.ndarray]]:
        offsets = ((0.0, -1.0), (0.0, 1.0), (-1.0, 0.0), (1.0, 0.0))  # top, bottom, left, right
        pixels = np.array([[u + du, v + dv] for du, dv in offsets], dtype=np.float64)
        dirs = self.camera.directions_from_pixels(pixels)
        points: List[np.ndarray] = []
        for d in dirs:
            if not self.shape.intersect_surface(self.camera.position_km, d):
                return None
            points.append(self.shape.surface_intersection)
        return points

    def _record_failure(self) -> None:
        report = self.shape.last_report
        reason = report.reason if report is not None and report.reason is not None else FailureReason.NO_DATA
        self._failures[reason] = self._failures.get(reason, 0) + 1

    def backproject(self, rays: PixelRays) -> GroundPoints:
        xyz: List[np.ndarray] = []
        lat: List[float] = []
        lon: List[float] = []
        res: List[float] = []
        normals: List[np.ndarray] = []
        keep: List[int] = []

        for i, direction in enumerate(rays.directions):
            neighbors = None
            if self.cfg.normals == "local":
                neighbors = self._neighbor_points(float(rays.pixel_u[i]), float(rays.pixel_v[i]))

            # centre last so the shape state belongs to this pixel
            if not self.shape.intersect_surface(rays.origin, direction):
                self._record_failure()
                continue

            point = self.shape.surface_intersection
            la, lo = lat_lon_from_point(point)
            xyz.append(point)
            lat.append(la)
            lon.append(lo)
            res.append(float(self.shape.resolution()))
            keep.append(i)

            if self.cfg.normals == "local" and neighbors is not None:
                self.shape.calculate_local_normal(neighbors)
                if not self.shape.has_normal:
                    self.shape.calculate_surface_normal()
                normals.append(self.shape.normal)
            elif self.cfg.normals != "none":
                self.shape.calculate_surface_normal()
                normals.append(self.shape.normal)

        if not xyz:
            return GroundPoints(xyz=np.zeros((0, 3)))

        pts = np.vstack(xyz)
        idx = np.asarray(keep, dtype=np.int64)
        attrs: Dict[str, np.ndarray] = {
            "lat_deg": np.asarray(lat, dtype=np.float64),
            "lon_deg": np.asarray(lon, dtype=np.float64),
            "radius_km": np.linalg.norm(pts, axis=1),
            "resolution_m": np.asarray(res, dtype=np.float32),
            "range_km": np.linalg.norm(pts - rays.origin, axis=1).astype(np.float32),
            "pixel_u": rays.pixel_u[idx],
            "pixel_v": rays.pixel_v[idx],
        }
        if normals:
            nrm = np.vstack(normals)
            to_observer = rays.origin - pts
            to_observer /= np.linalg.norm(to_observer, axis=1, keepdims=True)
            cos_e = np.clip(np.einsum("ij,ij->i", nrm, to_observer), -1.0, 1.0)
            attrs["normal"] = nrm.astype(np.float32)
            attrs["emission_deg"] = np.degrees(np.arccos(cos_e)).astype(np.float32)

        self.ground_range.update(attrs["lat_deg"], attrs["lon_deg"], attrs["resolution_m"])
        return GroundPoints(xyz=pts, attrs=attrs)

    def run_to_writer(self, writer, ray_batches: Optional[Iterable[PixelRays]] = None) -> Dict[str, Any]:
        """Stream: for each pixel batch -> intersect -> GroundPoints -> write.

        Returns run statistics.
        """
        if ray_batches is None:
            ray_batches = self.camera.ray_batches()

        total_rays = 0
        total_points = 0
        for rays in ray_batches:
            total_rays += len(rays.directions)
            batch = self.backproject(rays)
            if len(batch) == 0:
                continue
            writer.write_batch(batch)
            total_points += len(batch)

        writer.close()
        stats: Dict[str, Any] = {
            "rays": total_rays,
            "points": total_points,
            "misses": total_rays - total_points,
            "failures": {reason.value: count for reason, count in sorted(self._failures.items(), key=lambda kv: kv[0].value)},
        }
        _log.info("Backprojection finished: %d rays -> %d points (%d misses)", total_rays, total_points, stats["misses"])
        return stats
