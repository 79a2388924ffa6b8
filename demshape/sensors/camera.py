from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np

from ..core.resolution import AngularResolution
from ..core.utils import as_vec3, ensure_unit_vectors


def look_at_rotation(position: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    """Camera-to-body rotation whose boresight (+Z) points from position to target.

    Columns are the camera X (image right), Y (image down) and Z (boresight)
    axes expressed in the body-fixed frame.
    """
    forward = as_vec3(target) - as_vec3(position)
    if not np.any(forward):
        raise ValueError("Camera position and look-at target coincide.")
    forward = forward / np.linalg.norm(forward)
    right = np.cross(forward, as_vec3(up))
    if np.linalg.norm(right) < 1e-12:
        raise ValueError("Camera up vector is parallel to the boresight.")
    right = right / np.linalg.norm(right)
    down = np.cross(forward, right)
    return np.column_stack([right, down, forward])


@dataclass
class PixelRays:
    origin: np.ndarray        # (3,) km
    directions: np.ndarray    # (M, 3) unit, body-fixed
    pixel_u: np.ndarray       # (M,)
    pixel_v: np.ndarray       # (M,)


@dataclass
class FramingCamera:
    """Pinhole framing camera placed in the body-fixed frame.

    Also serves as the resolution model of the DEM intersection: the ground
    sample distance is range times the angular size of one pixel.
    """
    position_km: np.ndarray
    resolution_px: tuple[int, int]
    focal_px: tuple[float, float]
    principal_px: Optional[tuple[float, float]] = None
    rotation: Optional[np.ndarray] = None
    look_at_km: np.ndarray = field(default_factory=lambda: np.zeros(3))
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    pixel_stride: int = 1
    batch_rows: int = 64

    def __post_init__(self) -> None:
        width, height = self.resolution_px
        if width <= 0 or height <= 0:
            raise ValueError("resolution_px must be positive")
        if self.focal_px[0] <= 0 or self.focal_px[1] <= 0:
            raise ValueError("focal_px must be positive")
        if self.pixel_stride <= 0:
            raise ValueError("pixel_stride must be positive")
        self.position_km = as_vec3(self.position_km)
        self.width = int(width)
        self.height = int(height)
        self.fx = float(self.focal_px[0])
        self.fy = float(self.focal_px[1])
        if self.principal_px is None:
            self.cx = (self.width - 1) / 2.0
            self.cy = (self.height - 1) / 2.0
        else:
            self.cx = float(self.principal_px[0])
            self.cy = float(self.principal_px[1])
        if self.rotation is None:
            self.rotation = look_at_rotation(self.position_km, self.look_at_km, self.up)
        else:
            self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)

    @property
    def ifov_rad(self) -> float:
        return 2.0 / (self.fx + self.fy)

    def resolution(self, observer: np.ndarray, point: np.ndarray) -> float:
        return AngularResolution(self.ifov_rad).resolution(observer, point)

    def directions_from_pixels(self, pixels: np.ndarray) -> np.ndarray:
        uv = np.asarray(pixels, dtype=np.float64).reshape(-1, 2)
        x = (uv[:, 0] - self.cx) / self.fx
        y = (uv[:, 1] - self.cy) / self.fy
        z = np.ones_like(x)
        dirs_cam = np.column_stack([x, y, z])
        return ensure_unit_vectors((self.rotation @ dirs_cam.T).T)

    def ray_batches(self) -> Iterable[PixelRays]:
        us = np.arange(0, self.width, self.pixel_stride, dtype=np.float64)
        vs = np.arange(0, self.height, self.pixel_stride, dtype=np.float64)
        for start in range(0, len(vs), max(int(self.batch_rows), 1)):
            uu, vv = np.meshgrid(us, vs[start:start + self.batch_rows], indexing="xy")
            uu = uu.reshape(-1)
            vv = vv.reshape(-1)
            yield PixelRays(
                origin=self.position_km.copy(),
                directions=self.directions_from_pixels(np.column_stack([uu, vv])),
                pixel_u=uu.astype(np.float32, copy=False),
                pixel_v=vv.astype(np.float32, copy=False),
            )
