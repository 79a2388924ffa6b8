from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Tuple
import numpy as np
import pathlib
import warnings

import laspy  # type: ignore
from .pointcloud import GroundPoints
from .utils import get_logger

_log = get_logger()

# attribute -> (LAS extra dimension name, dtype)
_LAS_EXTRAS: Dict[str, Tuple[str, str]] = {
    "lat_deg": ("Latitude", "float64"),
    "lon_deg": ("Longitude", "float64"),
    "radius_km": ("RadiusKm", "float64"),
    "resolution_m": ("Resolution", "float32"),
    "range_km": ("RangeKm", "float32"),
    "emission_deg": ("EmissionAngle", "float32"),
    "pixel_u": ("pixel_u", "float32"),
    "pixel_v": ("pixel_v", "float32"),
}


@dataclass
class LasWriter:
    """Streaming LAS/LAZ writer using laspy (v2+).

    Coordinates are written in body-fixed metres. The header is created on the
    first batch so the extra dimensions follow the attributes actually present.
    """
    path: str
    point_format: int = 6
    compress: bool = False
    scale: tuple[float, float, float] = (1e-3, 1e-3, 1e-3)

    def __post_init__(self) -> None:
        self._fh: Optional[laspy.LasWriter] = None  # type: ignore
        self._header: Optional[laspy.LasHeader] = None  # type: ignore
        self._defined_extras: Dict[str, Any] = {}

    # -- public API --
    def write_batch(self, batch: GroundPoints) -> None:
        if len(batch) == 0:
            return
        if self._fh is None:
            self._init_header_from_batch(batch)
        assert self._fh is not None and self._header is not None
        self._fh.write_points(self._point_record_from_batch(batch, self._header))

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    # -- internals --
    def _init_header_from_batch(self, batch: GroundPoints) -> None:
        hdr = laspy.LasHeader(point_format=laspy.PointFormat(self.point_format), version="1.4")
        hdr.scales = self.scale
        mn = np.min(batch.xyz * 1000.0, axis=0)
        hdr.offsets = (float(mn[0]), float(mn[1]), float(mn[2]))

        extras: List[laspy.ExtraBytesParams] = []
        for key, (name, dtype) in _LAS_EXTRAS.items():
            if key in batch.attrs:
                extras.append(laspy.ExtraBytesParams(name=name, type=dtype))
        if "normal" in batch.attrs:
            for axis in ("X", "Y", "Z"):
                extras.append(laspy.ExtraBytesParams(name=f"Normal{axis}", type="float32"))
        for p in extras:
            hdr.add_extra_dim(p)
        self._defined_extras = {p.name: p for p in extras}

        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = laspy.open(path, mode="w", header=hdr, do_compress=self.compress)
        self._header = hdr
        _log.info("Opened %s (PF=%d, compress=%s)", path.name, self.point_format, self.compress)

    def _point_record_from_batch(self, batch: GroundPoints, header: "laspy.LasHeader") -> "laspy.ScaleAwarePointRecord":
        pts = laspy.ScaleAwarePointRecord.zeros(len(batch), header=header)
        xyz_m = batch.xyz * 1000.0
        pts.x = xyz_m[:, 0]
        pts.y = xyz_m[:, 1]
        pts.z = xyz_m[:, 2]

        def set_extra(name: str, values: np.ndarray) -> None:
            if name not in self._defined_extras:
                warnings.warn(f"Extra dimension '{name}' was not declared in header; skipping.")
                return
            pts[name] = values

        for key, (name, dtype) in _LAS_EXTRAS.items():
            if key in batch.attrs:
                set_extra(name, batch.attrs[key].astype(dtype, copy=False))
        if "normal" in batch.attrs:
            nrm = batch.attrs["normal"].astype(np.float32, copy=False)
            set_extra("NormalX", nrm[:, 0])
            set_extra("NormalY", nrm[:, 1])
            set_extra("NormalZ", nrm[:, 2])
        return pts


# Minimal PLY and NPZ writers for testing / debugging
class PlyWriter:
    def __init__(self, path: str) -> None:
        self.path = path
        self._xyz_chunks: List[np.ndarray] = []

    def write_batch(self, batch: GroundPoints) -> None:
        self._xyz_chunks.append(batch.xyz)

    def close(self) -> None:
        if not self._xyz_chunks:
            return
        # ASCII xyz in km, buffered and written once on close
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        xyz = np.vstack(self._xyz_chunks)
        with open(path, "w", encoding="utf-8") as f:
            f.write("ply\nformat ascii 1.0\n")
            f.write("comment body-fixed coordinates in km\n")
            f.write(f"element vertex {len(xyz)}\n")
            f.write("property double x\nproperty double y\nproperty double z\n")
            f.write("end_header\n")
            for x, y, z in xyz:
                f.write(f"{x:.9f} {y:.9f} {z:.9f}\n")
        self._xyz_chunks.clear()


class NpzWriter:
    def __init__(self, path: str) -> None:
        self.path = path
        self._batches: List[GroundPoints] = []

    def write_batch(self, batch: GroundPoints) -> None:
        self._batches.append(batch)

    def close(self) -> None:
        if not self._batches:
            return
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        xyz = np.vstack([b.xyz for b in self._batches])
        all_keys = sorted({k for b in self._batches for k in b.attrs.keys()})
        # (tail_shape, dtype) from the first batch that provides each key
        key_meta: Dict[str, Tuple[Tuple[int, ...], np.dtype]] = {}
        for b in self._batches:
            for k, v in b.attrs.items():
                if k not in key_meta:
                    key_meta[k] = (v.shape[1:], v.dtype)

        out: Dict[str, np.ndarray] = {"xyz_km": xyz}
        for k in all_keys:
            tail_shape, dt = key_meta[k]
            vals: List[np.ndarray] = []
            for b in self._batches:
                if k in b.attrs:
                    vals.append(b.attrs[k].astype(dt, copy=False))
                else:
                    vals.append(np.zeros((len(b),) + tail_shape, dtype=dt))
            out[k] = np.concatenate(vals, axis=0)
        np.savez_compressed(path, **out)
        self._batches.clear()
