from __future__ import annotations
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Tuple
import numpy as np

from .projection import SimpleCylindrical
from .utils import get_logger

_log = get_logger()

WindowKey = Tuple[int, int, int, int, bool]


class UniqueReadCache:
    """Keeps the most recent unique window reads.

    Refinement revisits nearby pixels out of order, so a history of distinct
    windows beats a purely sequential or regional cache.
    """
    def __init__(self, capacity: int = 5) -> None:
        if capacity <= 0:
            raise ValueError("Cache capacity must be positive.")
        self.capacity = int(capacity)
        self._entries: "OrderedDict[WindowKey, np.ndarray]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: WindowKey) -> Optional[np.ndarray]:
        arr = self._entries.get(key)
        if arr is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return arr

    def put(self, key: WindowKey, arr: np.ndarray) -> None:
        self._entries[key] = arr
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class DemRaster:
    """Read-only elevation grid addressed by 0-based (sample, line).

    Values are metres. Pixels equal to ``nodata``, non-finite pixels and
    pixels outside the grid read back as NaN.
    """
    def __init__(
        self,
        values: np.ndarray,
        nodata: Optional[float] = None,
        mapping: Optional[SimpleCylindrical] = None,
        cache: Optional[UniqueReadCache] = None,
        path: str | Path | None = None,
    ) -> None:
        if values.ndim != 2:
            raise ValueError(f"DEM raster must be 2-D, got shape {values.shape}")
        self._values = values
        self.nodata = None if nodata is None else float(nodata)
        self.mapping = mapping
        self.cache = cache
        self.path = Path(path) if path is not None else None

    @property
    def line_count(self) -> int:
        return int(self._values.shape[0])

    @property
    def sample_count(self) -> int:
        return int(self._values.shape[1])

    def read_window(self, sample: int, line: int, ns: int, nl: int, wrap_samples: bool = False) -> np.ndarray:
        """Return an (nl, ns) float64 window whose upper-left pixel is (sample, line)."""
        key: WindowKey = (int(sample), int(line), int(ns), int(nl), bool(wrap_samples))
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        out = np.full((nl, ns), np.nan, dtype=np.float64)
        samples = np.arange(sample, sample + ns)
        if wrap_samples:
            samples = samples % self.sample_count
        lines = np.arange(line, line + nl)
        s_ok = (samples >= 0) & (samples < self.sample_count)
        l_ok = (lines >= 0) & (lines < self.line_count)
        if s_ok.any() and l_ok.any():
            block = np.asarray(self._values[np.ix_(lines[l_ok], samples[s_ok])], dtype=np.float64)
            if self.nodata is not None:
                block = np.where(block == self.nodata, np.nan, block)
            block = np.where(np.isfinite(block), block, np.nan)
            out[np.ix_(l_ok, s_ok)] = block

        if self.cache is not None:
            self.cache.put(key, out)
        return out

    def read_pixel(self, sample: int, line: int) -> float:
        return float(self.read_window(sample, line, 1, 1)[0, 0])


def load_raster(
    path: str | Path,
    nodata: Optional[float] = None,
    mapping: Optional[SimpleCylindrical] = None,
    cache_size: Optional[int] = 5,
) -> DemRaster:
    """Load a DEM from ``.npy`` (memory mapped) or ``.npz``.

    An ``.npz`` may carry its own label: ``nodata``, ``scale``, ``max_lat`` and
    ``min_lon``. Explicit arguments override the label.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    file_nodata: Optional[float] = None
    file_mapping: Optional[SimpleCylindrical] = None
    if suffix == ".npy":
        values = np.load(path, mmap_mode="r")
    elif suffix == ".npz":
        with np.load(path) as data:
            if "values" not in data:
                raise ValueError(f"{path.name}: .npz DEM must contain a 'values' array.")
            values = np.asarray(data["values"])
            if "nodata" in data:
                file_nodata = float(data["nodata"])
            if "scale" in data:
                file_mapping = SimpleCylindrical(
                    scale=float(data["scale"]),
                    max_lat=float(data["max_lat"]) if "max_lat" in data else 90.0,
                    min_lon=float(data["min_lon"]) if "min_lon" in data else 0.0,
                )
    else:
        raise ValueError(f"Unsupported DEM format '{suffix}' (expected .npy or .npz).")

    cache = UniqueReadCache(cache_size) if cache_size else None
    raster = DemRaster(
        values,
        nodata=nodata if nodata is not None else file_nodata,
        mapping=mapping if mapping is not None else file_mapping,
        cache=cache,
        path=path,
    )
    _log.info("Loaded DEM %s (%d samples x %d lines)", path.name, raster.sample_count, raster.line_count)
    return raster
