from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from demshape.core.projection import SimpleCylindrical
from demshape.core.raster import DemRaster, UniqueReadCache, load_raster


def test_projection_pixel_centres_round_trip() -> None:
    proj = SimpleCylindrical(scale=4.0, max_lat=10.0, min_lon=100.0)
    x, y = proj.to_pixel(9.875, 100.125)
    assert x == pytest.approx(0.0)
    assert y == pytest.approx(0.0)
    lat, lon = proj.to_ground(3.0, 7.0)
    x2, y2 = proj.to_pixel(lat, lon)
    assert (x2, y2) == pytest.approx((3.0, 7.0))


def test_projection_normalizes_longitude_into_raster_domain() -> None:
    proj = SimpleCylindrical(scale=1.0, min_lon=-180.0)
    assert proj.normalize_lon(190.0) == pytest.approx(-170.0)
    assert proj.normalize_lon(-180.0) == pytest.approx(-180.0)
    x, _ = proj.to_pixel(0.0, 359.5)
    assert x == pytest.approx(179.0)


def test_projection_wraps_only_for_global_rasters() -> None:
    proj = SimpleCylindrical(scale=2.0)
    assert proj.wraps(720)
    assert not proj.wraps(100)
    with pytest.raises(ValueError):
        SimpleCylindrical(scale=0.0)


def test_read_window_marks_outside_and_nodata_as_nan() -> None:
    values = np.arange(12, dtype=np.float64).reshape(3, 4)
    values[1, 1] = -9999.0
    raster = DemRaster(values, nodata=-9999.0)

    win = raster.read_window(-1, 0, 3, 2)
    assert win.shape == (2, 3)
    assert np.isnan(win[0, 0]) and np.isnan(win[1, 0])
    assert win[0, 1] == 0.0
    assert win[0, 2] == 1.0
    assert win[1, 1] == 4.0
    assert np.isnan(win[1, 2])  # nodata pixel

    assert np.isnan(raster.read_pixel(10, 10))


def test_read_window_wraps_samples() -> None:
    values = np.arange(8, dtype=np.float64).reshape(2, 4)
    raster = DemRaster(values)
    win = raster.read_window(-1, 0, 2, 1, wrap_samples=True)
    np.testing.assert_array_equal(win, np.array([[3.0, 0.0]]))
    win = raster.read_window(3, 1, 2, 1, wrap_samples=True)
    np.testing.assert_array_equal(win, np.array([[7.0, 4.0]]))


def test_unique_read_cache_keeps_most_recent_windows() -> None:
    cache = UniqueReadCache(capacity=2)
    raster = DemRaster(np.zeros((4, 4)), cache=cache)
    raster.read_window(0, 0, 2, 2)
    raster.read_window(1, 0, 2, 2)
    raster.read_window(0, 0, 2, 2)   # hit, becomes most recent
    raster.read_window(2, 2, 2, 2)   # evicts (1, 0)
    assert len(cache) == 2
    assert cache.hits == 1
    assert cache.get((1, 0, 2, 2, False)) is None
    assert cache.get((0, 0, 2, 2, False)) is not None
    with pytest.raises(ValueError):
        UniqueReadCache(capacity=0)


def test_raster_rejects_non_2d_values() -> None:
    with pytest.raises(ValueError):
        DemRaster(np.zeros(5))


def test_load_raster_npz_uses_embedded_label(tmp_path: Path) -> None:
    path = tmp_path / "dem.npz"
    np.savez(path, values=np.full((2, 4), 5.0), nodata=np.float64(-1.0), scale=np.float64(0.5),
             max_lat=np.float64(45.0), min_lon=np.float64(-90.0))
    raster = load_raster(path)
    assert raster.line_count == 2 and raster.sample_count == 4
    assert raster.nodata == -1.0
    assert raster.mapping == SimpleCylindrical(scale=0.5, max_lat=45.0, min_lon=-90.0)
    assert raster.cache is not None and raster.cache.capacity == 5


def test_load_raster_npy_with_mapping_override(tmp_path: Path) -> None:
    path = tmp_path / "dem.npy"
    np.save(path, np.ones((3, 3), dtype=np.float32))
    mapping = SimpleCylindrical(scale=1.0)
    raster = load_raster(path, nodata=0.0, mapping=mapping, cache_size=0)
    assert raster.mapping is mapping
    assert raster.cache is None
    assert raster.read_pixel(2, 2) == 1.0


def test_load_raster_rejects_unknown_format(tmp_path: Path) -> None:
    path = tmp_path / "dem.tif"
    path.write_bytes(b"")
    with pytest.raises(ValueError):
        load_raster(path)

    missing = tmp_path / "bad.npz"
    np.savez(missing, heights=np.zeros((2, 2)))
    with pytest.raises(ValueError):
        load_raster(missing)
