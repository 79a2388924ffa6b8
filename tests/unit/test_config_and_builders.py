from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import yaml
from pydantic import ValidationError

from demshape.config import ScenarioConfig, load_config
from demshape.core.exporter import LasWriter, NpzWriter, PlyWriter
from demshape.examples.synthetic import generate_dem
from demshape.runtime.builders import build_camera, build_field, build_settings, build_shape, build_writer


def _scenario(dem_name: str, output_name: str = "ground.npz", **overrides) -> dict:
    config = {
        "dem": {"path": dem_name},
        "target": {"name": "MARS", "radii_km": [3396.19, 3396.19, 3376.2]},
        "camera": {
            "position_km": [5000.0, 0.0, 0.0],
            "resolution_px": [4, 3],
            "focal_px": [1000.0, 1000.0],
        },
        "output": {"path": output_name, "format": Path(output_name).suffix.lstrip(".")},
    }
    config.update(overrides)
    return config


def _write(path: Path, data: dict) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)
    return path


def test_load_config_resolves_paths_relative_to_file(tmp_path: Path) -> None:
    sub = tmp_path / "scenarios"
    sub.mkdir()
    cfg = load_config(_write(sub / "s.yaml", _scenario("dem.npz")))
    assert cfg.dem.path == (sub / "dem.npz").resolve()
    assert cfg.output.path == (sub / "ground.npz").resolve()
    assert cfg.normals == "ellipsoid"
    assert cfg.solver.max_secant_iterations == 100
    assert cfg.dem.cache_size == 5


def test_config_validation_errors(tmp_path: Path) -> None:
    bad_radii = _scenario("dem.npz")
    bad_radii["target"]["radii_km"] = [3396.0, 0.0, 3396.0]
    with pytest.raises(ValidationError):
        ScenarioConfig.model_validate(bad_radii)

    height_without_reference = _scenario("dem.npz")
    height_without_reference["dem"]["value_kind"] = "height"
    with pytest.raises(ValidationError):
        ScenarioConfig.model_validate(height_without_reference)

    laz_uncompressed = _scenario("dem.npz", "ground.laz")
    laz_uncompressed["output"]["compress"] = False
    with pytest.raises(ValidationError):
        ScenarioConfig.model_validate(laz_uncompressed)

    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(not_a_mapping)


def test_generate_dem_presets(tmp_path: Path) -> None:
    flat = np.load(generate_dem("flat", tmp_path / "flat.npz", radius_km=3396.0))
    assert flat["values"].shape == (180, 360)
    assert np.all(flat["values"] == 3396000.0)
    assert float(flat["scale"]) == 1.0

    ramp = np.load(generate_dem("ramp", tmp_path / "ramp", relief_m=360.0, radius_km=3396.0))
    assert ramp["values"][0, 0] == pytest.approx(3396000.5)
    assert ramp["values"][0, -1] > ramp["values"][0, 0]

    hole = np.load(generate_dem("hole", tmp_path / "hole.npz"))
    assert np.any(hole["values"] == hole["nodata"])

    crater = np.load(generate_dem("crater", tmp_path / "crater.npz", radius_km=3396.0, scale=2.0))
    assert crater["values"].shape == (360, 720)
    assert crater["values"].min() < 3396000.0

    with pytest.raises(ValueError):
        generate_dem("volcano", tmp_path / "x.npz")


def test_builders_assemble_shape_camera_and_writer(tmp_path: Path) -> None:
    generate_dem("flat", tmp_path / "dem.npz", radius_km=3396.0)
    data = _scenario(
        "dem.npz",
        solver={"max_secant_iterations": 20, "tolerance_fraction": 0.02},
        dem={"path": "dem.npz", "mapping": {"scale_pixels_per_degree": 1.0}, "cache_size": 3},
    )
    cfg = load_config(_write(tmp_path / "s.yaml", data))

    camera = build_camera(cfg)
    assert camera.width == 4 and camera.height == 3
    np.testing.assert_allclose(camera.position_km, [5000.0, 0.0, 0.0])

    field = build_field(cfg.dem, cfg.target.radii_km)
    assert field.raster.cache.capacity == 3
    assert field.dem_scale() == 1.0

    settings = build_settings(cfg.solver)
    assert settings.max_secant_iterations == 20
    assert settings.tolerance_fraction == 0.02

    shape = build_shape(cfg, camera)
    assert shape.intersect_surface(camera.position_km, [-1.0, 0.0, 0.0])
    np.testing.assert_allclose(shape.surface_intersection, [3396.0, 0.0, 0.0], atol=1e-6)

    assert isinstance(build_writer(cfg), NpzWriter)
    cfg.output.format = "ply"
    assert isinstance(build_writer(cfg), PlyWriter)
    cfg.output.format = "laz"
    writer = build_writer(cfg)
    assert isinstance(writer, LasWriter) and writer.compress
