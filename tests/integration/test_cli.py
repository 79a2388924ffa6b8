from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import yaml
from typer.testing import CliRunner

from demshape.cli.main import app
from demshape.examples.synthetic import generate_dem


def _write_scenario(tmp_path: Path, output: str = "ground.npz", preset: str = "flat") -> Path:
    generate_dem(preset, tmp_path / "dem.npz", radius_km=3396.0)
    config = {
        "dem": {"path": "dem.npz"},
        "target": {"name": "MARS", "radii_km": [3396.0, 3396.0, 3396.0]},
        "camera": {
            "position_km": [5000.0, 0.0, 0.0],
            "resolution_px": [5, 5],
            "focal_px": [1500.0, 1500.0],
        },
        "normals": "local",
        "output": {"path": output, "format": Path(output).suffix.lstrip(".")},
    }
    cfg_path = tmp_path / "scenario.yaml"
    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)
    return cfg_path


def test_cli_backproject_npz(tmp_path: Path) -> None:
    cfg_path = _write_scenario(tmp_path)

    runner = CliRunner()
    result = runner.invoke(app, ["backproject", str(cfg_path)])

    assert result.exit_code == 0, result.stdout
    assert "Completed 25 points from 25 rays" in result.stdout
    out_path = tmp_path / "ground.npz"
    assert out_path.exists()
    data = np.load(out_path)
    xyz = data["xyz_km"]
    assert xyz.shape == (25, 3)
    assert data["normal"].shape == (25, 3)
    np.testing.assert_allclose(np.linalg.norm(xyz, axis=1), 3396.0, atol=1e-5)


def test_cli_backproject_las(tmp_path: Path) -> None:
    cfg_path = _write_scenario(tmp_path, output="ground.las")

    runner = CliRunner()
    result = runner.invoke(app, ["backproject", str(cfg_path), "--log-level", "DEBUG"])
    assert result.exit_code == 0, result.stdout

    out_path = tmp_path / "ground.las"
    assert out_path.exists()

    import laspy

    with laspy.open(out_path) as reader:
        points = reader.read()
        assert len(points.x) == 25
        assert np.all(np.abs(points.x - 3396000.0) < 50.0)
        extra = reader.header.point_format.extra_dimension_names
        assert "Latitude" in extra
        assert "NormalZ" in extra


def test_cli_backproject_with_output_override(tmp_path: Path) -> None:
    cfg_path = _write_scenario(tmp_path)
    override_path = tmp_path / "custom" / "ground.ply"

    runner = CliRunner()
    result = runner.invoke(app, ["backproject", str(cfg_path), "--output", str(override_path), "--normals", "none"])
    assert result.exit_code == 0, result.stdout
    with open(override_path, "r", encoding="utf-8") as f:
        assert f.readline().strip() == "ply"

    result = runner.invoke(app, ["backproject", str(cfg_path), "--output", str(tmp_path / "ground.csv")])
    assert result.exit_code != 0


def test_cli_backproject_reports_failures(tmp_path: Path) -> None:
    cfg_path = _write_scenario(tmp_path, preset="hole")
    runner = CliRunner()
    result = runner.invoke(app, ["backproject", str(cfg_path)])
    assert result.exit_code == 0, result.stdout
    assert "Completed 0 points from 25 rays" in result.stdout
    assert "no_data: 25" in result.stdout


def test_cli_range(tmp_path: Path) -> None:
    cfg_path = _write_scenario(tmp_path)
    runner = CliRunner()
    result = runner.invoke(app, ["range", str(cfg_path)])
    assert result.exit_code == 0, result.stdout
    report = json.loads(result.stdout)
    assert report["min_lat"] < 0.0 < report["max_lat"]
    assert report["highest_resolution_m"] > 0.0

    hole_dir = tmp_path / "hole"
    hole_dir.mkdir()
    hole_cfg = _write_scenario(hole_dir, preset="hole")
    result = runner.invoke(app, ["range", str(hole_cfg)])
    assert result.exit_code == 1


def test_cli_intersect_single_ray(tmp_path: Path) -> None:
    dem = generate_dem("flat", tmp_path / "dem.npz", radius_km=3396.0)
    runner = CliRunner()
    result = runner.invoke(
        app,
        ["intersect", "--dem", str(dem), "--observer", "0", "5000", "0", "--direction", "0", "-1", "0",
         "--radii", "3396", "3396", "3396"],
    )
    assert result.exit_code == 0, result.stdout
    assert "lat_deg: 0.000000" in result.stdout
    assert "lon_deg: 90.000000" in result.stdout
    assert "radius_km: 3396.000000" in result.stdout

    miss = runner.invoke(
        app,
        ["intersect", "--dem", str(dem), "--observer", "0", "5000", "0", "--direction", "0", "1", "0"],
    )
    assert miss.exit_code == 1
    assert "ellipsoid_miss" in miss.stdout


def test_dem_generate_command(tmp_path: Path) -> None:
    output = tmp_path / "crater.npz"
    runner = CliRunner()
    result = runner.invoke(app, ["dem", "generate", str(output), "--preset", "crater", "--scale", "0.5"])
    assert result.exit_code == 0, result.stdout
    assert output.exists()
    with np.load(output) as data:
        assert data["values"].shape == (90, 180)
        assert float(data["scale"]) == 0.5

    result = runner.invoke(app, ["dem", "generate", str(output), "--preset", "volcano"])
    assert result.exit_code != 0
