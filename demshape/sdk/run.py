from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..config import ScenarioConfig, load_config
from ..core.backprojector import Backprojector, BackprojectorConfig, GroundRange
from ..runtime.builders import build_camera, build_shape, build_writer


@dataclass(frozen=True)
class ConfigRunResult:
    """Summary of a back-projection run driven by a configuration file."""

    stats: Dict[str, Any]
    output_path: Path
    config: ScenarioConfig
    ground_range: GroundRange


def backproject_from_config(
    config: Union[str, Path, ScenarioConfig],
    *,
    output: Optional[Path] = None,
    normals: Optional[str] = None,
) -> ConfigRunResult:
    """Back-project every camera pixel of a scenario onto its DEM.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~demshape.config.schema.ScenarioConfig`.
    output:
        Optional override for the output file. The extension drives the format
        (``.npz``, ``.ply``, ``.las`` or ``.laz``).
    normals:
        Optional override of the normal mode (``none``, ``ellipsoid``, ``local``).

    Returns
    -------
    ConfigRunResult
        Run statistics (rays, points, misses, failures by reason), the resolved
        output path and configuration, and the ground range covered.
    """

    cfg = load_config(config) if not isinstance(config, ScenarioConfig) else config.model_copy(deep=True)

    if normals is not None:
        if normals not in {"none", "ellipsoid", "local"}:
            raise ValueError(f"Unsupported normal mode '{normals}'")
        cfg.normals = normals  # type: ignore[assignment]

    if output is not None:
        out_path = Path(output).resolve()
        ext = out_path.suffix.lower()
        if ext not in {".npz", ".ply", ".las", ".laz"}:
            raise ValueError(f"Unsupported output extension '{ext}'")
        cfg.output.path = out_path
        cfg.output.format = ext.lstrip(".")  # type: ignore[assignment]
        if ext == ".las":
            cfg.output.compress = False
        elif ext == ".laz":
            cfg.output.compress = True
    else:
        cfg.output.path = Path(cfg.output.path).resolve()
    cfg.output.path.parent.mkdir(parents=True, exist_ok=True)

    camera = build_camera(cfg)
    shape = build_shape(cfg, camera)
    backprojector = Backprojector(shape, camera, BackprojectorConfig(normals=cfg.normals))
    writer = build_writer(cfg)

    try:
        stats = backprojector.run_to_writer(writer)
    finally:
        close = getattr(writer, "close", None)
        if callable(close):
            close()

    return ConfigRunResult(
        stats=stats,
        output_path=Path(cfg.output.path),
        config=cfg,
        ground_range=backprojector.ground_range,
    )


def ground_range_from_config(config: Union[str, Path, ScenarioConfig]) -> GroundRange:
    """Latitude/longitude/resolution extent a scenario's camera sees, without writing output."""

    cfg = load_config(config) if not isinstance(config, ScenarioConfig) else config
    camera = build_camera(cfg)
    shape = build_shape(cfg, camera)
    backprojector = Backprojector(shape, camera, BackprojectorConfig(normals="none"))
    for rays in camera.ray_batches():
        backprojector.backproject(rays)
    return backprojector.ground_range
