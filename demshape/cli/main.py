from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import typer

from ..config.schema import DemConfig, MappingConfig
from ..core.resolution import FixedResolution
from ..core.shape import DemShape
from ..core.utils import lat_lon_from_point
from ..examples.synthetic import PRESETS, generate_dem
from ..runtime.builders import build_field
from ..sdk import backproject_from_config, ground_range_from_config

app = typer.Typer(help="DEM shape model utilities")
dem_app = typer.Typer(help="Synthetic DEM helpers")
app.add_typer(dem_app, name="dem")

DEFAULT_RADII_KM = (3396.19, 3396.19, 3376.2)


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("demshape").setLevel(numeric)


@app.command("backproject")
def backproject(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override output path (extension sets format)."),
    normals: Optional[str] = typer.Option(None, "--normals", help="Override normal mode (none, ellipsoid, local)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Intersect every camera pixel of a scenario with its DEM and write the ground points."""

    _configure_logging(log_level)
    if output is not None and output.suffix.lower() not in {".npz", ".ply", ".las", ".laz"}:
        raise typer.BadParameter(f"Unsupported output extension '{output.suffix}'", param_hint="--output")
    if normals is not None and normals not in {"none", "ellipsoid", "local"}:
        raise typer.BadParameter("normals must be one of none, ellipsoid, local.", param_hint="--normals")

    result = backproject_from_config(config, output=output, normals=normals)
    stats = result.stats
    typer.echo(f"Completed {stats['points']} points from {stats['rays']} rays → {result.output_path}")
    for reason, count in stats["failures"].items():
        typer.echo(f"  {reason}: {count}")


@app.command("range")
def ground_range(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Report the latitude, longitude and resolution range covered by a scenario's camera."""

    _configure_logging(log_level)
    gr = ground_range_from_config(config)
    if gr.empty:
        typer.echo("No pixel intersects the DEM.")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(gr.to_dict(), indent=2))


@app.command("intersect")
def intersect(
    dem: Path = typer.Option(..., "--dem", exists=True, readable=True, help="DEM file (.npz or .npy)."),
    observer: Tuple[float, float, float] = typer.Option(..., "--observer", help="Observer position in km (body-fixed)."),
    direction: Tuple[float, float, float] = typer.Option(..., "--direction", help="Look direction (any length)."),
    radii: Tuple[float, float, float] = typer.Option(DEFAULT_RADII_KM, "--radii", help="Target ellipsoid radii in km."),
    resolution_m: float = typer.Option(1.0, "--resolution-m", help="Ground resolution (m/pixel) setting the tolerance."),
    value_kind: str = typer.Option("radius", "--value-kind", help="DEM values are 'radius' or 'height' (metres)."),
    reference_radius_km: Optional[float] = typer.Option(None, "--reference-radius-km", help="Reference radius for height DEMs."),
    scale: Optional[float] = typer.Option(None, "--scale", help="Pixels per degree (overrides the DEM label)."),
    max_lat: float = typer.Option(90.0, "--max-lat", help="Latitude of the raster's top edge (with --scale)."),
    min_lon: float = typer.Option(0.0, "--min-lon", help="Longitude of the raster's left edge (with --scale)."),
    nodata: Optional[float] = typer.Option(None, "--nodata", help="No-data value (overrides the DEM label)."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Intersect a single ray with a DEM."""

    _configure_logging(log_level)
    if resolution_m <= 0:
        raise typer.BadParameter("resolution must be positive.", param_hint="--resolution-m")
    if value_kind not in {"radius", "height"}:
        raise typer.BadParameter("value kind must be 'radius' or 'height'.", param_hint="--value-kind")
    if not np.any(direction):
        raise typer.BadParameter("direction must be non-zero.", param_hint="--direction")

    try:
        dem_cfg = DemConfig(
            path=dem.resolve(),
            value_kind=value_kind,
            reference_radius_km=reference_radius_km,
            nodata=nodata,
            mapping=MappingConfig(scale_pixels_per_degree=scale, max_lat=max_lat, min_lon=min_lon) if scale else None,
        )
        field = build_field(dem_cfg, radii)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--dem") from exc

    shape = DemShape(field, FixedResolution(resolution_m))
    if not shape.intersect_surface(observer, direction):
        reason = shape.last_report.reason if shape.last_report is not None else None
        typer.echo(f"No intersection ({reason.value if reason else 'unknown'})")
        raise typer.Exit(code=1)

    point = shape.surface_intersection
    lat, lon = lat_lon_from_point(point)
    typer.echo(f"point_km: {point[0]:.6f} {point[1]:.6f} {point[2]:.6f}")
    typer.echo(f"lat_deg: {lat:.6f}")
    typer.echo(f"lon_deg: {lon:.6f}")
    typer.echo(f"radius_km: {float(np.linalg.norm(point)):.6f}")


@dem_app.command("generate")
def dem_generate(
    output: Path = typer.Argument(..., help="Output DEM path (.npz)."),
    preset: str = typer.Option("flat", "--preset", help=f"Synthetic DEM preset ({', '.join(PRESETS)})."),
    radius_km: float = typer.Option(3396.19, "--radius-km", help="Base radius in km."),
    scale: float = typer.Option(1.0, "--scale", help="Pixels per degree."),
    relief_m: float = typer.Option(5000.0, "--relief-m", help="Relief amplitude for ramp and crater presets."),
) -> None:
    """Generate a synthetic global DEM useful for intersection demos."""

    if preset.lower() not in PRESETS:
        raise typer.BadParameter(f"preset must be one of {list(PRESETS)}.", param_hint="--preset")
    out = generate_dem(preset=preset, path=output.resolve(), radius_km=radius_km, scale=scale, relief_m=relief_m)
    typer.echo(f"Wrote synthetic DEM to {out}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
