from __future__ import annotations

from typing import Optional

import numpy as np

from ..config import ScenarioConfig
from ..config.schema import DemConfig, SolverConfig
from ..core.elevation import ElevationField
from ..core.exporter import LasWriter, NpzWriter, PlyWriter
from ..core.projection import SimpleCylindrical
from ..core.raster import load_raster
from ..core.resolution import ResolutionModel
from ..core.shape import DemShape, SolverSettings
from ..sensors.camera import FramingCamera


def build_field(dem_cfg: DemConfig, radii_km: tuple[float, float, float]) -> ElevationField:
    mapping: Optional[SimpleCylindrical] = None
    if dem_cfg.mapping is not None:
        mapping = SimpleCylindrical(
            scale=dem_cfg.mapping.scale_pixels_per_degree,
            max_lat=dem_cfg.mapping.max_lat,
            min_lon=dem_cfg.mapping.min_lon,
        )
    raster = load_raster(
        dem_cfg.path,
        nodata=dem_cfg.nodata,
        mapping=mapping,
        cache_size=dem_cfg.cache_size,
    )
    return ElevationField(
        raster,
        radii_km,
        value_kind=dem_cfg.value_kind,
        reference_radius_km=dem_cfg.reference_radius_km,
    )


def build_settings(solver_cfg: SolverConfig) -> SolverSettings:
    return SolverSettings(
        max_secant_iterations=solver_cfg.max_secant_iterations,
        max_fixed_point_iterations=solver_cfg.max_fixed_point_iterations,
        secant_step_km=solver_cfg.secant_step_km,
        tolerance_fraction=solver_cfg.tolerance_fraction,
        radius_clearance_km=solver_cfg.radius_clearance_km,
    )


def build_camera(cfg: ScenarioConfig) -> FramingCamera:
    cam_cfg = cfg.camera
    return FramingCamera(
        position_km=np.asarray(cam_cfg.position_km, dtype=np.float64),
        resolution_px=cam_cfg.resolution_px,
        focal_px=cam_cfg.focal_px,
        principal_px=cam_cfg.principal_px,
        look_at_km=np.asarray(cam_cfg.look_at_km, dtype=np.float64),
        up=np.asarray(cam_cfg.up, dtype=np.float64),
        pixel_stride=cam_cfg.pixel_stride,
        batch_rows=cam_cfg.batch_rows,
    )


def build_shape(cfg: ScenarioConfig, resolution_model: ResolutionModel) -> DemShape:
    field = build_field(cfg.dem, cfg.target.radii_km)
    return DemShape(field, resolution_model, settings=build_settings(cfg.solver))


def build_writer(cfg: ScenarioConfig):
    out_cfg = cfg.output
    format_lower = out_cfg.format.lower()
    if format_lower in {"las", "laz"}:
        compress = out_cfg.compress
        if compress is None:
            compress = format_lower == "laz"
        return LasWriter(str(out_cfg.path), compress=compress)
    if format_lower == "npz":
        return NpzWriter(str(out_cfg.path))
    if format_lower == "ply":
        return PlyWriter(str(out_cfg.path))
    raise ValueError(f"Unsupported output format: {out_cfg.format}")
