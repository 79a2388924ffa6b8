from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class MappingConfig(BaseModel):
    """Simple-cylindrical label of the DEM (overrides one stored in the file)."""
    scale_pixels_per_degree: float = Field(gt=0)
    max_lat: float = 90.0
    min_lon: float = 0.0


class DemConfig(BaseModel):
    path: Path
    value_kind: Literal["radius", "height"] = "radius"
    reference_radius_km: Optional[float] = None
    nodata: Optional[float] = None
    mapping: Optional[MappingConfig] = None
    cache_size: int = Field(default=5, ge=0)

    @model_validator(mode="after")
    def _validate_reference(self) -> "DemConfig":
        if self.value_kind == "height" and self.reference_radius_km is None:
            raise ValueError("value_kind 'height' requires reference_radius_km")
        return self


class TargetConfig(BaseModel):
    name: str = "TARGET"
    radii_km: tuple[float, float, float]

    @field_validator("radii_km")
    @classmethod
    def _positive(cls, v: tuple[float, float, float]) -> tuple[float, float, float]:
        if min(v) <= 0:
            raise ValueError("radii_km must be positive")
        return v


class SolverConfig(BaseModel):
    max_secant_iterations: int = Field(default=100, gt=0)
    max_fixed_point_iterations: int = Field(default=100, gt=0)
    secant_step_km: float = 1e-4
    tolerance_fraction: float = Field(default=0.01, gt=0)
    radius_clearance_km: float = Field(default=1e-4, ge=0)


class CameraConfig(BaseModel):
    position_km: tuple[float, float, float]
    look_at_km: tuple[float, float, float] = (0.0, 0.0, 0.0)
    up: tuple[float, float, float] = (0.0, 0.0, 1.0)
    resolution_px: tuple[int, int]
    focal_px: tuple[float, float]
    principal_px: Optional[tuple[float, float]] = None
    pixel_stride: int = Field(default=1, gt=0)
    batch_rows: int = Field(default=64, gt=0)


class OutputConfig(BaseModel):
    path: Path
    format: Literal["npz", "ply", "las", "laz"] = "npz"
    compress: Optional[bool] = None

    @model_validator(mode="after")
    def _validate_format(self) -> "OutputConfig":
        if self.format == "laz" and self.compress is False:
            raise ValueError("format 'laz' implies compress=True")
        return self


class ScenarioConfig(BaseModel):
    dem: DemConfig
    target: TargetConfig
    solver: SolverConfig = SolverConfig()
    camera: CameraConfig
    normals: Literal["none", "ellipsoid", "local"] = "ellipsoid"
    output: OutputConfig


def load_config(path: str | Path) -> ScenarioConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = ScenarioConfig.model_validate(data)
    cfg.output.path = (path.parent / cfg.output.path).resolve()
    if not cfg.dem.path.is_absolute():
        cfg.dem.path = (path.parent / cfg.dem.path).resolve()
    return cfg
