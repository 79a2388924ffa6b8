from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from .elevation import ElevationField
from .ellipsoid import EllipsoidApproximator
from .normal import NormalEstimator
from .ray import Ray
from .refiners import FailureReason, FixedPointRefiner, RefinementOutcome, Refiner, SecantRefiner
from .resolution import ResolutionModel
from .state import IntersectionState
from .utils import get_logger

_log = get_logger()


@dataclass
class SolverSettings:
    max_secant_iterations: int = 100
    max_fixed_point_iterations: int = 100
    secant_step_km: float = 1e-4
    tolerance_fraction: float = 0.01
    radius_clearance_km: float = 1e-4


@dataclass(frozen=True)
class IntersectionReport:
    """Diagnostics of the last ``intersect_surface`` call."""
    dem_radius_km: float
    initial_guess: Optional[np.ndarray]
    secant: Optional[RefinementOutcome]
    fixed_point: Optional[RefinementOutcome]
    reason: Optional[FailureReason] = None
    range_km: Optional[float] = None

    @property
    def converged(self) -> bool:
        return self.fixed_point is not None and self.fixed_point.converged


class DemShape:
    """Shape model of a body whose surface is given by a DEM.

    ``intersect_surface`` finds where a ray first meets the DEM: an isotropic
    sphere at a representative DEM radius gives the first guess, a secant
    search on the radial error refines it, and a fixed-point re-intersection
    always runs last so the reported point is geometrically consistent.

    One instance serves one thread; the intersection state and the raster
    cache are not safe to share.
    """
    name = "DemShape"

    def __init__(
        self,
        field: ElevationField,
        resolution_model: ResolutionModel,
        settings: Optional[SolverSettings] = None,
        secant: Optional[Refiner] = None,
        fixed_point: Optional[Refiner] = None,
    ) -> None:
        self.field = field
        self.resolution_model = resolution_model
        self.settings = settings or SolverSettings()
        self.approximator = EllipsoidApproximator()
        self.normals = NormalEstimator()
        self.secant: Refiner = secant or SecantRefiner(
            field,
            resolution_model,
            max_iterations=self.settings.max_secant_iterations,
            tolerance_fraction=self.settings.tolerance_fraction,
            step_km=self.settings.secant_step_km,
        )
        self.fixed_point: Refiner = fixed_point or FixedPointRefiner(
            field,
            resolution_model,
            max_iterations=self.settings.max_fixed_point_iterations,
            tolerance_fraction=self.settings.tolerance_fraction,
            approximator=self.approximator,
        )
        self._state = IntersectionState()
        self._normal = np.zeros(3)
        self._has_normal = False
        self.last_report: Optional[IntersectionReport] = None

    # -- shape model identity --
    def is_dem(self) -> bool:
        return True

    @property
    def target_radii_km(self) -> tuple[float, float, float]:
        return self.field.target_radii_km

    # -- state accessors --
    @property
    def surface_intersection(self) -> Optional[np.ndarray]:
        return self._state.point

    @property
    def has_intersection(self) -> bool:
        return self._state.has_intersection

    @property
    def normal(self) -> np.ndarray:
        return self._normal.copy()

    @property
    def has_normal(self) -> bool:
        return self._has_normal

    def resolution(self) -> Optional[float]:
        """Ground resolution (m/pixel) at the current intersection, if any."""
        return self._state.resolution()

    # -- DEM access --
    def local_radius(self, lat: Optional[float], lon: Optional[float]) -> Optional[float]:
        return self.field.local_radius(lat, lon)

    def find_dem_value(self) -> float:
        return self.field.find_dem_value()

    def dem_scale(self) -> float:
        return self.field.dem_scale()

    # -- intersection --
    def clear_surface_point(self) -> None:
        self._state.clear()
        self._normal = np.zeros(3)
        self._has_normal = False

    def _finish(self, report: IntersectionReport, ray: Ray) -> bool:
        self.last_report = report
        if report.converged:
            observer = ray.origin
            self._state.set_intersection(
                report.fixed_point.point,
                resolver=lambda p: self.resolution_model.resolution(observer, p),
            )
        else:
            _log.debug("No DEM intersection (%s)", report.reason.value if report.reason else "unknown")
        return self._state.has_intersection

    def intersect_surface(self, observer: Sequence[float], direction: Sequence[float]) -> bool:
        """Intersect the ray ``observer + t * direction`` with the DEM.

        Returns the final has-intersection flag. Failures are reported through
        ``last_report.reason`` and never raise.
        """
        self.clear_surface_point()
        ray = Ray(np.asarray(observer, dtype=np.float64), np.asarray(direction, dtype=np.float64))
        # unit direction so the secant step is a distance in km
        ray = Ray(ray.origin, ray.direction / np.linalg.norm(ray.direction))

        # Keep the seed sphere strictly below the observer so it can be hit.
        observer_norm = float(np.linalg.norm(ray.origin))
        dem_radius = min(self.field.find_dem_value(), observer_norm - self.settings.radius_clearance_km)

        guess = self.approximator.intersect(ray.origin, ray.direction, dem_radius)
        if guess is None:
            return self._finish(
                IntersectionReport(dem_radius, None, None, None, FailureReason.ELLIPSOID_MISS), ray
            )

        secant = self.secant.converge(ray, guess)
        _log.debug(
            "secant: converged=%s state=%s iterations=%d",
            secant.converged, secant.state.value if secant.state else None, secant.iterations,
        )
        if secant.point is None:
            # nothing evaluated; the fallback would query the same empty pixel
            return self._finish(
                IntersectionReport(dem_radius, guess, secant, None, secant.reason), ray
            )

        fixed = self.fixed_point.converge(ray, secant.point)
        _log.debug("fixed-point: converged=%s iterations=%d", fixed.converged, fixed.iterations)
        if not fixed.converged:
            return self._finish(IntersectionReport(dem_radius, guess, secant, fixed, fixed.reason), ray)
        range_km = ray.distance_km(ray.parameter_of(fixed.point))
        return self._finish(IntersectionReport(dem_radius, guess, secant, fixed, range_km=range_km), ray)

    # -- normals --
    def calculate_default_normal(self) -> None:
        point = self._state.point
        if point is None or not self._state.has_intersection:
            raise RuntimeError("A valid intersection must be defined before computing the surface normal")
        result = self.normals.default_normal(point, self.target_radii_km)
        self._normal = result.normal
        self._has_normal = result.valid

    def calculate_surface_normal(self) -> None:
        self.calculate_default_normal()

    def calculate_local_normal(self, neighbors: Optional[Sequence[np.ndarray]]) -> None:
        point = self._state.point
        if point is None and neighbors:
            raise RuntimeError("A valid intersection must be defined before computing the local normal")
        result = self.normals.local_normal(neighbors, point if point is not None else np.zeros(3))
        self._normal = result.normal
        self._has_normal = result.valid
