from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol
import numpy as np

from .elevation import ElevationField
from .ellipsoid import EllipsoidApproximator
from .error_function import EvalResult, RayRadiusErrorFunction
from .ray import Ray
from .resolution import ResolutionModel
from .utils import get_logger, lat_lon_from_point

_log = get_logger()


class FailureReason(str, Enum):
    NO_DATA = "no_data"
    ELLIPSOID_MISS = "ellipsoid_miss"
    STAGNATION = "stagnation"
    ITERATION_BUDGET = "iteration_budget"


class SecantState(str, Enum):
    """Terminal state of a secant run, as reported in its outcome."""
    CONVERGED = "converged"
    STAGNANT = "stagnant"
    FAILED = "failed"


@dataclass(frozen=True)
class RefinementOutcome:
    """Result of one refinement stage.

    ``point`` is the converged point, or on failure the best candidate seen
    (``None`` if nothing could be evaluated).
    """
    converged: bool
    point: Optional[np.ndarray]
    iterations: int
    tolerance_m: float
    reason: Optional[FailureReason] = None
    residual_m: Optional[float] = None
    state: Optional[SecantState] = None


class Refiner(Protocol):
    """One refinement stage: moves a seed point on the ray toward the surface."""

    def converge(self, ray: Ray, seed: np.ndarray) -> RefinementOutcome: ...


class _ToleranceRefiner:
    def __init__(
        self,
        field: ElevationField,
        resolution_model: ResolutionModel,
        max_iterations: int = 100,
        tolerance_fraction: float = 0.01,
    ) -> None:
        if max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if tolerance_fraction <= 0:
            raise ValueError("tolerance_fraction must be positive")
        self.field = field
        self.resolution_model = resolution_model
        self.max_iterations = int(max_iterations)
        self.tolerance_fraction = float(tolerance_fraction)

    def tolerance_m(self, ray: Ray, point: np.ndarray) -> float:
        return self.resolution_model.resolution(ray.origin, point) * self.tolerance_fraction


class SecantRefiner(_ToleranceRefiner):
    """Secant root finding of the radial error along the ray parameter."""

    def __init__(
        self,
        field: ElevationField,
        resolution_model: ResolutionModel,
        max_iterations: int = 100,
        tolerance_fraction: float = 0.01,
        step_km: float = 1e-4,
    ) -> None:
        super().__init__(field, resolution_model, max_iterations, tolerance_fraction)
        if step_km == 0:
            raise ValueError("step_km must be non-zero")
        self.step_km = float(step_km)
        self.error_fn = RayRadiusErrorFunction(field)

    def _fail(self, state: SecantState, reason: FailureReason, best: Optional[EvalResult],
              iterations: int, tol: float) -> RefinementOutcome:
        return RefinementOutcome(
            converged=False,
            point=None if best is None else best.point,
            iterations=iterations,
            tolerance_m=tol,
            reason=reason,
            residual_m=None if best is None else abs(best.error) * 1000.0,
            state=state,
        )

    def converge(self, ray: Ray, seed: np.ndarray) -> RefinementOutcome:
        tol = self.tolerance_m(ray, seed)

        t0 = ray.parameter_of(seed)
        r0 = self.error_fn.evaluate(ray, t0)
        if not r0.success:
            return self._fail(SecantState.FAILED, FailureReason.NO_DATA, None, 0, tol)
        best = r0

        # Second point 0.1 m further along the ray
        t1 = t0 + self.step_km
        r1 = self.error_fn.evaluate(ray, t1)
        if not r1.success:
            return self._fail(SecantState.FAILED, FailureReason.NO_DATA, best, 0, tol)
        if abs(r1.error) < abs(best.error):
            best = r1

        f0, f1 = r0.error, r1.error
        for i in range(self.max_iterations):
            _log.debug("secant it=%d t1=%.9f err=%.6f m tol=%.6f m", i, r1.t, abs(f1) * 1000.0, tol)

            if abs(f1) * 1000.0 < tol:
                # resolution moved with the candidate point
                tol = self.tolerance_m(ray, r1.point)
                if abs(f1) * 1000.0 < tol:
                    return RefinementOutcome(
                        converged=True,
                        point=r1.point,
                        iterations=i,
                        tolerance_m=tol,
                        residual_m=abs(f1) * 1000.0,
                        state=SecantState.CONVERGED,
                    )

            if f1 == f0:
                _log.debug("secant stagnated at it=%d", i)
                return self._fail(SecantState.STAGNANT, FailureReason.STAGNATION, best, i, tol)

            t2 = r1.t - f1 * (r1.t - r0.t) / (f1 - f0)
            r2 = self.error_fn.evaluate(ray, t2)
            if not r2.success:
                return self._fail(SecantState.FAILED, FailureReason.NO_DATA, best, i + 1, tol)
            if abs(r2.error) < abs(best.error):
                best = r2

            r0, r1 = r1, r2
            f0, f1 = r0.error, r1.error

        return self._fail(SecantState.FAILED, FailureReason.ITERATION_BUDGET, best, self.max_iterations, tol)


class FixedPointRefiner(_ToleranceRefiner):
    """Re-intersects the ray with a sphere of the local DEM radius until the
    intersection stops moving."""

    def __init__(
        self,
        field: ElevationField,
        resolution_model: ResolutionModel,
        max_iterations: int = 100,
        tolerance_fraction: float = 0.01,
        approximator: Optional[EllipsoidApproximator] = None,
    ) -> None:
        super().__init__(field, resolution_model, max_iterations, tolerance_fraction)
        self.approximator = approximator or EllipsoidApproximator()

    def converge(self, ray: Ray, seed: np.ndarray) -> RefinementOutcome:
        tol = self.tolerance_m(ray, seed)
        current = np.asarray(seed, dtype=np.float64)

        for it in range(1, self.max_iterations + 1):
            lat, lon = lat_lon_from_point(current)
            radius = self.field.local_radius(lat, lon)
            if radius is None:
                _log.debug("fixed-point it=%d: no DEM data at lat=%.6f lon=%.6f", it, lat, lon)
                return RefinementOutcome(False, None, it, tol, FailureReason.NO_DATA)

            new_point = self.approximator.intersect(ray.origin, ray.direction, radius)
            if new_point is None:
                _log.debug("fixed-point it=%d: ray misses sphere r=%.6f km", it, radius)
                return RefinementOutcome(False, None, it, tol, FailureReason.ELLIPSOID_MISS)

            dist2 = float(np.sum((current - new_point) ** 2)) * 1e6
            _log.debug("fixed-point it=%d step=%.6f m tol=%.6f m", it, np.sqrt(dist2), tol)
            if dist2 < tol * tol:
                tol = self.tolerance_m(ray, new_point)
                if dist2 < tol * tol:
                    return RefinementOutcome(True, new_point, it, tol, residual_m=float(np.sqrt(dist2)))
            current = new_point

        return RefinementOutcome(False, current, self.max_iterations, tol, FailureReason.ITERATION_BUDGET)
