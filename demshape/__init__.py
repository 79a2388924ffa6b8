"""demshape – ray/DEM surface intersection for planetary shape models.

Core components:
- ElevationField over a DemRaster with a simple-cylindrical label (core.elevation)
- Ellipsoid first guess, secant and fixed-point refiners (core.ellipsoid, core.refiners)
- DemShape driver holding the intersection state (core.shape)
- Local and ellipsoid surface normals (core.normal)
- Framing camera back-projection to ground points (sensors.camera, core.backprojector)
- NPZ / PLY / LAS writers (core.exporter)
"""

from .core.ray import Ray
from .core.projection import SimpleCylindrical
from .core.raster import DemRaster, UniqueReadCache, load_raster
from .core.elevation import ElevationField
from .core.ellipsoid import EllipsoidApproximator
from .core.error_function import EvalResult, RayRadiusErrorFunction
from .core.refiners import (FailureReason, FixedPointRefiner, RefinementOutcome,
                            SecantRefiner, SecantState)
from .core.normal import NormalEstimator, NormalResult
from .core.resolution import AngularResolution, FixedResolution, ResolutionModel
from .core.shape import DemShape, IntersectionReport, SolverSettings
from .core.pointcloud import GroundPoints
from .core.exporter import LasWriter, PlyWriter, NpzWriter
from .core.backprojector import Backprojector, BackprojectorConfig, GroundRange
from .sensors.camera import FramingCamera, PixelRays
