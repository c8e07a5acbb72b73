"""
3D Surface Reconstruction from Point Clouds using RBF interpolation
"""

__version__ = "0.1.0"

from .exceptions import (
    ReconstructionError,
    InvalidInputError,
    NumericalFailureError,
    ConfigurationError
)

from .models import (
    Point3D,
    PointSet,
    KernelMatrixBuilder,
    LinearSolver,
    ImplicitFunctionEvaluator,
    ResidualReport,
    SurfaceExtractor,
    ReconstructionSession
)

from .utils import (
    PointCloudLoader,
    load_point_cloud,
    normalize_points,
    ReconstructionMetrics,
    SurfaceMesh,
    triangulate,
    load_config
)
