from .point_set import Point3D, PointSet
from .kernel_matrix import KernelMatrixBuilder, multiquadric
from .linear_solver import LinearSolver, SolveInfo
from .implicit_function import ImplicitFunctionEvaluator, ResidualReport
from .surface_extractor import SurfaceExtractor
from .reconstruction_session import ReconstructionSession

__all__ = [
    'Point3D',
    'PointSet',
    'KernelMatrixBuilder',
    'multiquadric',
    'LinearSolver',
    'SolveInfo',
    'ImplicitFunctionEvaluator',
    'ResidualReport',
    'SurfaceExtractor',
    'ReconstructionSession'
]
