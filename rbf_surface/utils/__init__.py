from .config import default_config, load_config, merge_config
from .data_loader import PointCloudLoader, load_point_cloud, normalize_points, denormalize_points
from .metrics import ReconstructionMetrics, compute_chamfer_distance, compute_f_score
from .mesh import SurfaceMesh, triangulate, delaunay_surface_triangles

__all__ = [
    'default_config',
    'load_config',
    'merge_config',
    'PointCloudLoader',
    'load_point_cloud',
    'normalize_points',
    'denormalize_points',
    'ReconstructionMetrics',
    'compute_chamfer_distance',
    'compute_f_score',
    'SurfaceMesh',
    'triangulate',
    'delaunay_surface_triangles'
]
