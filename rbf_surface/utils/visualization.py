import numpy as np
import matplotlib.pyplot as plt
import logging
from pathlib import Path
from typing import Optional, Union

import torch

from .mesh import SurfaceMesh
from ..models.implicit_function import ImplicitFunctionEvaluator, ResidualReport

logger = logging.getLogger(__name__)


def _to_numpy(points: Union[torch.Tensor, np.ndarray]) -> np.ndarray:
    if isinstance(points, torch.Tensor):
        points = points.detach().cpu().numpy()
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


class ReconstructionVisualizer:
    """
    Экспорт результатов реконструкции для просмотра

    Облака точек и меши сохраняются в PLY через open3d,
    графики - в PNG через matplotlib.

    Args:
        save_dir: Директория для результатов
        enabled: Отключает весь вывод при False
    """

    def __init__(self, save_dir: Union[str, Path], enabled: bool = True):
        self.save_dir = Path(save_dir)
        self.enabled = enabled

        self.save_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Reconstruction visualizer initialized, save dir: {save_dir}")

    def save_point_cloud(
        self,
        points: Union[torch.Tensor, np.ndarray],
        filename: str,
        color: Optional[list] = None,
        normals: Optional[np.ndarray] = None
    ) -> Optional[Path]:
        """
        Сохранение облака точек в PLY

        Args:
            points: Точки [N, 3]
            filename: Имя файла
            color: Единый цвет RGB в [0, 1]
            normals: Нормали [N, 3]
        """
        if not self.enabled:
            return None

        import open3d as o3d

        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(_to_numpy(points))
        if normals is not None:
            pcd.normals = o3d.utility.Vector3dVector(np.asarray(normals, dtype=np.float64))
        if color is not None:
            pcd.paint_uniform_color(color)

        path = self.save_dir / filename
        o3d.io.write_point_cloud(str(path), pcd)
        logger.debug(f"Point cloud saved to {path}")
        return path

    def save_mesh(self, mesh: SurfaceMesh, filename: str) -> Optional[Path]:
        """Сохранение меша; вершины и индексы берутся из одного объекта"""
        if not self.enabled:
            return None

        import open3d as o3d

        o3d_mesh = o3d.geometry.TriangleMesh()
        o3d_mesh.vertices = o3d.utility.Vector3dVector(np.array(mesh.vertices))
        o3d_mesh.triangles = o3d.utility.Vector3iVector(np.array(mesh.triangles, dtype=np.int32))
        if mesh.num_triangles > 0:
            o3d_mesh.compute_vertex_normals()

        path = self.save_dir / filename
        o3d.io.write_triangle_mesh(str(path), o3d_mesh)
        logger.debug(f"Mesh saved to {path}")
        return path

    def plot_residuals(self, report: ResidualReport, filename: str = 'residuals.png') -> Optional[Path]:
        """График |f(p_i)| по входным точкам"""
        if not self.enabled:
            return None

        fig, ax = plt.subplots(figsize=(10, 4))
        ax.semilogy(np.abs(report.values) + np.finfo(np.float64).tiny, 'b.', markersize=3)
        ax.set_title(f'Interpolation residuals (total {report.total_error:.3e})')
        ax.set_xlabel('Point index')
        ax.set_ylabel('|f(p)|')
        ax.grid(True, alpha=0.3)

        path = self.save_dir / filename
        plt.tight_layout()
        plt.savefig(path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return path

    def plot_slice(
        self,
        evaluator: ImplicitFunctionEvaluator,
        z: float = 0.0,
        resolution: int = 101,
        bounds=(-1.0, 1.0),
        filename: Optional[str] = None
    ) -> Optional[Path]:
        """
        Срез неявной функции плоскостью z = const

        Нулевой уровень отмечается контуром, входные точки рядом
        с плоскостью - точками.
        """
        if not self.enabled:
            return None
        if resolution < 2:
            raise ValueError(f"resolution must be at least 2, got {resolution}")

        lo, hi = bounds
        coords = lo + np.arange(resolution, dtype=np.float64) * (hi - lo) / (resolution - 1)
        xs, ys = np.meshgrid(coords, coords, indexing='ij')
        queries = np.stack([xs.ravel(), ys.ravel(), np.full(xs.size, z)], axis=1)
        values = evaluator.evaluate_batch(queries).reshape(xs.shape)

        fig, ax = plt.subplots(figsize=(7, 6))
        image = ax.pcolormesh(xs, ys, values, cmap='viridis', shading='auto')
        plt.colorbar(image, ax=ax)
        if np.min(values) < 0 < np.max(values):
            ax.contour(xs, ys, values, levels=[0.0], colors='red', linewidths=1)

        step = (hi - lo) / (resolution - 1)
        points = evaluator.point_set.coordinates
        near = np.abs(points[:, 2] - z) <= step
        ax.scatter(points[near, 0], points[near, 1], c='white', s=4, edgecolors='black', linewidths=0.3)

        ax.set_title(f'Implicit function, z = {z:.3f}')
        ax.set_aspect('equal')

        path = self.save_dir / (filename or f'slice_z_{z:+.3f}.png')
        plt.tight_layout()
        plt.savefig(path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return path
