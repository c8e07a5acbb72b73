import time
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import torch

from .point_set import PointSet
from .kernel_matrix import KernelMatrixBuilder
from .linear_solver import LinearSolver, SolveInfo
from .implicit_function import ImplicitFunctionEvaluator, ResidualReport
from .surface_extractor import SurfaceExtractor
from ..utils.config import default_config, merge_config
from ..utils.mesh import SurfaceMesh, Triangulator, triangulate

logger = logging.getLogger(__name__)


class ReconstructionSession:
    """
    Полная реконструкция неявной поверхности для одного набора точек

    Последовательно: системная матрица -> веса -> неявная функция.
    Сессия владеет матрицей, вектором и весами; изменение набора точек
    требует новой сессии.

    Args:
        points: Набор точек (PointSet или массив [N, 3]/[N, 6])
        config: Конфигурация (секции 'reconstruction' и 'extraction')
    """

    def __init__(
        self,
        points: Union[PointSet, np.ndarray, torch.Tensor],
        config: Optional[Dict[str, Any]] = None
    ):
        # Собственная неизменяемая копия, без ссылок на коллекцию вызывающего кода
        if not isinstance(points, PointSet):
            points = PointSet.from_array(points)

        self._setup(points, config or {})

        start_time = time.perf_counter()
        weights, self.solve_info = self.solver.solve(
            self._matrix, self._constraints, overwrite=False, return_info=True
        )
        self.solve_time = time.perf_counter() - start_time

        self.evaluator = self._create_evaluator(weights)

        logger.info(
            f"Reconstructed implicit function from {len(self.point_set)} points "
            f"(c={self.smoothing}, solve {self.solve_time:.3f}s)"
        )

    @classmethod
    def _from_solution(
        cls,
        point_set: PointSet,
        weights: torch.Tensor,
        config: Dict[str, Any]
    ) -> 'ReconstructionSession':
        """Восстановление сессии из сохраненных весов без повторного решения"""
        session = cls.__new__(cls)
        session._setup(point_set, config)
        session.evaluator = session._create_evaluator(weights)
        return session

    def _setup(self, point_set: PointSet, config: Dict[str, Any]):
        self.config = merge_config(default_config(), config)
        recon_config = self.config['reconstruction']

        self.point_set = point_set
        self.builder = KernelMatrixBuilder(
            smoothing=recon_config['smoothing'],
            chunk_size=recon_config['chunk_size']
        )
        self.solver = LinearSolver(pivot_tolerance=recon_config['pivot_tolerance'])

        self._matrix, self._constraints = self.builder.build(point_set)

        self.solve_info: Optional[SolveInfo] = None
        self.solve_time = 0.0
        self.last_surface_count: Optional[int] = None

    def _create_evaluator(self, weights) -> ImplicitFunctionEvaluator:
        return ImplicitFunctionEvaluator(
            self.point_set,
            weights,
            smoothing=self.builder.smoothing,
            chunk_size=self.config['reconstruction']['chunk_size']
        )

    @property
    def smoothing(self) -> float:
        return self.builder.smoothing

    @property
    def num_points(self) -> int:
        return len(self.point_set)

    @property
    def weights(self) -> np.ndarray:
        """Копия вектора весов λ"""
        return self.evaluator.weights

    @property
    def system_matrix(self) -> np.ndarray:
        """Копия системной матрицы (до решения)"""
        return self._matrix.numpy().copy()

    @property
    def constraints(self) -> np.ndarray:
        return self._constraints.numpy().copy()

    def evaluate(self, query) -> float:
        return self.evaluator.evaluate(query)

    def is_on_surface(self, query, threshold: Optional[float] = None) -> bool:
        if threshold is None:
            threshold = self.config['extraction']['threshold']
        return self.evaluator.is_on_surface(query, threshold)

    def residual_report(self, log: bool = False) -> ResidualReport:
        report = self.evaluator.residual_report(log=log)
        logger.info(f"Interpolation residual: total {report.total_error:.6e}, max {report.max_error:.6e}")
        return report

    def create_extractor(self) -> SurfaceExtractor:
        extraction_config = self.config['extraction']
        return SurfaceExtractor(
            self.evaluator,
            bounds=tuple(extraction_config['bounds']),
            chunk_size=extraction_config['chunk_size'],
            show_progress=extraction_config['show_progress']
        )

    def extract_surface(
        self,
        step: Optional[float] = None,
        threshold: Optional[float] = None
    ) -> np.ndarray:
        """
        Точки поверхности на сетке

        Args:
            step: Шаг сетки (по умолчанию из конфигурации)
            threshold: Порог |f| (по умолчанию из конфигурации)

        Returns:
            Точки [M, 3]
        """
        extraction_config = self.config['extraction']
        if step is None:
            step = extraction_config['grid_step']
        if threshold is None:
            threshold = extraction_config['threshold']

        surface_points = self.create_extractor().extract(step, threshold)
        self.last_surface_count = len(surface_points)
        return surface_points

    def reconstruct_mesh(
        self,
        step: Optional[float] = None,
        threshold: Optional[float] = None,
        triangulator: Optional[Triangulator] = None
    ) -> SurfaceMesh:
        """Извлечение точек поверхности и их триангуляция одним шагом"""
        surface_points = self.extract_surface(step, threshold)
        return triangulate(surface_points, triangulator)

    def diagnostics(self) -> Dict[str, Any]:
        """Сводка по сессии для логов и тестов"""
        report = self.evaluator.residual_report()
        info: Optional[SolveInfo] = self.solve_info

        return {
            'num_points': self.num_points,
            'smoothing': self.smoothing,
            'residual_total': report.total_error,
            'residual_max': report.max_error,
            'row_swaps': info.row_swaps if info is not None else None,
            'min_pivot': info.min_pivot if info is not None else None,
            'solve_time': self.solve_time,
            'surface_points': self.last_surface_count
        }

    def save(self, path: Union[str, Path]):
        """Сохранение точек, весов и конфигурации"""
        torch.save({
            'coordinates': torch.from_numpy(self.point_set.coordinates.copy()),
            'normals': (
                torch.from_numpy(self.point_set.normals.copy())
                if self.point_set.has_normals else None
            ),
            'weights': torch.from_numpy(self.weights),
            'config': self.config
        }, path)
        logger.info(f"Session saved to {path}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ReconstructionSession':
        """Загрузка сессии, сохраненной через save()"""
        checkpoint = torch.load(path, map_location='cpu')

        normals = checkpoint['normals']
        point_set = PointSet(
            checkpoint['coordinates'].numpy(),
            normals.numpy() if normals is not None else None
        )
        session = cls._from_solution(point_set, checkpoint['weights'], checkpoint['config'])

        logger.info(f"Session loaded from {path}")
        return session
