import math
import logging
from typing import Tuple, Union

import numpy as np
import torch

from .point_set import PointSet
from ..exceptions import ConfigurationError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_SMOOTHING = 0.1


def multiquadric(r, c: float = DEFAULT_SMOOTHING):
    """
    Multiquadric RBF: sqrt(r² + c²)

    Работает с float, numpy массивами и torch тензорами.
    """
    if isinstance(r, torch.Tensor):
        return torch.sqrt(r * r + c * c)
    if isinstance(r, np.ndarray):
        return np.sqrt(r * r + c * c)
    return math.sqrt(r * r + c * c)


def pairwise_distances(
    queries: torch.Tensor,
    centers: torch.Tensor
) -> torch.Tensor:
    """
    Евклидовы расстояния между двумя наборами точек

    Считаются через разности координат (без разложения через матричное
    произведение), поэтому d(a, b) и d(b, a) совпадают побитово,
    а d(a, a) равно ровно 0.

    Args:
        queries: Точки [M, 3]
        centers: Точки [N, 3]

    Returns:
        Расстояния [M, N]
    """
    diff = queries.unsqueeze(1) - centers.unsqueeze(0)
    squared = diff[..., 0] * diff[..., 0] + diff[..., 1] * diff[..., 1] + diff[..., 2] * diff[..., 2]
    return torch.sqrt(squared)


def validate_smoothing(smoothing: float) -> float:
    smoothing = float(smoothing)
    if not math.isfinite(smoothing) or smoothing <= 0:
        raise ConfigurationError(f"Smoothing constant must be positive, got {smoothing}")
    return smoothing


class KernelMatrixBuilder:
    """
    Построение системной матрицы RBF интерполяции

    A[i][j] = kernel(|p_i - p_j|), вектор ограничений целиком нулевой
    (все входные точки лежат на поверхности).

    Args:
        smoothing: Константа c multiquadric ядра
        chunk_size: Количество строк матрицы, собираемых за один проход
    """

    def __init__(self, smoothing: float = DEFAULT_SMOOTHING, chunk_size: int = 1024):
        self.smoothing = validate_smoothing(smoothing)

        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = int(chunk_size)

    def kernel(self, r):
        """Ядро с настроенной константой сглаживания"""
        return multiquadric(r, self.smoothing)

    def build(
        self,
        points: Union[PointSet, np.ndarray, torch.Tensor]
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Сборка системной матрицы и вектора ограничений

        Args:
            points: Набор точек [N, 3], N >= 1

        Returns:
            matrix: Системная матрица [N, N] (float64)
            constraints: Вектор ограничений [N] (нули)
        """
        coords = self._to_tensor(points)
        num_points = coords.shape[0]

        if num_points == 0:
            raise InvalidInputError("Cannot build a system matrix from an empty point set")

        matrix = torch.empty((num_points, num_points), dtype=torch.float64)

        # Строки независимы, собираем блоками для контроля памяти
        for start in range(0, num_points, self.chunk_size):
            end = min(start + self.chunk_size, num_points)
            distances = pairwise_distances(coords[start:end], coords)
            matrix[start:end] = self.kernel(distances)

        constraints = torch.zeros(num_points, dtype=torch.float64)

        logger.debug(f"Assembled {num_points}x{num_points} system matrix (c={self.smoothing})")
        return matrix, constraints

    @staticmethod
    def _to_tensor(points) -> torch.Tensor:
        if isinstance(points, PointSet):
            return points.as_tensor()

        if isinstance(points, torch.Tensor):
            coords = points.detach().to(dtype=torch.float64, device='cpu')
        else:
            coords = torch.from_numpy(np.array(points, dtype=np.float64))

        if coords.numel() == 0:
            return coords.reshape(0, 3)
        if coords.dim() != 2 or coords.shape[1] != 3:
            raise InvalidInputError(f"Points must have shape (n, 3), got {tuple(coords.shape)}")
        if not torch.isfinite(coords).all():
            raise InvalidInputError("Points contain NaN or infinite values")
        return coords
