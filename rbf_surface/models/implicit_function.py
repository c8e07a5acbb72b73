import math
import logging
from dataclasses import dataclass
from typing import List, Union

import numpy as np
import torch

from .kernel_matrix import DEFAULT_SMOOTHING, multiquadric, pairwise_distances, validate_smoothing
from .point_set import PointSet
from ..exceptions import ConfigurationError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.01


def validate_threshold(threshold: float) -> float:
    """
    Порог должен быть неотрицательным числом (бесконечность допустима)

    Отрицательный порог - ошибка конфигурации. Нулевой порог допустим:
    условие |f| < 0 не выполняется ни в одной точке, результат пуст.
    """
    threshold = float(threshold)
    if math.isnan(threshold) or threshold < 0:
        raise ConfigurationError(f"Threshold must be non-negative, got {threshold}")
    return threshold


@dataclass
class ResidualReport:
    """Значения функции во входных точках"""
    values: np.ndarray
    total_error: float
    max_error: float

    @property
    def num_points(self) -> int:
        return len(self.values)

    def format_lines(self, points: np.ndarray) -> List[str]:
        """Строки вида f(x, y, z) = value"""
        lines = [
            f"f({p[0]:.6f}, {p[1]:.6f}, {p[2]:.6f}) = {value:.6e}"
            for p, value in zip(points, self.values)
        ]
        lines.append(f"Total error: {self.total_error:.6e}")
        return lines

    def __str__(self) -> str:
        return (
            f"ResidualReport(n={self.num_points}, total_error={self.total_error:.6e}, "
            f"max_error={self.max_error:.6e})"
        )


class ImplicitFunctionEvaluator:
    """
    Неявная функция f(p) = Σ λ_i · kernel(|p - p_i|)

    Args:
        points: Центры RBF (входные точки) [N, 3]
        weights: Веса λ [N]
        smoothing: Константа c multiquadric ядра
        chunk_size: Количество запросов, обрабатываемых за один проход
    """

    def __init__(
        self,
        points: PointSet,
        weights: Union[torch.Tensor, np.ndarray],
        smoothing: float = DEFAULT_SMOOTHING,
        chunk_size: int = 1024
    ):
        if not isinstance(points, PointSet):
            points = PointSet(points)
        if len(points) == 0:
            raise InvalidInputError("Cannot build an implicit function from an empty point set")

        weights = torch.as_tensor(weights, dtype=torch.float64).detach().clone().reshape(-1)
        if weights.shape[0] != len(points):
            raise InvalidInputError(
                f"Got {weights.shape[0]} weights for {len(points)} points"
            )
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")

        self.point_set = points
        self.smoothing = validate_smoothing(smoothing)
        self.chunk_size = int(chunk_size)

        self._centers = points.as_tensor()
        self._weights = weights

    @property
    def num_points(self) -> int:
        return len(self.point_set)

    @property
    def weights(self) -> np.ndarray:
        """Копия вектора весов"""
        return self._weights.numpy().copy()

    def evaluate(self, query) -> float:
        """Значение функции в одной точке"""
        query = self._as_queries(query)
        if query.shape[0] != 1:
            raise InvalidInputError(
                f"evaluate expects a single point, got {query.shape[0]}; use evaluate_batch"
            )
        return float(self._evaluate_tensor(query)[0])

    def evaluate_batch(self, queries) -> np.ndarray:
        """
        Значения функции для набора точек

        Args:
            queries: Точки [M, 3]

        Returns:
            Значения [M]
        """
        queries = self._as_queries(queries)
        values = torch.empty(queries.shape[0], dtype=torch.float64)

        for start in range(0, queries.shape[0], self.chunk_size):
            end = min(start + self.chunk_size, queries.shape[0])
            values[start:end] = self._evaluate_tensor(queries[start:end])

        return values.numpy()

    def is_on_surface(self, query, threshold: float = DEFAULT_THRESHOLD) -> bool:
        """|f(query)| < threshold"""
        threshold = validate_threshold(threshold)
        return abs(self.evaluate(query)) < threshold

    def residual_report(self, log: bool = False) -> ResidualReport:
        """
        Проверка точности интерполяции во входных точках

        В точной арифметике все значения равны нулю; это диагностика,
        а не критерий корректности.
        """
        values = self.evaluate_batch(self._centers)
        abs_values = np.abs(values)
        report = ResidualReport(
            values=values,
            total_error=float(np.sum(abs_values)),
            max_error=float(np.max(abs_values))
        )

        if log:
            for line in report.format_lines(self.point_set.coordinates):
                logger.info(line)

        return report

    def _evaluate_tensor(self, queries: torch.Tensor) -> torch.Tensor:
        distances = pairwise_distances(queries, self._centers)
        return multiquadric(distances, self.smoothing) @ self._weights

    @staticmethod
    def _as_queries(query) -> torch.Tensor:
        if isinstance(query, torch.Tensor):
            tensor = query.detach().to(device='cpu', dtype=torch.float64)
        else:
            tensor = torch.from_numpy(np.array(query, dtype=np.float64))

        if tensor.dim() == 1:
            tensor = tensor.unsqueeze(0)
        if tensor.dim() != 2 or tensor.shape[1] != 3:
            raise InvalidInputError(f"Query points must have shape (3,) or (m, 3), got {tuple(tensor.shape)}")
        if not torch.isfinite(tensor).all():
            raise InvalidInputError("Query points contain NaN or infinite values")
        return tensor
