import torch
import numpy as np
from typing import Dict, List, Optional, Union
import logging
from scipy.spatial import cKDTree

from ..models.implicit_function import ResidualReport

logger = logging.getLogger(__name__)

PointsLike = Union[torch.Tensor, np.ndarray]


def _to_numpy(points: PointsLike) -> np.ndarray:
    if isinstance(points, torch.Tensor):
        points = points.detach().cpu().numpy()
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


class ReconstructionMetrics:
    """
    Класс для вычисления метрик качества реконструкции
    """

    def __init__(self):
        self.reset()

    def reset(self):
        """Сброс накопленных метрик"""
        self.metrics_history = {
            'residual_total': [],
            'residual_max': [],
            'residual_mean': [],
            'surface_points': []
        }

    def compute_residual_metrics(
        self,
        report: ResidualReport,
        surface_points: Optional[PointsLike] = None
    ) -> Dict[str, float]:
        """
        Метрики по отчету о невязках интерполяции

        Args:
            report: Отчет ImplicitFunctionEvaluator.residual_report()
            surface_points: Извлеченные точки поверхности [M, 3]

        Returns:
            Словарь с метриками
        """
        metrics = {
            'residual_total': float(report.total_error),
            'residual_max': float(report.max_error),
            'residual_mean': float(np.mean(np.abs(report.values)))
        }

        if surface_points is not None:
            metrics['surface_points'] = len(_to_numpy(surface_points))

        # Сохраняем метрики
        for key, value in metrics.items():
            if key in self.metrics_history:
                self.metrics_history[key].append(value)

        return metrics

    def get_summary(self) -> Dict[str, float]:
        """Усредненные метрики по всем накопленным реконструкциям"""
        summary = {}

        for metric_name, values in self.metrics_history.items():
            if values:
                summary[metric_name] = float(np.mean(values))

        self.reset()
        return summary

    def compute_chamfer_distance(
        self,
        points1: PointsLike,
        points2: PointsLike
    ) -> float:
        """
        Вычисление Chamfer Distance между двумя наборами точек

        Args:
            points1: Точки [N, 3]
            points2: Точки [M, 3]

        Returns:
            Chamfer distance (inf если один из наборов пуст)
        """
        points1 = _to_numpy(points1)
        points2 = _to_numpy(points2)

        if len(points1) == 0 or len(points2) == 0:
            logger.warning("Chamfer distance requested for an empty point set")
            return float('inf')

        # Build KD-trees для эффективного поиска
        tree1 = cKDTree(points1)
        tree2 = cKDTree(points2)

        dist1, _ = tree2.query(points1)
        dist2, _ = tree1.query(points2)

        return float(np.mean(dist1) + np.mean(dist2))

    def compute_f_score(
        self,
        points1: PointsLike,
        points2: PointsLike,
        threshold: float = 0.01
    ) -> float:
        """
        Вычисление F-Score между двумя наборами точек

        Args:
            points1: Точки [N, 3]
            points2: Точки [M, 3]
            threshold: Порог для определения совпадения

        Returns:
            F-Score
        """
        points1 = _to_numpy(points1)
        points2 = _to_numpy(points2)

        if len(points1) == 0 or len(points2) == 0:
            return 0.0

        tree1 = cKDTree(points1)
        tree2 = cKDTree(points2)

        # Precision: какая доля points1 близка к points2
        dist1, _ = tree2.query(points1)
        precision = np.mean(dist1 < threshold)

        # Recall: какая доля points2 близка к points1
        dist2, _ = tree1.query(points2)
        recall = np.mean(dist2 < threshold)

        if precision + recall == 0:
            return 0.0

        f_score = 2 * precision * recall / (precision + recall)
        return float(f_score)

    def compute_complete_metrics(
        self,
        surface_points: PointsLike,
        input_points: PointsLike,
        f_score_thresholds: Optional[List[float]] = None
    ) -> Dict[str, float]:
        """
        Сравнение извлеченной поверхности с входным облаком

        Args:
            surface_points: Извлеченные точки [M, 3]
            input_points: Входные (нормализованные) точки [N, 3]
            f_score_thresholds: Пороги для F-Score

        Returns:
            Словарь с метриками
        """
        thresholds = f_score_thresholds or [0.05, 0.1]

        metrics = {
            'chamfer_distance': self.compute_chamfer_distance(surface_points, input_points)
        }
        for threshold in thresholds:
            metrics[f'f_score_{threshold:g}'] = self.compute_f_score(
                surface_points, input_points, threshold=threshold
            )

        return metrics


def compute_chamfer_distance(
    points1: PointsLike,
    points2: PointsLike
) -> float:
    """Упрощенная функция для вычисления Chamfer Distance"""
    metrics = ReconstructionMetrics()
    return metrics.compute_chamfer_distance(points1, points2)


def compute_f_score(
    points1: PointsLike,
    points2: PointsLike,
    threshold: float = 0.01
) -> float:
    """Упрощенная функция для вычисления F-Score"""
    metrics = ReconstructionMetrics()
    return metrics.compute_f_score(points1, points2, threshold)
