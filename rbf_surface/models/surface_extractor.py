import math
import logging
from typing import Optional, Tuple

import numpy as np
from tqdm import tqdm

from .implicit_function import DEFAULT_THRESHOLD, ImplicitFunctionEvaluator, validate_threshold
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_GRID_STEP = 0.05
DEFAULT_BOUNDS = (-1.0, 1.0)

# Допуск на округление при вычислении числа шагов (2 / 0.1 и т.п.)
GRID_EPS = 1e-9


def validate_step(step: float) -> float:
    step = float(step)
    if not math.isfinite(step) or step <= 0:
        raise ConfigurationError(f"Grid step must be positive, got {step}")
    return step


def validate_bounds(bounds: Tuple[float, float]) -> Tuple[float, float]:
    try:
        lo, hi = (float(b) for b in bounds)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Bounds must be a pair of numbers, got {bounds!r}") from e

    if not (math.isfinite(lo) and math.isfinite(hi)) or lo >= hi:
        raise ConfigurationError(f"Invalid sampling bounds ({lo}, {hi})")
    return lo, hi


class SurfaceExtractor:
    """
    Извлечение точек нулевого уровня неявной функции на регулярной сетке

    Координаты узлов вычисляются как lo + k * step для целых k,
    без накопления шага сложением, поэтому набор узлов воспроизводим.
    Порядок обхода: x - внешний цикл, z - внутренний.

    Args:
        evaluator: Неявная функция
        bounds: Область семплирования по каждой оси
        chunk_size: Количество узлов сетки, вычисляемых за один проход
        show_progress: Показывать прогресс через tqdm
    """

    def __init__(
        self,
        evaluator: ImplicitFunctionEvaluator,
        bounds: Tuple[float, float] = DEFAULT_BOUNDS,
        chunk_size: int = 4096,
        show_progress: bool = False
    ):
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")

        self.evaluator = evaluator
        self.bounds = validate_bounds(bounds)
        self.chunk_size = int(chunk_size)
        self.show_progress = show_progress

        self.last_count: Optional[int] = None
        self.last_grid_size: Optional[int] = None

    def grid_coordinates(self, step: float) -> np.ndarray:
        """Координаты узлов вдоль одной оси"""
        step = validate_step(step)
        lo, hi = self.bounds

        num_steps = int(math.floor((hi - lo) / step + GRID_EPS))
        return lo + np.arange(num_steps + 1, dtype=np.float64) * step

    def grid_points(self, step: float) -> np.ndarray:
        """Все узлы сетки [G³, 3] в порядке обхода"""
        coords = self.grid_coordinates(step)
        xs, ys, zs = np.meshgrid(coords, coords, coords, indexing='ij')
        return np.stack([xs.ravel(), ys.ravel(), zs.ravel()], axis=1)

    def extract(self, step: float, threshold: float = DEFAULT_THRESHOLD) -> np.ndarray:
        """
        Узлы сетки с |f(p)| < threshold

        Args:
            step: Шаг сетки (> 0)
            threshold: Порог (>= 0; при 0 результат пуст)

        Returns:
            Точки поверхности [M, 3] в порядке обхода сетки
        """
        threshold = validate_threshold(threshold)
        coords = self.grid_coordinates(step)

        num_axis = len(coords)
        total = num_axis ** 3
        shape = (num_axis, num_axis, num_axis)

        kept = []
        chunk_starts = range(0, total, self.chunk_size)

        for start in tqdm(chunk_starts, desc='Sampling grid', disable=not self.show_progress):
            end = min(start + self.chunk_size, total)
            ix, iy, iz = np.unravel_index(np.arange(start, end), shape)
            points = np.stack([coords[ix], coords[iy], coords[iz]], axis=1)

            values = self.evaluator.evaluate_batch(points)
            mask = np.abs(values) < threshold
            if np.any(mask):
                kept.append(points[mask])

        surface_points = np.concatenate(kept, axis=0) if kept else np.empty((0, 3), dtype=np.float64)

        self.last_count = len(surface_points)
        self.last_grid_size = total

        logger.info(
            f"Extracted {len(surface_points)} surface points from {total} grid nodes "
            f"(step={step}, threshold={threshold})"
        )
        if len(surface_points) == 0:
            logger.warning("No grid node passed the threshold; try a larger threshold or a finer grid")

        return surface_points
