import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from ..exceptions import ConfigurationError
from ..models.point_set import PointSet

logger = logging.getLogger(__name__)

TEXT_FORMATS = {'.xyz', '.txt', '.pts', '.xyzn'}
OPEN3D_FORMATS = {'.ply', '.pcd'}


@dataclass
class NormalizationParams:
    """Параметры линейного отображения bounding box в [-1, 1]"""
    mins: np.ndarray
    maxs: np.ndarray

    @property
    def extents(self) -> np.ndarray:
        return self.maxs - self.mins

    def apply(self, coordinates: np.ndarray) -> np.ndarray:
        extents = self.extents
        safe_extents = np.where(extents > 0, extents, 1.0)
        normalized = (coordinates - self.mins) / safe_extents * 2.0 - 1.0
        # Вырожденная ось отображается в 0
        normalized[:, extents <= 0] = 0.0
        return normalized

    def invert(self, coordinates: np.ndarray) -> np.ndarray:
        coordinates = np.asarray(coordinates, dtype=np.float64)
        restored = (coordinates + 1.0) / 2.0 * self.extents + self.mins
        degenerate = self.extents <= 0
        restored[:, degenerate] = self.mins[degenerate]
        return restored


def compute_normalization(points: PointSet) -> NormalizationParams:
    coords = points.coordinates
    return NormalizationParams(mins=coords.min(axis=0), maxs=coords.max(axis=0))


def normalize_points(
    points: PointSet,
    return_params: bool = False
) -> Union[PointSet, Tuple[PointSet, NormalizationParams]]:
    """
    Отображение координат каждой оси в [-1, 1] по min/max

    Нормали переносятся без изменений. Пустой набор возвращается как есть.
    """
    if len(points) == 0:
        if return_params:
            return points, NormalizationParams(np.zeros(3), np.zeros(3))
        return points

    params = compute_normalization(points)
    normalized = points.with_coordinates(params.apply(points.coordinates))

    if return_params:
        return normalized, params
    return normalized


def denormalize_points(coordinates: np.ndarray, params: NormalizationParams) -> np.ndarray:
    """Обратное отображение из [-1, 1] в исходные координаты"""
    return params.invert(coordinates)


def parse_point_records(lines) -> List[List[float]]:
    """
    Разбор текстовых записей "x y z [nx ny nz]"

    Пустые строки, комментарии (#) и строки с менее чем тремя числами
    пропускаются.
    """
    records = []

    for line_no, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue

        parts = line.replace(',', ' ').split()
        try:
            values = [float(part) for part in parts[:6]]
        except ValueError:
            logger.debug(f"Skipping non-numeric line {line_no}: {line!r}")
            continue

        if len(values) < 3:
            logger.debug(f"Skipping short line {line_no}: {line!r}")
            continue

        # Нормали берем только если все три компоненты на месте
        records.append(values if len(values) >= 6 else values[:3])

    return records


def _read_text_point_cloud(path: Path) -> PointSet:
    with open(path, 'r') as f:
        records = parse_point_records(f)
    return PointSet.from_records(records)


def _read_open3d_point_cloud(path: Path) -> PointSet:
    import open3d as o3d

    pcd = o3d.io.read_point_cloud(str(path))
    coordinates = np.asarray(pcd.points, dtype=np.float64)
    normals = np.asarray(pcd.normals, dtype=np.float64) if pcd.has_normals() else None
    return PointSet(coordinates, normals)


def load_point_cloud(path: Union[str, Path]) -> PointSet:
    """
    Загрузка облака точек из файла

    Args:
        path: .xyz/.txt/.pts (текст) или .ply/.pcd (через open3d)

    Returns:
        PointSet
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in OPEN3D_FORMATS:
        points = _read_open3d_point_cloud(path)
    else:
        if suffix not in TEXT_FORMATS:
            logger.warning(f"Unknown extension {suffix!r}, reading {path.name} as text")
        points = _read_text_point_cloud(path)

    logger.info(f"Loaded points = {len(points)} from {path.name}")
    return points


class PointCloudLoader:
    """
    Загрузчик облака точек с нормализацией и прореживанием

    Args:
        normalize: Нормализовать координаты в [-1, 1]
        max_points: Максимальное количество точек (случайная подвыборка)
        seed: Seed для подвыборки
    """

    def __init__(
        self,
        normalize: bool = True,
        max_points: Optional[int] = None,
        seed: int = 42
    ):
        if max_points is not None and max_points <= 0:
            raise ConfigurationError(f"max_points must be positive, got {max_points}")

        self.normalize = normalize
        self.max_points = max_points
        self.seed = seed
        self.normalization: Optional[NormalizationParams] = None

    def load(self, path: Union[str, Path]) -> PointSet:
        points = load_point_cloud(path)
        points = self.subsample(points)

        if self.normalize:
            points, self.normalization = normalize_points(points, return_params=True)
            logger.debug(
                f"Normalized bounding box {self.normalization.mins} - {self.normalization.maxs}"
            )

        return points

    def subsample(self, points: PointSet) -> PointSet:
        """Случайная подвыборка с сохранением исходного порядка точек"""
        if self.max_points is None or len(points) <= self.max_points:
            return points

        rng = np.random.default_rng(self.seed)
        indices = np.sort(rng.choice(len(points), size=self.max_points, replace=False))

        normals = points.normals[indices] if points.has_normals else None
        logger.info(f"Subsampled {len(points)} -> {self.max_points} points")
        return PointSet(points.coordinates[indices], normals)
