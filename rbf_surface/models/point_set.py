import logging
from typing import Iterable, Iterator, NamedTuple, Optional, Sequence

import numpy as np
import torch

from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)


class Point3D(NamedTuple):
    """Точка в R³"""
    x: float
    y: float
    z: float


def _as_readonly_array(values, name: str) -> np.ndarray:
    array = np.array(values, dtype=np.float64)

    # Пустой вход приводим к форме [0, 3]
    if array.size == 0:
        array = array.reshape(0, 3)

    if array.ndim != 2 or array.shape[1] != 3:
        raise InvalidInputError(f"{name} must have shape (n, 3), got {array.shape}")
    if not np.all(np.isfinite(array)):
        raise InvalidInputError(f"{name} contain NaN or infinite values")

    array.setflags(write=False)
    return array


class PointSet:
    """
    Неизменяемый упорядоченный набор точек

    Порядок точек фиксирует соответствие между индексом точки,
    строкой/столбцом системной матрицы и компонентой вектора весов.
    Нормали переносятся без изменений и ядром не используются.

    Args:
        coordinates: Координаты [N, 3]
        normals: Нормали [N, 3] (опционально)
    """

    def __init__(self, coordinates, normals=None):
        self._coordinates = _as_readonly_array(coordinates, 'coordinates')
        self._normals = None

        if normals is not None:
            self._normals = _as_readonly_array(normals, 'normals')
            if len(self._normals) != len(self._coordinates):
                raise InvalidInputError(
                    f"Got {len(self._normals)} normals for {len(self._coordinates)} points"
                )

    @classmethod
    def from_records(cls, records: Iterable[Sequence[float]]) -> 'PointSet':
        """
        Создание из записей загрузчика (x, y, z[, nx, ny, nz])

        Нормали сохраняются только если они есть у всех записей.
        """
        records = [list(record) for record in records]

        for idx, record in enumerate(records):
            if len(record) < 3:
                raise InvalidInputError(
                    f"Record {idx} has {len(record)} values, at least 3 are required"
                )

        coordinates = [record[:3] for record in records]
        normals = None
        if records and all(len(record) >= 6 for record in records):
            normals = [record[3:6] for record in records]

        return cls(coordinates, normals)

    @classmethod
    def from_array(cls, array) -> 'PointSet':
        """Создание из массива [N, 3] или [N, 6] (с нормалями)"""
        if isinstance(array, torch.Tensor):
            array = array.detach().cpu().numpy()
        array = np.asarray(array, dtype=np.float64)

        if array.size == 0:
            return cls(np.empty((0, 3)))
        if array.ndim != 2 or array.shape[1] < 3:
            raise InvalidInputError(f"Expected array of shape (n, 3) or (n, 6), got {array.shape}")

        normals = array[:, 3:6] if array.shape[1] >= 6 else None
        return cls(array[:, :3], normals)

    @property
    def coordinates(self) -> np.ndarray:
        """Координаты [N, 3] (только для чтения)"""
        return self._coordinates

    @property
    def normals(self) -> Optional[np.ndarray]:
        return self._normals

    @property
    def has_normals(self) -> bool:
        return self._normals is not None

    def as_tensor(self) -> torch.Tensor:
        """Копия координат в виде float64 тензора [N, 3]"""
        return torch.from_numpy(self._coordinates.copy())

    def with_coordinates(self, coordinates) -> 'PointSet':
        """Новый набор с теми же нормалями и новыми координатами"""
        return PointSet(coordinates, self._normals)

    def __len__(self) -> int:
        return len(self._coordinates)

    def __getitem__(self, idx: int) -> Point3D:
        x, y, z = self._coordinates[idx]
        return Point3D(float(x), float(y), float(z))

    def __iter__(self) -> Iterator[Point3D]:
        for idx in range(len(self)):
            yield self[idx]

    def __repr__(self) -> str:
        return f"PointSet(n={len(self)}, has_normals={self.has_normals})"
