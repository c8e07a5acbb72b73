import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.spatial import Delaunay, QhullError

from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

# Триангулятор получает точки [M, 3] и возвращает индексы треугольников [T, 3]
Triangulator = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class SurfaceMesh:
    """
    Вершины и треугольники как единый результат

    Индексы треугольников всегда ссылаются на вершины этого же объекта,
    поэтому буфер вершин для отображения строится только отсюда.
    """
    vertices: np.ndarray
    triangles: np.ndarray

    def __post_init__(self):
        vertices = np.array(self.vertices, dtype=np.float64).reshape(-1, 3)
        triangles = np.array(self.triangles, dtype=np.int64).reshape(-1, 3)

        if len(triangles) > 0 and (triangles.min() < 0 or triangles.max() >= len(vertices)):
            raise InvalidInputError(
                f"Triangle indices must lie in [0, {len(vertices)}), "
                f"got range [{triangles.min()}, {triangles.max()}]"
            )

        vertices.setflags(write=False)
        triangles.setflags(write=False)
        object.__setattr__(self, 'vertices', vertices)
        object.__setattr__(self, 'triangles', triangles)

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

    def index_buffer(self) -> np.ndarray:
        """Плоский массив индексов для отрисовки"""
        return self.triangles.ravel().copy()


def delaunay_surface_triangles(points: np.ndarray) -> np.ndarray:
    """
    Граничные грани 3D триангуляции Делоне

    Грань, принадлежащая ровно одному тетраэдру, лежит на границе
    комплекса Делоне.

    Args:
        points: Точки [M, 3]

    Returns:
        Треугольники [T, 3]
    """
    points = np.asarray(points, dtype=np.float64)
    if len(points) < 4:
        return np.empty((0, 3), dtype=np.int64)

    try:
        tetrahedra = Delaunay(points).simplices
    except QhullError as e:
        # Вырожденные (например, плоские) наборы точек
        logger.warning(f"Delaunay triangulation failed: {e}")
        return np.empty((0, 3), dtype=np.int64)

    face_count = {}
    for tet in tetrahedra:
        for face in itertools.combinations(sorted(tet), 3):
            face_count[face] = face_count.get(face, 0) + 1

    surface_faces = [face for face, count in face_count.items() if count == 1]
    if not surface_faces:
        return np.empty((0, 3), dtype=np.int64)
    return np.array(surface_faces, dtype=np.int64)


def triangulate(
    points: np.ndarray,
    triangulator: Optional[Triangulator] = None
) -> SurfaceMesh:
    """
    Триангуляция извлеченных точек

    Триангулятор получает копию ровно той последовательности, которая
    станет вершинами результата.

    Args:
        points: Точки поверхности [M, 3]
        triangulator: Функция триангуляции (по умолчанию Делоне)

    Returns:
        SurfaceMesh
    """
    triangulator = triangulator or delaunay_surface_triangles

    vertices = np.array(points, dtype=np.float64).reshape(-1, 3)
    vertices.setflags(write=False)

    triangles = triangulator(vertices)
    mesh = SurfaceMesh(vertices=vertices, triangles=triangles)

    logger.info(f"Generated {mesh.num_triangles} triangles over {mesh.num_vertices} vertices")
    return mesh
