"""
Прямое решение плотной линейной системы методом Гаусса
"""

import math
import logging
from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np
import torch

from ..exceptions import ConfigurationError, InvalidInputError, NumericalFailureError

logger = logging.getLogger(__name__)

ArrayLike = Union[torch.Tensor, np.ndarray]


@dataclass
class SolveInfo:
    """Диагностика одного решения"""
    size: int
    row_swaps: int
    min_pivot: float
    max_abs_entry: float


class LinearSolver:
    """
    Метод Гаусса с частичным выбором ведущего элемента

    Семантика изменения входов задается явно параметром ``overwrite``:

    * ``overwrite=False`` (по умолчанию) - решатель работает с собственными
      копиями, матрица и вектор вызывающего кода не меняются;
    * ``overwrite=True`` - входы поглощаются решением: после возврата матрица
      содержит верхнетреугольную систему, а вектор - преобразованную правую
      часть. Требует float64 тензоров (или numpy массивов) на CPU.

    Args:
        pivot_tolerance: Относительный порог для ведущего элемента.
            Ведущий элемент с |a_ii| <= pivot_tolerance * max|A| считается нулевым.
    """

    def __init__(self, pivot_tolerance: float = 1e-12):
        pivot_tolerance = float(pivot_tolerance)
        if not math.isfinite(pivot_tolerance) or pivot_tolerance <= 0:
            raise ConfigurationError(
                f"pivot_tolerance must be positive, got {pivot_tolerance}"
            )
        self.pivot_tolerance = pivot_tolerance

    def solve(
        self,
        matrix: ArrayLike,
        rhs: ArrayLike,
        overwrite: bool = False,
        return_info: bool = False
    ):
        """
        Решение A·x = y

        Args:
            matrix: Квадратная матрица [N, N]
            rhs: Правая часть [N]
            overwrite: Разрешить изменение входов на месте (см. описание класса)
            return_info: Вернуть также SolveInfo

        Returns:
            x: Решение [N] (float64 тензор), либо (x, SolveInfo)
        """
        a, y = self._prepare(matrix, rhs, overwrite)
        n = y.shape[0]

        if not (torch.isfinite(a).all() and torch.isfinite(y).all()):
            raise NumericalFailureError("System contains NaN or infinite values")

        max_abs_entry = a.abs().max().item()
        threshold = self.pivot_tolerance * max_abs_entry

        row_swaps = 0
        min_pivot = float('inf')

        # Прямой ход
        for i in range(n):
            pivot_row = i + int(torch.argmax(a[i:, i].abs()))

            if pivot_row != i:
                a[[i, pivot_row]] = a[[pivot_row, i]]
                y[[i, pivot_row]] = y[[pivot_row, i]]
                row_swaps += 1

            pivot = a[i, i].item()
            if abs(pivot) <= threshold:
                raise NumericalFailureError(
                    f"Pivot {i} has magnitude {abs(pivot):.3e} "
                    f"(tolerance {threshold:.3e}); system is singular or ill-conditioned",
                    pivot_index=i,
                    pivot_value=pivot
                )
            min_pivot = min(min_pivot, abs(pivot))

            if i + 1 < n:
                factors = a[i + 1:, i] / pivot
                a[i + 1:, i:] -= torch.outer(factors, a[i, i:])
                a[i + 1:, i] = 0.0
                y[i + 1:] -= factors * y[i]

        # Обратный ход
        x = torch.zeros(n, dtype=torch.float64)
        for i in range(n - 1, -1, -1):
            tail = torch.dot(a[i, i + 1:], x[i + 1:])
            x[i] = (y[i] - tail) / a[i, i]

        if not torch.isfinite(x).all():
            raise NumericalFailureError("Solution contains NaN or infinite values")

        if min_pivot <= threshold * 1e3:
            logger.warning(
                f"System is close to singular: smallest pivot {min_pivot:.3e}, "
                f"largest entry {max_abs_entry:.3e}"
            )

        logger.debug(f"Solved {n}x{n} system, {row_swaps} row swaps, min pivot {min_pivot:.3e}")

        if return_info:
            info = SolveInfo(
                size=n,
                row_swaps=row_swaps,
                min_pivot=min_pivot,
                max_abs_entry=max_abs_entry
            )
            return x, info
        return x

    def _prepare(
        self,
        matrix: ArrayLike,
        rhs: ArrayLike,
        overwrite: bool
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Приведение входов к float64 тензорам (копии, если не overwrite)"""
        if overwrite:
            a = self._as_inplace_tensor(matrix, 'matrix')
            y = self._as_inplace_tensor(rhs, 'rhs')
        else:
            a = self._as_tensor_copy(matrix)
            y = self._as_tensor_copy(rhs)

        if a.dim() != 2 or a.shape[0] != a.shape[1]:
            raise InvalidInputError(f"Matrix must be square, got shape {tuple(a.shape)}")
        if y.dim() != 1 or y.shape[0] != a.shape[0]:
            raise InvalidInputError(
                f"Right-hand side of shape {tuple(y.shape)} does not match matrix {tuple(a.shape)}"
            )
        if a.shape[0] == 0:
            raise InvalidInputError("Cannot solve a zero-dimensional system")

        return a, y

    @staticmethod
    def _as_tensor_copy(values: ArrayLike) -> torch.Tensor:
        if isinstance(values, torch.Tensor):
            return values.detach().to(device='cpu', dtype=torch.float64).clone()
        return torch.tensor(np.asarray(values, dtype=np.float64))

    @staticmethod
    def _as_inplace_tensor(values: ArrayLike, name: str) -> torch.Tensor:
        if isinstance(values, np.ndarray):
            if values.dtype != np.float64 or not values.flags.writeable:
                raise InvalidInputError(
                    f"In-place solve requires a writable float64 {name}, got {values.dtype}"
                )
            if any(stride < 0 for stride in values.strides):
                raise InvalidInputError(f"In-place solve cannot use a reversed view as {name}")
            return torch.from_numpy(values)

        if isinstance(values, torch.Tensor):
            if values.dtype != torch.float64 or values.device.type != 'cpu':
                raise InvalidInputError(
                    f"In-place solve requires a float64 CPU {name}, "
                    f"got {values.dtype} on {values.device}"
                )
            return values.detach()

        raise InvalidInputError(f"In-place solve requires a tensor or ndarray {name}")
