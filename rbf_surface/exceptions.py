"""
Иерархия исключений для реконструкции поверхностей
"""

from typing import Optional


class ReconstructionError(Exception):
    """Базовое исключение ядра реконструкции"""


class InvalidInputError(ReconstructionError, ValueError):
    """Некорректные входные данные (пустое облако, неверные размеры, NaN)"""


class ConfigurationError(ReconstructionError, ValueError):
    """Некорректные параметры (шаг сетки, порог, сглаживание)"""


class NumericalFailureError(ReconstructionError, ArithmeticError):
    """
    Система вырождена или слишком плохо обусловлена

    Обычно вызвано совпадающими или почти совпадающими точками.
    Можно повторить с возмущенными точками, большим сглаживанием
    или после удаления дубликатов.
    """

    def __init__(
        self,
        message: str,
        pivot_index: Optional[int] = None,
        pivot_value: Optional[float] = None
    ):
        super().__init__(message)
        self.pivot_index = pivot_index
        self.pivot_value = pivot_value
