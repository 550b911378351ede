"""
Базовый класс для фильтров латентных изображений.

Все фильтры пакета работают с одноканальными или многоканальными
float32-изображениями и не меняют их диапазон значений.
"""

import abc
import numpy as np
from typing import Any


class FilterBase(abc.ABC):
    """
    Абстрактный базовый класс для фильтров изображений.

    Атрибуты:
        param (Any): Параметры фильтра
        type (str): Тип фильтра ('blur', 'smooth', 'shock')
    """

    param = None
    def __init__(self, param: Any, type: str) -> None:
        super().__init__()
        self.param = param
        self.type = type

    def get_type(self) -> str:
        """Возвращает тип фильтра"""
        return self.type

    def __call__(self, image: np.ndarray) -> np.ndarray:
        return self.filter(self._as_float(image))

    @staticmethod
    def _as_float(image: np.ndarray) -> np.ndarray:
        """Приведение к float32 без масштабирования."""
        if image.dtype == np.float32:
            return image
        return image.astype(np.float32)

    @abc.abstractmethod
    def discription(self) -> str:
        """Возвращает зашифрованное название фильтра и его параметры"""
        pass

    @abc.abstractmethod
    def filter(self, image: np.ndarray) -> np.ndarray:
        """
        Применение фильтра к изображению.

        Аргументы:
            image: Входное float32 изображение

        Возвращает:
            Отфильтрованное изображение того же размера
        """
        pass
