"""
Конфигурация конвейера и перечисления режимов.

Содержит:
    - Перечисления View, DeconvAlgo, DisparityAlgo
    - Правила округления ширины ядра и числа слоев
    - Класс данных DeblurConfig с загрузкой из JSON
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, fields
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Dict, Optional, Union


class View(IntEnum):
    """Вид стереопары: левый (опорный) и правый (сопоставляемый)."""
    LEFT = 0
    RIGHT = 1


class DeconvAlgo(Enum):
    """
    Алгоритм не-слепой деконволюции для выбора и распространения ядер.

    FFT : str
        Быстрое решение в частотной области (заметен звон на границах).
    IRLS : str
        Итеративный метод взвешенных наименьших квадратов (медленнее, чище).
    """
    FFT = "fft"
    IRLS = "irls"

    @classmethod
    def from_string(cls, value: str) -> 'DeconvAlgo':
        """Создание из строкового представления."""
        value_lower = value.lower()
        for algo in cls:
            if algo.value == value_lower:
                return algo
        raise ValueError(f"Неизвестный алгоритм деконволюции: {value}")


class DisparityAlgo(Enum):
    """
    Алгоритм оценки диспаритета.

    SGBM : str
        Semi-global block matching (OpenCV).
    MATCH : str
        Блочное сопоставление по сумме абсолютных разностей.
    """
    SGBM = "sgbm"
    MATCH = "match"

    @classmethod
    def from_string(cls, value: str) -> 'DisparityAlgo':
        """Создание из строкового представления."""
        value_lower = value.lower()
        for algo in cls:
            if algo.value == value_lower:
                return algo
        raise ValueError(f"Invalid disparity algorithm: {value}")


def odd_width(width: int) -> int:
    """Четная ширина ядра уменьшается на единицу (6 -> 5)."""
    return width - 1 if width % 2 == 0 else width


def even_layers(layers: int) -> int:
    """Нечетное число слоев уменьшается на единицу (5 -> 4)."""
    return layers if layers % 2 == 0 else layers - 1


@dataclass
class DeblurConfig:
    """
    Параметры конвейера оценки ядер и деконволюции.

    Атрибуты
    --------
    psf_width : int
        Запрошенная ширина ядра (четная округляется вниз до нечетной).
    layers : int
        Запрошенное число слоев глубины (нечетное округляется вниз до четного).
    deconv_algo : DeconvAlgo
        Деконволюция для распространения и выбора ядер.
    disparity_algo : DisparityAlgo
        Алгоритм оценки диспаритета.
    max_disparity : int
        Максимальный диспаритет в пикселях полного разрешения.
    max_toplevel_nodes : int
        Максимальное число узлов верхнего уровня дерева регионов.
    threads : int
        Число параллельных исполнителей (1 - только вызывающий поток).
    kernel_dir : str
        Директория с файлами kernel<i>.png для узлов верхнего уровня.
    debug_dir : Optional[str]
        Директория для отладочных изображений (None - не сохранять).
    reliability_ratio : float
        Порог надежности ядра относительно средней энтропии уровня.
    gamma : float
        Вес регуляризации в совместной оценке PSF.
    """
    psf_width: int = 35
    layers: int = 12
    deconv_algo: DeconvAlgo = DeconvAlgo.IRLS
    disparity_algo: DisparityAlgo = DisparityAlgo.SGBM
    max_disparity: int = 80
    max_toplevel_nodes: int = 3
    threads: int = 4
    kernel_dir: str = '.'
    debug_dir: Optional[str] = None
    reliability_ratio: float = 0.2
    gamma: float = 1.0

    def __post_init__(self) -> None:
        if isinstance(self.deconv_algo, str):
            self.deconv_algo = DeconvAlgo.from_string(self.deconv_algo)
        if isinstance(self.disparity_algo, str):
            self.disparity_algo = DisparityAlgo.from_string(self.disparity_algo)

    @property
    def effective_psf_width(self) -> int:
        return odd_width(self.psf_width)

    @property
    def effective_layers(self) -> int:
        return even_layers(self.layers)

    def validate(self) -> bool:
        """Проверка корректности параметров."""
        if self.effective_psf_width < 1:
            raise ValueError(f"psf_width должен быть положительным: {self.psf_width}")
        if self.effective_layers < 2:
            raise ValueError(f"Нужно как минимум 2 слоя глубины: {self.layers}")
        if self.max_disparity < 1:
            raise ValueError(f"max_disparity должен быть положительным: {self.max_disparity}")
        if self.max_toplevel_nodes < 1:
            raise ValueError(
                f"max_toplevel_nodes должен быть положительным: {self.max_toplevel_nodes}"
            )
        if self.threads < 1:
            raise ValueError(f"threads должен быть >= 1: {self.threads}")
        if self.gamma < 0:
            raise ValueError(f"gamma не может быть отрицательным: {self.gamma}")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь (перечисления - строками)."""
        data = asdict(self)
        data['deconv_algo'] = self.deconv_algo.value
        data['disparity_algo'] = self.disparity_algo.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeblurConfig':
        """Создание из словаря; неизвестные ключи считаются ошибкой."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Неизвестные параметры конфигурации: {sorted(unknown)}")
        config = cls(**data)
        config.validate()
        return config

    @classmethod
    def from_json(cls, file: Union[str, Path]) -> 'DeblurConfig':
        """Загрузка параметров из JSON-файла."""
        with open(file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)
