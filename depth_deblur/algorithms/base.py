"""
Базовый класс для алгоритмов не-слепой деконволюции.
"""

import abc
import json
import time
import numpy as np
from typing import Any, Dict, List, Optional, Tuple


class DeconvolutionAlgorithm(abc.ABC):
    """
    Абстрактный базовый класс для алгоритмов не-слепой деконволюции.

    Ядро известно (оценено на предыдущем шаге), алгоритм восстанавливает
    латентное изображение. Маска региона может использоваться для
    взвешивания члена данных, при этом все изображение остается контекстом.

    Attributes
    ----------
    name : str
        Название алгоритма.
    param : dict
        Гиперпараметры алгоритма.
    timer : float
        Время выполнения последнего вызова deconvolve() в секундах.
    """

    name = 'default'
    param = None
    defaults: Dict[str, Any] = {}

    def __init__(self, name: str, param: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self.name = name
        self.param = dict(self.defaults)
        self.timer = -1
        if param:
            self.change_param(param)

    def change_param(self, param: Dict[str, Any]) -> None:
        """
        Изменение гиперпараметров алгоритма.

        Parameters
        ----------
        param : dict
            Словарь с параметрами для изменения.
        """
        if not isinstance(param, dict):
            return
        unknown = set(param) - set(self.defaults)
        if unknown:
            raise ValueError(f"Unknown parameters for {self.name}: {sorted(unknown)}")
        for key, value in param.items():
            if value is not None:
                self.param[key] = type(self.defaults[key])(value)

    def get_param(self) -> List[Tuple[str, Any]]:
        """Получение текущих гиперпараметров в виде списка (название, значение)."""
        return [(key, self.param[key]) for key in self.defaults]

    def get_name(self) -> str:
        return self.name

    def get_timer(self) -> float:
        """Время выполнения в секундах (-1 если не запускался)."""
        return self.timer

    def import_param_from_file(self, file: str) -> None:
        """Загрузка параметров из JSON-файла."""
        with open(file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        self.change_param(data)

    def deconvolve(self,
                   image: np.ndarray,
                   kernel: np.ndarray,
                   mask: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Восстановление латентного изображения по известному ядру.

        Parameters
        ----------
        image : np.ndarray
            Размытое изображение float в [0, 1], серое (H, W) или цветное (H, W, C).
        kernel : np.ndarray
            Ядро размытия (сумма 1).
        mask : Optional[np.ndarray]
            Бинарная маска региона (H, W).

        Returns
        -------
        latent : np.ndarray
            Латентное изображение float32 (значения не обрезаются).
        """
        start = time.perf_counter()
        kernel = np.asarray(kernel, dtype=np.float64)
        if image.ndim == 2:
            result = self._deconvolve_channel(image.astype(np.float64), kernel, mask)
        else:
            result = np.stack(
                [self._deconvolve_channel(image[..., c].astype(np.float64), kernel, mask)
                 for c in range(image.shape[2])],
                axis=-1,
            )
        self.timer = time.perf_counter() - start
        return result.astype(np.float32)

    @abc.abstractmethod
    def _deconvolve_channel(self,
                            channel: np.ndarray,
                            kernel: np.ndarray,
                            mask: Optional[np.ndarray]) -> np.ndarray:
        """Деконволюция одного канала."""
        pass


def pad_for_kernel(image: np.ndarray, kernel_shape: Tuple[int, int]) -> Tuple[np.ndarray, Tuple[int, int]]:
    """
    Отражающее дополнение изображения на размер ядра для циклической свертки.

    Возвращает
    ----------
    padded : ndarray
        Дополненное изображение.
    pads : tuple (ph, pw)
        Размер дополнения с каждой стороны.
    """
    kh, kw = kernel_shape
    ph, pw = kh, kw
    return np.pad(image, ((ph, ph), (pw, pw)), mode='reflect'), (ph, pw)


def crop_padding(padded: np.ndarray, pads: Tuple[int, int]) -> np.ndarray:
    """Обрезка дополнения, добавленного pad_for_kernel."""
    ph, pw = pads
    return padded[ph:padded.shape[0] - ph, pw:padded.shape[1] - pw]
