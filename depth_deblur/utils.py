"""
Вспомогательные функции для загрузки, сохранения и преобразования изображений.
"""

import cv2 as cv
import numpy as np
from pathlib import Path
from typing import Optional, Union


def imread(path: Union[str, Path], color: bool = False) -> Optional[np.ndarray]:
    """
    Загрузка изображения средствами OpenCV.

    Параметры
    ---------
    path : str | Path
        Путь к изображению.
    color : bool
        True - BGR, False - оттенки серого.

    Возвращает
    ----------
    Optional[np.ndarray]
        Изображение uint8 или None, если файл не удалось прочитать.
    """
    return cv.imread(str(path), cv.IMREAD_COLOR if color else cv.IMREAD_GRAYSCALE)


def imwrite(path: Union[str, Path], image: np.ndarray) -> None:
    """Сохранение изображения; ошибка записи считается фатальной."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cv.imwrite(str(path), image):
        raise IOError(f"Failed to write image: {path}")


def to_gray(image: np.ndarray) -> np.ndarray:
    """Перевод BGR-изображения в оттенки серого (серое возвращается как есть)."""
    if image.ndim == 3 and image.shape[2] == 3:
        return cv.cvtColor(image, cv.COLOR_BGR2GRAY)
    if image.ndim == 3:
        return image[..., 0]
    return image


def to_float(image: np.ndarray) -> np.ndarray:
    """Перевод изображения в float32 с диапазоном [0, 1]."""
    if image.dtype == np.uint8:
        return image.astype(np.float32) / 255.0
    return np.clip(image.astype(np.float32), 0.0, 1.0)


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Обрезка float-изображения до [0, 1] и перевод в uint8."""
    return np.round(np.clip(image, 0.0, 1.0) * 255.0).astype(np.uint8)


def kernel_to_image(kernel: np.ndarray) -> np.ndarray:
    """Ядро, растянутое по максимуму, для просмотра и сохранения."""
    peak = kernel.max()
    if peak <= 0:
        return np.zeros(kernel.shape, dtype=np.uint8)
    return np.round(kernel / peak * 255.0).astype(np.uint8)


def psf2otf(kernel: np.ndarray, shape) -> np.ndarray:
    """
    Передаточная функция ядра для изображения заданного размера.

    Ядро дополняется нулями и циклически сдвигается так, чтобы его центр
    оказался в точке (0, 0).
    """
    H, W = shape[:2]
    kh, kw = kernel.shape
    padded = np.zeros((H, W), dtype=np.float64)
    padded[:kh, :kw] = kernel
    padded = np.roll(padded, shift=-(kh // 2), axis=0)
    padded = np.roll(padded, shift=-(kw // 2), axis=1)
    return np.fft.fft2(padded)
