"""
Метрики для ядер и восстановленных изображений.

Содержит:
    - Энтропию ядра (мера концентрации энергии)
    - Нормированную взаимную корреляцию и корреляцию градиентов
    - PSNR и SSIM для сравнения с эталоном
"""

import cv2 as cv
import numpy as np
from skimage.metrics import peak_signal_noise_ratio, structural_similarity
from typing import Optional


def kernel_entropy(kernel: np.ndarray) -> float:
    """
    Энтропия ядра -sum(p * log(p)) по ненулевым весам.

    Меньшее значение соответствует более острому, уверенному ядру.
    Нулевые веса пропускаются, чтобы не вычислять log(0).
    """
    p = np.asarray(kernel, dtype=np.float64).ravel()
    p = p[p > 0]
    return float(-np.sum(p * np.log(p)))


def cross_correlation(x: np.ndarray,
                      y: np.ndarray,
                      mask: Optional[np.ndarray] = None) -> float:
    """
    Нормированная взаимная корреляция двух изображений.

    Аргументы:
        x, y: Изображения одинакового размера
        mask: Бинарная маска области (None - все изображение)

    Возвращает:
        Значение в [-1, 1]; 0 если у одного из изображений нет разброса
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if mask is not None:
        selected = np.asarray(mask) != 0
        x = x[selected]
        y = y[selected]
    else:
        x = x.ravel()
        y = y.ravel()

    if x.size == 0:
        return 0.0

    dx = x - x.mean()
    dy = y - y.mean()
    denom = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denom < 1e-12:
        return 0.0
    return float(np.sum(dx * dy) / denom)


def _normed_gradient_magnitude(image: np.ndarray) -> np.ndarray:
    gx = cv.Sobel(image, cv.CV_32F, 1, 0, ksize=3)
    gy = cv.Sobel(image, cv.CV_32F, 0, 1, ksize=3)
    magnitude = np.sqrt(gx * gx + gy * gy)
    peak = magnitude.max()
    if peak > 0:
        magnitude /= peak
    return magnitude


def gradient_correlation(image1: np.ndarray,
                         image2: np.ndarray,
                         mask: np.ndarray) -> float:
    """
    Корреляция нормированных модулей градиентов двух изображений внутри маски.

    Аргументы:
        image1: Деконволюционное изображение
        image2: Эталон (например, после shock-фильтра)
        mask: Бинарная маска региона

    Возвращает:
        Нормированная взаимная корреляция модулей градиентов
    """
    gradients1 = _normed_gradient_magnitude(np.asarray(image1, dtype=np.float32))
    gradients2 = _normed_gradient_magnitude(np.asarray(image2, dtype=np.float32))
    return cross_correlation(gradients1, gradients2, mask)


def kernel_correlation(kernel1: np.ndarray, kernel2: np.ndarray) -> float:
    """Корреляция двух ядер одинакового размера."""
    if kernel1.shape != kernel2.shape:
        raise ValueError(f"Kernel shapes differ: {kernel1.shape} vs {kernel2.shape}")
    return cross_correlation(kernel1, kernel2)


def PSNR(original: np.ndarray,
         restored: np.ndarray) -> float:
    """Отношение пикового сигнала к шуму (дБ)."""
    return peak_signal_noise_ratio(original, restored)


def SSIM(original: np.ndarray,
         restored: np.ndarray,
         data_range: Optional[float] = None) -> float:
    """Индекс структурного сходства."""
    if data_range is None and original.dtype != np.uint8:
        data_range = float(original.max() - original.min())
    channel_axis = -1 if original.ndim == 3 else None
    return structural_similarity(original, restored,
                                 data_range=data_range,
                                 channel_axis=channel_axis)
