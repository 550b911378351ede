"""
Карты градиентов размытых видов и карты значимых краев.

Значимые края (salient edges) - градиентное поле, в котором оставлены
только сильные и надежные края латентного изображения. Оно служит
целевым полем регрессии при совместной оценке ядра.

Литература:
    [1] Xu, L., & Jia, J. (2010). Two-phase kernel estimation for robust
        motion deblurring. ECCV 2010, 157-170.
"""

import logging
import math

import cv2 as cv
import numpy as np
from typing import Optional, Tuple

from depth_deblur.filters import CoherenceShockFilter, GaussianBlur

logger = logging.getLogger(__name__)

Gradients = Tuple[np.ndarray, np.ndarray]


def gradients(image: np.ndarray) -> Gradients:
    """Градиенты Собеля 3x3 по x и y (float32)."""
    image = np.asarray(image, dtype=np.float32)
    gx = cv.Sobel(image, cv.CV_32F, 1, 0, ksize=3, borderType=cv.BORDER_DEFAULT)
    gy = cv.Sobel(image, cv.CV_32F, 0, 1, ksize=3, borderType=cv.BORDER_DEFAULT)
    return gx, gy


def scale_gradients(grads: Gradients) -> Gradients:
    """
    Масштабирование пары градиентов общим максимумом модуля в [-1, 1].

    Нули остаются нулями: это важно для полей, обрезанных маской.
    """
    peak = max(float(np.abs(grads[0]).max()), float(np.abs(grads[1]).max()))
    if peak <= 0:
        return grads[0].copy(), grads[1].copy()
    return grads[0] / peak, grads[1] / peak


def normalized_gradients(image: np.ndarray) -> Gradients:
    """Градиенты Собеля, нормированные в [-1, 1]."""
    return scale_gradients(gradients(image))


def gradient_magnitude(grads: Gradients) -> np.ndarray:
    return np.sqrt(grads[0] * grads[0] + grads[1] * grads[1])


def mask_gradients(grads: Gradients, mask: np.ndarray) -> Gradients:
    """Обнуление градиентов вне маски региона."""
    selected = (np.asarray(mask) != 0).astype(np.float32)
    return grads[0] * selected, grads[1] * selected


def usefulness_map(grads: Gradients, window: int) -> np.ndarray:
    """
    Карта полезности краев r = |sum_w grad| / (sum_w |grad| + 0.5).

    Узкие структуры, меньшие ядра, дают малое r: их градиенты взаимно
    гасятся внутри окна, такие края вредят оценке ядра.
    """
    window = max(int(window), 1)
    sum_x = cv.boxFilter(grads[0], -1, (window, window), normalize=False)
    sum_y = cv.boxFilter(grads[1], -1, (window, window), normalize=False)
    sum_abs = cv.boxFilter(gradient_magnitude(grads), -1, (window, window), normalize=False)
    return np.sqrt(sum_x * sum_x + sum_y * sum_y) / (sum_abs + 0.5)


def compute_salient_edge_map(image: np.ndarray,
                             psf_width: int,
                             mask: Optional[np.ndarray] = None,
                             tau_r: float = 0.1,
                             smoothing: int = 5,
                             shock_filter: Optional[CoherenceShockFilter] = None) -> Gradients:
    """
    Построение карты значимых краев латентного изображения.

    Параметры
    ---------
    image : np.ndarray
        Латентное изображение (серое, диапазон [0, 255]).
    psf_width : int
        Ширина ядра: задает окно карты полезности и число сохраняемых пикселей.
    mask : Optional[np.ndarray]
        Маска региона; края вне маски обнуляются.
    tau_r : float
        Порог карты полезности.
    smoothing : int
        Размер гауссова сглаживания перед shock-фильтром.
    shock_filter : Optional[CoherenceShockFilter]
        Экземпляр shock-фильтра (по умолчанию - с параметрами по умолчанию).

    Возвращает
    ----------
    (sx, sy) : tuple of np.ndarray
        Градиенты значимых краев, нормированные в [-1, 1].
    """
    image = np.asarray(image, dtype=np.float32)
    if mask is None:
        mask = np.ones(image.shape[:2], dtype=np.uint8)
    selected = np.asarray(mask) != 0

    smoothed = GaussianBlur(smoothing)(image)
    shocked = (shock_filter or CoherenceShockFilter())(smoothed)
    grads = gradients(shocked)
    magnitude = gradient_magnitude(grads)

    r = usefulness_map(grads, psf_width)
    candidates = selected & (r >= tau_r) & (magnitude > 0)

    # порог по модулю: оставляем порядка 2 * sqrt(P_I * P_k) самых сильных пикселей
    area = int(selected.sum())
    n_keep = max(int(2 * math.sqrt(area * psf_width * psf_width)), 1)
    values = magnitude[candidates]
    if values.size == 0:
        logger.debug("Salient edge map is empty (region area %d)", area)
        zeros = np.zeros_like(magnitude)
        return zeros, zeros.copy()

    if values.size > n_keep:
        tau_s = np.partition(values, values.size - n_keep)[values.size - n_keep]
        keep = candidates & (magnitude >= tau_s)
    else:
        keep = candidates

    keep = keep.astype(np.float32)
    return scale_gradients((grads[0] * keep, grads[1] * keep))
