"""
Совместная оценка PSF по двум видам стереопары.

Целевая функция (i ∈ {опорный, сопоставляемый} × {x, y}):

    E(k) = sum_i ||∂S_i ⊗ k - ∂B_i||² + γ ||k||²

где ∂S_i - градиенты значимых краев латентного изображения, ∂B_i -
градиенты размытого изображения внутри региона. Решение в замкнутой форме:

            sum_i conj(F(∂S_i)) · F(∂B_i)
    k = F⁻¹ ( ------------------------------------ )
            sum_i conj(F(∂S_i)) · F(∂S_i) + γ |F(δ)|²

Используются градиенты размытого региона, а не отдельно производная и
регион в частотной области: так на границе региона не появляются
огромные градиенты.

Литература:
    [1] Xu, L., & Jia, J. (2012). Depth-aware motion deblurring.
        IEEE International Conference on Computational Photography (ICCP).
"""

import logging

import numpy as np
from numpy.fft import fft2, ifft2
from typing import Sequence

logger = logging.getLogger(__name__)


def delta_kernel(psf_width: int) -> np.ndarray:
    """Ядро-импульс: единица в центре."""
    kernel = np.zeros((psf_width, psf_width), dtype=np.float32)
    kernel[psf_width // 2, psf_width // 2] = 1.0
    return kernel


def center_kernel(kernel: np.ndarray, psf_width: int) -> np.ndarray:
    """
    Перестановка квадрантов и вырезание ядра psf_width x psf_width.

    После обратного БПФ нулевой сдвиг находится в левом верхнем углу,
    а отрицательные сдвиги - у противоположных краев. Циклический сдвиг
    на (psf_width - 1) / 2 по обеим осям меняет местами диагонально
    противоположные блоки, и центр ядра оказывается в центре окна.
    """
    hs = (psf_width - 1) // 2
    shifted = np.roll(kernel, shift=(hs, hs), axis=(0, 1))
    return shifted[:psf_width, :psf_width].copy()


def joint_psf_estimation(salient_left: Sequence[np.ndarray],
                         salient_right: Sequence[np.ndarray],
                         region_grads_left: Sequence[np.ndarray],
                         region_grads_right: Sequence[np.ndarray],
                         psf_width: int,
                         gamma: float = 1.0) -> np.ndarray:
    """
    Оценка одного ядра по значимым краям и градиентам региона двух видов.

    Параметры
    ---------
    salient_left, salient_right : (sx, sy)
        Градиенты значимых краев латентных изображений.
    region_grads_left, region_grads_right : (bx, by)
        Градиенты размытых изображений, обрезанные маской региона.
    psf_width : int
        Ширина ядра (нечетная).
    gamma : float
        Вес регуляризации.

    Возвращает
    ----------
    psf : np.ndarray (psf_width, psf_width), float32
        Неотрицательное ядро с суммой 1.
    """
    salient = [*salient_left, *salient_right]
    blurred = [*region_grads_left, *region_grads_right]
    shape = salient[0].shape
    for field in salient + blurred:
        if field.shape != shape:
            raise ValueError(f"Gradient fields differ in shape: {field.shape} vs {shape}")
    if psf_width > min(shape):
        raise ValueError(f"psf_width {psf_width} exceeds image size {shape}")

    S = [fft2(np.asarray(s, dtype=np.float64)) for s in salient]
    B = [fft2(np.asarray(b, dtype=np.float64)) for b in blurred]

    delta = np.zeros(shape, dtype=np.float64)
    delta[0, 0] = 1.0
    D = fft2(delta)

    numerator = sum(np.conj(s) * b for s, b in zip(S, B))
    # conj(s) * s вещественно и неотрицательно
    denominator = sum(np.real(np.conj(s) * s) for s in S) + gamma * np.real(np.conj(D) * D)
    K = numerator / np.maximum(denominator, 1e-12)

    kernel = np.real(ifft2(K))

    # отрицательные значения - шум, иначе ядро становится "серым"
    kernel[kernel < 0] = 0

    psf = center_kernel(kernel, psf_width).astype(np.float32)

    total = float(psf.sum())
    if total <= 0:
        logger.warning("Joint PSF estimate is empty, falling back to delta kernel")
        return delta_kernel(psf_width)
    return psf / total
