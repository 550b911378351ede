"""
Быстрая не-слепая деконволюция в частотной области.

Решение в замкнутой форме задачи

    argmin_x ||k ⊗ x - y||² + w (||∂_x x||² + ||∂_y x||²)

    X = conj(K) Y / (|K|² + w (|D_x|² + |D_y|²))

Быстро, но на резких краях и границах возникает звон.
"""

import numpy as np
from numpy.fft import fft2, ifft2
from typing import Optional, Tuple

from depth_deblur.algorithms.base import DeconvolutionAlgorithm, pad_for_kernel, crop_padding
from depth_deblur.utils import psf2otf


def gradient_otfs(shape: Tuple[int, int]) -> Tuple[np.ndarray, np.ndarray]:
    """
    БПФ операторов градиента (форвардные разности).

    Возвращает
    ----------
    F_dx, F_dy : ndarray (H, W), complex
    """
    H, W = shape
    dx = np.zeros((H, W), dtype=np.float64)
    dx[0, 0] = -1
    dx[0, 1] = 1

    dy = np.zeros((H, W), dtype=np.float64)
    dy[0, 0] = -1
    dy[1, 0] = 1

    return fft2(dx), fft2(dy)


class FFTDeconvolution(DeconvolutionAlgorithm):
    """
    Деконволюция с гауссовым априорным распределением градиентов.

    Параметры
    ---------
    param : dict
        - 'weight': вес регуляризации градиентов (float)

    Маска региона не используется: решение глобальное.
    """

    defaults = {'weight': 1e-2}

    def __init__(self, param=None):
        super().__init__('FFT', param)

    def _deconvolve_channel(self,
                            channel: np.ndarray,
                            kernel: np.ndarray,
                            mask: Optional[np.ndarray]) -> np.ndarray:
        padded, pads = pad_for_kernel(channel, kernel.shape)

        K = psf2otf(kernel, padded.shape)
        F_dx, F_dy = gradient_otfs(padded.shape)

        numerator = np.conj(K) * fft2(padded)
        denominator = (np.abs(K) ** 2
                       + self.param['weight'] * (np.abs(F_dx) ** 2 + np.abs(F_dy) ** 2))
        # на нулевой частоте |K| = 1 для нормированного ядра, деление безопасно
        latent = np.real(ifft2(numerator / np.maximum(denominator, 1e-12)))

        return crop_padding(latent, pads)
