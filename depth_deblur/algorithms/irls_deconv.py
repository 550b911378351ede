"""
Не-слепая деконволюция методом итеративно перевзвешенных наименьших квадратов.

Решается задача с гипер-лапласовым априорным распределением градиентов

    argmin_x sum_p m_p (k ⊗ x - y)_p² + w sum_p (|∂_x x|_p^α + |∂_y x|_p^α)

Каждая внешняя итерация заменяет |u|^α квадратичной мажорантой с весами
max(|u|, ε)^(α-2) и решает получившуюся линейную систему методом
сопряженных градиентов. m_p - вес члена данных: 1 внутри региона и
mask_floor снаружи, так что регион доминирует, а остальное изображение
служит контекстом (нет звона на жесткой границе обрезки).

Литература:
    [1] Levin, A., Fergus, R., Durand, F., & Freeman, W. T. (2007).
        Image and depth from a conventional camera with a coded aperture.
        ACM Transactions on Graphics, 26(3).
"""

import numpy as np
from numpy.fft import fft2, ifft2
from scipy.sparse.linalg import cg, LinearOperator
from typing import Optional

from depth_deblur.algorithms.base import DeconvolutionAlgorithm, pad_for_kernel, crop_padding
from depth_deblur.algorithms.fft_deconv import gradient_otfs
from depth_deblur.utils import psf2otf


EPSILON = 1e-4


def _dx(v: np.ndarray) -> np.ndarray:
    return np.roll(v, -1, axis=1) - v


def _dy(v: np.ndarray) -> np.ndarray:
    return np.roll(v, -1, axis=0) - v


def _dx_t(u: np.ndarray) -> np.ndarray:
    return np.roll(u, 1, axis=1) - u


def _dy_t(u: np.ndarray) -> np.ndarray:
    return np.roll(u, 1, axis=0) - u


class IRLSDeconvolution(DeconvolutionAlgorithm):
    """
    IRLS-деконволюция с разреженным априорным распределением градиентов.

    Параметры
    ---------
    param : dict
        - 'weight': вес регуляризации (float)
        - 'alpha': показатель гипер-лапласова распределения (float, 0 < alpha <= 2)
        - 'iterations': число внешних итераций перевзвешивания (int)
        - 'cg_iterations': максимум итераций сопряженных градиентов (int)
        - 'mask_floor': вес члена данных вне маски региона (float)
    """

    defaults = {
        'weight': 2e-3,
        'alpha': 0.8,
        'iterations': 3,
        'cg_iterations': 25,
        'mask_floor': 0.01,
    }

    def __init__(self, param=None):
        super().__init__('IRLS', param)

    def _deconvolve_channel(self,
                            channel: np.ndarray,
                            kernel: np.ndarray,
                            mask: Optional[np.ndarray]) -> np.ndarray:
        padded, pads = pad_for_kernel(channel, kernel.shape)
        shape = padded.shape

        if mask is not None:
            mask_padded = np.pad((np.asarray(mask) != 0).astype(np.float64),
                                 ((pads[0], pads[0]), (pads[1], pads[1])),
                                 mode='edge')
            floor = self.param['mask_floor']
            data_weight = floor + (1.0 - floor) * mask_padded
        else:
            data_weight = np.ones(shape, dtype=np.float64)

        K = psf2otf(kernel, shape)
        K_conj = np.conj(K)

        def blur(v):
            return np.real(ifft2(K * fft2(v)))

        def blur_t(v):
            return np.real(ifft2(K_conj * fft2(v)))

        # начальное приближение - гауссово решение в частотной области
        F_dx, F_dy = gradient_otfs(shape)
        weight = self.param['weight']
        x = np.real(ifft2(K_conj * fft2(padded) /
                          np.maximum(np.abs(K) ** 2 + weight * (np.abs(F_dx) ** 2 + np.abs(F_dy) ** 2),
                                     1e-12)))

        b = blur_t(data_weight * padded).ravel()
        alpha = self.param['alpha']
        n = padded.size

        for _ in range(self.param['iterations']):
            wx = weight * np.maximum(np.abs(_dx(x)), EPSILON) ** (alpha - 2)
            wy = weight * np.maximum(np.abs(_dy(x)), EPSILON) ** (alpha - 2)

            def matvec(v_flat, wx=wx, wy=wy):
                v = v_flat.reshape(shape)
                result = (blur_t(data_weight * blur(v))
                          + _dx_t(wx * _dx(v))
                          + _dy_t(wy * _dy(v)))
                return result.ravel()

            A = LinearOperator((n, n), matvec=matvec, dtype=np.float64)
            x_flat, _ = cg(A, b, x0=x.ravel(), maxiter=self.param['cg_iterations'], rtol=1e-5)
            x = x_flat.reshape(shape)

        return crop_padding(x, pads)
