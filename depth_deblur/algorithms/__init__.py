"""
Пакет алгоритмов оценки ядер и деконволюции.

Модули:
    base: Базовый класс DeconvolutionAlgorithm
    fft_deconv: Быстрая деконволюция в частотной области
    irls_deconv: IRLS-деконволюция с маской региона
    edge_map: Градиенты и карты значимых краев
    joint_psf: Совместная оценка PSF по двум видам
"""

from depth_deblur.algorithms.base import DeconvolutionAlgorithm
from depth_deblur.algorithms.fft_deconv import FFTDeconvolution
from depth_deblur.algorithms.irls_deconv import IRLSDeconvolution
from depth_deblur.algorithms.joint_psf import joint_psf_estimation, delta_kernel
from depth_deblur.processing.config import DeconvAlgo


def create_deconvolution(algorithm: DeconvAlgo, param=None) -> DeconvolutionAlgorithm:
    """Создание алгоритма деконволюции по значению перечисления."""
    if algorithm == DeconvAlgo.FFT:
        return FFTDeconvolution(param)
    if algorithm == DeconvAlgo.IRLS:
        return IRLSDeconvolution(param)
    raise ValueError(f"Unknown deconvolution algorithm: {algorithm}")


__all__ = [
    'DeconvolutionAlgorithm',
    'FFTDeconvolution',
    'IRLSDeconvolution',
    'create_deconvolution',
    'joint_psf_estimation',
    'delta_kernel',
]
