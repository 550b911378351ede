"""
Пакет оценки пространственно-переменного ядра размытия по стереопаре.

Подпакеты:
    algorithms: Совместная оценка PSF, карты градиентов, не-слепая деконволюция
    filters: Сглаживающие фильтры и когерентный shock-фильтр
    processing: Дерево регионов, планировщик, компоновщик, фасад DepthDeblur

Модули:
    metrics: Энтропия ядра, корреляции, PSNR/SSIM
    utils: Загрузка/сохранение и преобразование изображений
    cli: Точка входа командной строки
"""

from depth_deblur.processing.config import DeblurConfig, DeconvAlgo, DisparityAlgo, View
from depth_deblur.processing.core import DepthDeblur

__all__ = [
    'DeblurConfig',
    'DeconvAlgo',
    'DisparityAlgo',
    'View',
    'DepthDeblur',
]

__version__ = '0.1.0'
