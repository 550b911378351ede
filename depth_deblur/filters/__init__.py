"""
Пакет фильтров для латентных изображений.

Модули:
    base: Базовый класс FilterBase
    smooth: Гауссово сглаживание
    shock: Когерентный shock-фильтр
    blur: Размытие известным ядром (синтез данных)
"""

from depth_deblur.filters.base import FilterBase
from depth_deblur.filters.smooth import GaussianBlur
from depth_deblur.filters.shock import CoherenceShockFilter
from depth_deblur.filters.blur import KernelBlur, box_kernel

__all__ = [
    'FilterBase',
    'GaussianBlur',
    'CoherenceShockFilter',
    'KernelBlur',
    'box_kernel',
]
