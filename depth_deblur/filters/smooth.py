import cv2 as cv
import numpy as np
from typing import Union, Tuple
from .base import FilterBase


class GaussianBlur(FilterBase):
    """
    Гауссовский фильтр сглаживания латентного изображения.

    Перед shock-фильтром латентное изображение слегка сглаживается,
    чтобы подавить звон деконволюции. Фильтруется все изображение целиком,
    без обрезки по региону, чтобы не получить эффектов на границе.

    Параметры:
        kernel_size (int): Размер гауссовского ядра (должен быть нечетным и положительным)
        std (float): Стандартное отклонение (0 для автоматического расчета)
    """

    def __init__(self, params: Union[int, Tuple[int, float]] = 5) -> None:
        if isinstance(params, int):
            kernel_size = params
            std = 0
        else:
            kernel_size, std = params

        if kernel_size <= 0 or kernel_size % 2 == 0:
            raise ValueError("Размер ядра должен быть положительным нечетным числом")
        super().__init__(params, 'smooth')
        self.kernel_size = kernel_size
        self.std = std

    def discription(self) -> str:
        """Выдает название фильтра с параметром."""
        return f"|gaussianblur_{self.kernel_size}_{self.std}"

    def filter(self, image: np.ndarray) -> np.ndarray:
        return cv.GaussianBlur(image,
                               (self.kernel_size, self.kernel_size),
                               self.std,
                               borderType=cv.BORDER_DEFAULT)
