import cv2 as cv
import numpy as np
from .base import FilterBase


def box_kernel(width: int, size: int = None) -> np.ndarray:
    """
    Нормированное прямоугольное ядро width x width.

    Аргументы:
        width: Сторона ненулевой части ядра
        size: Итоговый размер (ядро центрируется в матрице size x size)
    """
    size = size or width
    if width > size or (size - width) % 2:
        raise ValueError("Ядро должно центрироваться в матрице: size - width четно и >= 0")
    kernel = np.zeros((size, size), dtype=np.float32)
    offset = (size - width) // 2
    kernel[offset:offset + width, offset:offset + width] = 1.0
    return kernel / kernel.sum()


class KernelBlur(FilterBase):
    """
    Размытие сверткой с произвольным ядром.

    Используется для синтеза размытых видов с известной PSF.
    cv.filter2D вычисляет корреляцию, поэтому ядро переворачивается,
    чтобы получить свертку в той же модели, что и у деконволюции.

    Атрибуты:
        kernel (np.ndarray): Нормированное ядро нечетного размера
    """

    def __init__(self, kernel: np.ndarray) -> None:
        kernel = np.asarray(kernel, dtype=np.float32)
        if kernel.ndim != 2 or kernel.shape[0] % 2 == 0 or kernel.shape[1] % 2 == 0:
            raise ValueError("Ядро должно быть двумерным и нечетного размера")
        total = kernel.sum()
        if total <= 0:
            raise ValueError("Сумма ядра должна быть положительной")
        self.kernel = kernel / total
        super().__init__(self.kernel, 'blur')

    def discription(self) -> str:
        return f"|kernel_{self.kernel.shape[0]}x{self.kernel.shape[1]}"

    def filter(self, image: np.ndarray) -> np.ndarray:
        return cv.filter2D(image, -1, cv.flip(self.kernel, -1),
                           borderType=cv.BORDER_REFLECT)
