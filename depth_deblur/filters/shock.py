"""
Когерентный shock-фильтр.

Морфологический фильтр, усиливающий края вдоль направления наибольшего
контраста: там, где вторая производная вдоль этого направления
отрицательна, пиксель заменяется дилатацией, иначе эрозией.

Литература:
    [1] Weickert, J. (2003). Coherence-enhancing shock filters.
        Pattern Recognition, LNCS 2781, 1-8.
    [2] Osher, S., & Rudin, L. I. (1990). Feature-oriented image
        enhancement using shock filters. SIAM J. Numer. Anal., 27(4).
"""

import cv2 as cv
import numpy as np
from .base import FilterBase


class CoherenceShockFilter(FilterBase):
    """
    Когерентный shock-фильтр для построения резкого эталона.

    Параметры:
        sigma (int): Апертура оператора Собеля для вторых производных (нечетная, <= 31)
        str_sigma (int): Размер окна структурного тензора
        blend (float): Доля отфильтрованного изображения на каждой итерации
        iterations (int): Число итераций
    """

    def __init__(self,
                 sigma: int = 11,
                 str_sigma: int = 11,
                 blend: float = 0.5,
                 iterations: int = 4) -> None:
        if sigma % 2 == 0 or not 1 <= sigma <= 31:
            raise ValueError("Апертура Собеля должна быть нечетной и не больше 31")
        if not 0.0 <= blend <= 1.0:
            raise ValueError("blend должен лежать в [0, 1]")
        super().__init__((sigma, str_sigma, blend, iterations), 'shock')
        self.sigma = sigma
        self.str_sigma = str_sigma
        self.blend = blend
        self.iterations = iterations

    def discription(self) -> str:
        return f"|shock_{self.sigma}_{self.str_sigma}_{self.blend}_{self.iterations}"

    def filter(self, image: np.ndarray) -> np.ndarray:
        img = image.astype(np.float32, copy=True)
        h, w = img.shape[:2]

        for _ in range(self.iterations):
            gray = img if img.ndim == 2 else cv.cvtColor(img, cv.COLOR_BGR2GRAY)

            # [l1, l2, x1, y1, x2, y2] - собственный вектор x1, y1 для l1
            eigen = cv.cornerEigenValsAndVecs(gray, self.str_sigma, 3)
            eigen = eigen.reshape(h, w, 3, 2)
            x, y = eigen[:, :, 1, 0], eigen[:, :, 1, 1]

            gxx = cv.Sobel(gray, cv.CV_32F, 2, 0, ksize=self.sigma)
            gxy = cv.Sobel(gray, cv.CV_32F, 1, 1, ksize=self.sigma)
            gyy = cv.Sobel(gray, cv.CV_32F, 0, 2, ksize=self.sigma)
            gvv = x * x * gxx + 2 * x * y * gxy + y * y * gyy
            m = gvv < 0

            ero = cv.erode(img, None)
            dil = cv.dilate(img, None)
            shocked = ero
            shocked[m] = dil[m]
            img = img * (1.0 - self.blend) + shocked * self.blend

        return img
