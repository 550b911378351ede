"""
Оценка и квантование карт диспаритета стереопары.

Изображения уменьшаются гауссовой пирамидой (размытие на малом масштабе
слабее мешает сопоставлению), диспаритет оценивается для обоих видов,
окклюзии заполняются фоном, карты совместно квантуются на слои глубины
и увеличиваются обратно без интерполяции.
"""

import logging
from typing import Tuple

import cv2 as cv
import numpy as np

from depth_deblur.processing.config import DisparityAlgo
from depth_deblur.utils import to_gray

logger = logging.getLogger(__name__)

SAMPLE_RATIO = 2


def fill_occlusions(dmap: np.ndarray) -> np.ndarray:
    """
    Заполнение недействительных (отрицательных) значений по строкам.

    Каждый пиксель окклюзии получает меньшее из значений ближайших
    действительных соседей слева и справа в своей строке. Строка без
    действительных значений заполняется нулями.
    """
    filled = dmap.astype(np.float32).copy()
    invalid = filled < 0
    if not invalid.any():
        return filled

    H, W = filled.shape
    columns = np.arange(W)[None, :]
    rows = np.arange(H)[:, None]

    left_idx = np.maximum.accumulate(np.where(invalid, -1, columns), axis=1)
    right_idx = np.minimum.accumulate(np.where(invalid, W, columns)[:, ::-1], axis=1)[:, ::-1]

    left_val = np.where(left_idx >= 0, filled[rows, np.clip(left_idx, 0, W - 1)], np.inf)
    right_val = np.where(right_idx < W, filled[rows, np.clip(right_idx, 0, W - 1)], np.inf)
    background = np.minimum(left_val, right_val)
    background[np.isinf(background)] = 0.0

    filled[invalid] = background[invalid]
    return filled


def quantize(dmaps: Tuple[np.ndarray, np.ndarray], layers: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Совместное равномерное квантование двух карт на layers меток.

    Общий диапазон [min, max] обеих карт делится на layers равных
    интервалов, поэтому одна метка означает одну глубину в обоих видах.
    """
    lo = min(float(dmaps[0].min()), float(dmaps[1].min()))
    hi = max(float(dmaps[0].max()), float(dmaps[1].max()))

    quantized = []
    for dmap in dmaps:
        if hi <= lo:
            labels = np.zeros(dmap.shape, dtype=np.uint16)
        else:
            labels = np.floor((dmap - lo) / (hi - lo) * layers)
            labels = np.clip(labels, 0, layers - 1).astype(np.uint16)
        quantized.append(labels)
    return quantized[0], quantized[1]


class DisparityEstimator:
    """
    Оценка квантованных карт диспаритета левого и правого видов.

    Параметры
    ---------
    algorithm : DisparityAlgo
        SGBM (полуглобальное сопоставление) или MATCH (блочное сопоставление).
    layers : int
        Число слоев глубины.
    max_disparity : int
        Максимальный диспаритет в пикселях полного разрешения.
    """

    def __init__(self, algorithm: DisparityAlgo, layers: int, max_disparity: int = 80) -> None:
        if isinstance(algorithm, str):
            algorithm = DisparityAlgo.from_string(algorithm)
        if not isinstance(algorithm, DisparityAlgo):
            raise ValueError(f"Invalid disparity algorithm: {algorithm}")
        if layers < 1:
            raise ValueError(f"layers должен быть положительным: {layers}")
        if max_disparity < 1:
            raise ValueError(f"max_disparity должен быть положительным: {max_disparity}")

        self.algorithm = algorithm
        self.layers = layers
        self.max_disparity = max_disparity
        self.logger = logging.getLogger(self.__class__.__name__)

    def _num_disparities(self) -> int:
        max_disparity = self.max_disparity
        if self.algorithm == DisparityAlgo.MATCH:
            max_disparity //= SAMPLE_RATIO
        # OpenCV требует кратность 16
        return max(16, int(np.ceil(max_disparity / 16.0)) * 16)

    def _create_matcher(self):
        num_disp = self._num_disparities()
        if self.algorithm == DisparityAlgo.SGBM:
            window_size = 5
            return cv.StereoSGBM_create(
                minDisparity=0,
                numDisparities=num_disp,
                blockSize=window_size,
                P1=8 * 3 * window_size ** 2,
                P2=32 * 3 * window_size ** 2,
                disp12MaxDiff=1,
                uniquenessRatio=10,
                speckleWindowSize=100,
                speckleRange=32,
                preFilterCap=63,
                mode=cv.STEREO_SGBM_MODE_SGBM_3WAY,
            )
        return cv.StereoBM_create(numDisparities=num_disp, blockSize=15)

    def _compute(self, matcher, left: np.ndarray, right: np.ndarray) -> np.ndarray:
        # StereoSGBM и StereoBM возвращают диспаритет * 16
        disparity = matcher.compute(left, right).astype(np.float32) / 16.0
        disparity[disparity < 0] = -1.0
        return disparity

    def estimate(self, left: np.ndarray, right: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Оценка квантованных карт диспаритета.

        Параметры
        ---------
        left, right : np.ndarray
            Изображения uint8 (серые или BGR) одинакового размера.

        Возвращает
        ----------
        (dmap_left, dmap_right) : Tuple[np.ndarray, np.ndarray]
            Метки слоев [0, layers - 1] в полном разрешении (uint16).
        """
        if left.shape != right.shape:
            raise ValueError(f"Views differ in shape: {left.shape} vs {right.shape}")

        views = (to_gray(left), to_gray(right))
        H, W = views[0].shape
        size = (W // SAMPLE_RATIO, H // SAMPLE_RATIO)
        small = [cv.pyrDown(view, dstsize=size) for view in views]

        matcher = self._create_matcher()
        self.logger.info("Disparity estimation (%s) at %dx%d, %d disparities",
                         self.algorithm.value, size[0], size[1], self._num_disparities())

        dmap_left = self._compute(matcher, small[0], small[1])
        # правый вид: зеркальные изображения меняются местами
        flipped = self._compute(matcher, cv.flip(small[1], 1), cv.flip(small[0], 1))
        dmap_right = cv.flip(flipped, 1)

        filled = (fill_occlusions(dmap_left), fill_occlusions(dmap_right))
        quantized = quantize(filled, self.layers)

        return tuple(cv.resize(q, (W, H), interpolation=cv.INTER_NEAREST) for q in quantized)
