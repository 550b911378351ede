"""
Основной модуль конвейера оценки ядер по глубине и деконволюции.

Содержит класс DepthDeblur, который управляет конвейером для
смазанной стереопары: диспаритет, дерево регионов, ядра верхнего
уровня, иерархическое уточнение ядер и деконволюция по регионам.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from depth_deblur.algorithms import create_deconvolution
from depth_deblur.processing.compositor import ModuleCompositor
from depth_deblur.processing.config import DeblurConfig, DeconvAlgo, DisparityAlgo, View
from depth_deblur.processing.disparity import DisparityEstimator
from depth_deblur.processing.kernel_estimation import KernelEstimator
from depth_deblur.processing.reader import ModuleReader
from depth_deblur.processing.region_tree import RegionTree
from depth_deblur.processing.scheduler import ModuleScheduler
from depth_deblur.utils import to_float, to_gray


class DepthDeblur:

    """
    Оценка пространственно-переменного ядра и деконволюция стереопары.

    Атрибуты
    --------
    images : Tuple[np.ndarray, np.ndarray]
        Исходные изображения uint8 (серые или BGR).
    gray_images : Tuple[np.ndarray, np.ndarray]
        Серые изображения uint8.
    float_images : Tuple[np.ndarray, np.ndarray]
        Серые изображения float32 в [0, 1].
    psf_width : int
        Нечетная ширина ядра.
    layers : int
        Четное число слоев глубины.
    deconv_algo : DeconvAlgo
        Деконволюция для распространения и выбора ядер.
    disparity_maps : Tuple[Optional[np.ndarray], Optional[np.ndarray]]
        Квантованные карты диспаритета.
    region_tree : Optional[RegionTree]
        Дерево регионов.
    leaf_cache : Dict[int, np.ndarray]
        Латентные изображения листьев (левый вид), полученные при выборе ядер.
    """

    def __init__(self,
                 image_left: np.ndarray,
                 image_right: np.ndarray,
                 width: int = 35,
                 layers: int = 12,
                 deconv_algo: Union[DeconvAlgo, str] = DeconvAlgo.IRLS,
                 config: Optional[DeblurConfig] = None) -> None:
        """
        Инициализация.

        Параметры
        ---------
        image_left, image_right : np.ndarray
            Смазанные виды uint8 одинакового размера и числа каналов.
        width : int
            Ширина ядра (четная округляется вниз до нечетной).
        layers : int
            Число слоев глубины (нечетное округляется вниз до четного).
        deconv_algo : DeconvAlgo | str
            Деконволюция для оценки ядер (FFT или IRLS).
        config : Optional[DeblurConfig]
            Полная конфигурация; если задана, width, layers и deconv_algo
            берутся из нее.
        """
        if config is None:
            config = DeblurConfig(psf_width=width, layers=layers, deconv_algo=deconv_algo)
        config.validate()
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        if image_left is None or image_right is None:
            raise ValueError("Both views are required")
        if image_left.dtype != np.uint8 or image_right.dtype != np.uint8:
            raise ValueError(
                f"Views must be uint8: {image_left.dtype}, {image_right.dtype}"
            )
        if image_left.shape != image_right.shape:
            raise ValueError(
                f"Views differ in size or channels: {image_left.shape} vs {image_right.shape}"
            )

        self.psf_width = config.effective_psf_width
        self.layers = config.effective_layers
        self.deconv_algo = config.deconv_algo
        if self.psf_width != config.psf_width:
            self.logger.info("psf width %d rounded to %d", config.psf_width, self.psf_width)
        if self.layers != config.layers:
            self.logger.info("layers %d rounded to %d", config.layers, self.layers)

        self.images = (image_left, image_right)
        self.gray_images = (to_gray(image_left), to_gray(image_right))
        self.float_images = (to_float(self.gray_images[View.LEFT]),
                             to_float(self.gray_images[View.RIGHT]))

        self.disparity_maps: Tuple[Optional[np.ndarray], Optional[np.ndarray]] = (None, None)
        self.region_tree: Optional[RegionTree] = None
        self.leaf_cache: Dict[int, np.ndarray] = {}

        self.solver = create_deconvolution(self.deconv_algo)
        self.final_solver = create_deconvolution(DeconvAlgo.IRLS)
        self.disparity: Optional[DisparityEstimator] = None

        self.reader = ModuleReader(self)
        self.kernels = KernelEstimator(self)
        self.scheduler = ModuleScheduler(self)
        self.compositor = ModuleCompositor(self)

    def disparity_estimation(self,
                             algorithm: Union[DisparityAlgo, str, None] = None,
                             max_disparity: Optional[int] = None) -> None:
        """Оценка и квантование карт диспаритета обоих видов."""
        algorithm = self.config.disparity_algo if algorithm is None else algorithm
        max_disparity = self.config.max_disparity if max_disparity is None else max_disparity
        self.disparity = DisparityEstimator(algorithm, self.layers, max_disparity)
        dmaps = self.disparity.estimate(self.images[View.LEFT], self.images[View.RIGHT])
        self.set_disparity_maps(*dmaps)
        self.reader.dump_image("dmap-left", self._viewable(dmaps[0]))
        self.reader.dump_image("dmap-right", self._viewable(dmaps[1]))

    def _viewable(self, dmap: np.ndarray) -> np.ndarray:
        return np.round(dmap.astype(np.float32) * 255.0 / max(self.layers - 1, 1)).astype(np.uint8)

    def set_disparity_maps(self, dmap_left: np.ndarray, dmap_right: np.ndarray) -> None:
        """Установка готовых карт диспаритета (метки [0, layers - 1])."""
        expected = self.gray_images[View.LEFT].shape
        if dmap_left.shape != expected or dmap_right.shape != expected:
            raise ValueError(
                f"Disparity maps must have shape {expected}: {dmap_left.shape}, {dmap_right.shape}"
            )
        self.disparity_maps = (dmap_left, dmap_right)

    def region_tree_reconstruction(self, max_toplevel_nodes: Optional[int] = None) -> None:
        """Построение дерева регионов по квантованным картам диспаритета."""
        if self.disparity_maps[0] is None:
            raise RuntimeError("Disparity maps are not set")
        if max_toplevel_nodes is None:
            max_toplevel_nodes = self.config.max_toplevel_nodes
        tree = RegionTree.create(self.disparity_maps[View.LEFT], self.disparity_maps[View.RIGHT],
                                 self.layers,
                                 self.gray_images[View.LEFT], self.gray_images[View.RIGHT],
                                 max_toplevel_nodes)
        self.set_region_tree(tree)
        self.logger.info("Region tree: %d nodes, %d top-level", len(tree), len(tree.toplevel_ids))

    def set_region_tree(self, tree: RegionTree) -> None:
        """Установка готового дерева регионов."""
        self.region_tree = tree
        self.leaf_cache.clear()

    def toplevel_kernel_estimation(self, kernel_dir: Optional[str] = None) -> None:
        """Ядра верхнего уровня из файлов kernel<i>.png."""
        if kernel_dir is None:
            kernel_dir = self.config.kernel_dir
        self.reader.load_toplevel_kernels(kernel_dir)

    def mid_level_kernel_estimation(self, n_threads: Optional[int] = None) -> None:
        """Иерархическое распространение и уточнение ядер."""
        if self.region_tree is None:
            raise RuntimeError("Region tree is not built")
        n_threads = self.config.threads if n_threads is None else n_threads
        self.logger.info("Mid-level kernel estimation with %d threads", n_threads)
        self.scheduler.mid_level_kernel_estimation(n_threads)

    def deconvolve(self, view: View = View.LEFT, n_threads: Optional[int] = None,
                   color: bool = False) -> np.ndarray:
        """Деконволюция вида по листовым регионам."""
        n_threads = self.config.threads if n_threads is None else n_threads
        return self.compositor.deconvolve(view, n_threads, color)

    def deconvolve_toplevel(self, view: View = View.LEFT, n_threads: Optional[int] = None,
                            color: bool = False) -> np.ndarray:
        """Деконволюция вида по регионам верхнего уровня."""
        n_threads = self.config.threads if n_threads is None else n_threads
        return self.compositor.deconvolve_toplevel(view, n_threads, color)

    def run(self,
            n_threads: Optional[int] = None,
            color: bool = False,
            toplevel_only: bool = False,
            kernel_dir: Optional[str] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Полный конвейер для обоих видов.

        Параметры
        ---------
        n_threads : Optional[int]
            Число исполнителей (None - из конфигурации).
        color : bool
            Деконволюция цветных изображений.
        toplevel_only : bool
            Только ядра верхнего уровня, без иерархического уточнения.
        kernel_dir : Optional[str]
            Директория с kernel<i>.png (None - из конфигурации).

        Возвращает
        ----------
        (left, right) : Tuple[np.ndarray, np.ndarray]
            Восстановленные виды uint8.
        """
        if self.disparity_maps[0] is None:
            self.disparity_estimation()
        if self.region_tree is None:
            self.region_tree_reconstruction()
        self.toplevel_kernel_estimation(kernel_dir)

        if toplevel_only:
            return (self.deconvolve_toplevel(View.LEFT, n_threads, color),
                    self.deconvolve_toplevel(View.RIGHT, n_threads, color))

        self.mid_level_kernel_estimation(n_threads)
        return (self.deconvolve(View.LEFT, n_threads, color),
                self.deconvolve(View.RIGHT, n_threads, color))

    def get_config(self) -> Dict[str, Any]:
        """Текущая конфигурация в виде словаря."""
        return self.config.to_dict()
