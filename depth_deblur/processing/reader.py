"""
Модуль ввода-вывода: загрузка ядер верхнего уровня и отладочный вывод.

Возможности:
    - Загрузить ядра kernel<i>.png для узлов верхнего уровня.
    - Сохранить маски и серые изображения регионов верхнего уровня
      для внешней оценки ядер.
    - Сохранить промежуточные ядра и изображения в отладочную директорию.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from depth_deblur.processing.config import View
from depth_deblur.utils import imread, imwrite, kernel_to_image, to_uint8


class ModuleReader:
    """
    Модуль загрузки ядер и сохранения регионов.

    Файлы ядер обмениваются по соглашению об именах: i-му узлу верхнего
    уровня (в порядке обхода) соответствует kernel<i>.png.
    """

    def __init__(self, deblur_instance: Any) -> None:
        """
        Инициализация.

        Параметры
        ---------
        deblur_instance : Any
            Ссылка на объект DepthDeblur с деревом регионов.
        """
        self.deblur = deblur_instance
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def debug_dir(self) -> Optional[Path]:
        debug_dir = self.deblur.config.debug_dir
        return Path(debug_dir) if debug_dir else None

    def load_toplevel_kernels(self, kernel_dir: Union[str, Path, None] = None) -> None:
        """
        Загрузка ядер верхнего уровня.

        Параметры
        ---------
        kernel_dir : str | Path | None
            Директория с kernel<i>.png (None - текущая рабочая директория).
        """
        tree = self.deblur.region_tree
        if tree is None:
            raise RuntimeError("Region tree is not built")
        folder = Path(kernel_dir) if kernel_dir is not None else Path.cwd()

        for i, node_id in enumerate(tree.toplevel_ids):
            path = folder / f"kernel{i}.png"
            if not path.exists():
                raise FileNotFoundError(f"Top-level kernel not found: {path}")
            image = imread(path, color=False)
            if image is None:
                raise FileNotFoundError(f"Failed to read top-level kernel: {path}")

            kernel = image.astype(np.float32)
            total = float(kernel.sum())
            if total <= 0:
                raise ValueError(f"Top-level kernel is empty: {path}")
            kernel /= total

            if kernel.shape != (self.deblur.psf_width, self.deblur.psf_width):
                self.logger.warning("kernel%d.png has shape %s, psf width is %d",
                                    i, kernel.shape, self.deblur.psf_width)

            tree[node_id].psf = kernel
            tree[node_id].entropy = self.deblur.kernels.compute_entropy(kernel)
            self.logger.info("Loaded %s for node %d (entropy %.4f)",
                             path.name, node_id, tree[node_id].entropy)
            self.dump_kernel(f"top-{node_id}-kernel", kernel)

    def save_toplevel_regions(self, folder: Union[str, Path]) -> None:
        """Сохранение mask-left<i>.png, mask-right<i>.png и region<i>.png."""
        tree = self.deblur.region_tree
        if tree is None:
            raise RuntimeError("Region tree is not built")
        folder = Path(folder)

        for i, node_id in enumerate(tree.toplevel_ids):
            mask_left, mask_right = tree.get_masks(node_id)
            region, _ = tree.get_region_image(node_id, View.LEFT)
            imwrite(folder / f"mask-left{i}.png", mask_left * 255)
            imwrite(folder / f"mask-right{i}.png", mask_right * 255)
            imwrite(folder / f"region{i}.png", region)
        self.logger.info("Saved %d top-level regions to %s", len(tree.toplevel_ids), folder)

    def dump_kernel(self, name: str, psf: np.ndarray) -> None:
        """Отладочное сохранение ядра, растянутого по максимуму."""
        if self.debug_dir is None:
            return
        imwrite(self.debug_dir / f"{name}.png", kernel_to_image(psf))

    def dump_image(self, name: str, image: np.ndarray) -> None:
        """Отладочное сохранение изображения (float - из диапазона [0, 1])."""
        if self.debug_dir is None:
            return
        if image.dtype != np.uint8:
            image = to_uint8(image)
        imwrite(self.debug_dir / f"{name}.png", image)
