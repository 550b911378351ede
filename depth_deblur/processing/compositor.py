"""
Модуль финальной деконволюции и сборки изображения по регионам.

Каждый регион деконволюционируется целиком (IRLS с маской региона),
затем результаты переносятся в итоговое изображение через маски
в порядке id.
"""

import logging
import threading
from typing import Any, Dict, Iterable

import numpy as np

from depth_deblur.metrics import PSNR
from depth_deblur.processing.config import View
from depth_deblur.processing.work_queue import TaskQueue, run_workers
from depth_deblur.utils import to_float, to_uint8


class ModuleCompositor:
    """
    Модуль параллельной деконволюции регионов и их сборки.

    Атрибуты
    --------
    regions : Dict[int, np.ndarray]
        Деконволюционированные изображения (uint8) последнего вызова по id узла.
    """

    def __init__(self, deblur_instance: Any) -> None:
        """
        Инициализация.

        Параметры
        ---------
        deblur_instance : Any
            Ссылка на объект DepthDeblur с деревом регионов и ядрами.
        """
        self.deblur = deblur_instance
        self.regions: Dict[int, np.ndarray] = {}
        self._regions_lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _source_image(self, view: View, color: bool) -> np.ndarray:
        if color:
            return to_float(self.deblur.images[view])
        return self.deblur.float_images[view]

    def _deconvolve_region(self, node_id: int, view: View, color: bool) -> None:
        tree = self.deblur.region_tree
        node = tree[node_id]
        if node.psf is None:
            raise RuntimeError(f"Node {node_id} has no kernel")

        cached = None
        if not color and view == View.LEFT and node.is_leaf:
            cached = self.deblur.leaf_cache.get(node_id)

        if cached is not None:
            self.logger.debug("node %d: reusing latent image from selection", node_id)
            result = cached
        else:
            image = self._source_image(view, color)
            latent = self.deblur.final_solver.deconvolve(image, node.psf, tree.get_mask(node_id, view))
            result = to_uint8(latent)

        with self._regions_lock:
            self.regions[node_id] = result

    def _require_tree(self) -> Any:
        tree = self.deblur.region_tree
        if tree is None:
            raise RuntimeError("Region tree is not built")
        return tree

    def _run(self, node_ids: Iterable[int], view: View, n_threads: int, color: bool) -> np.ndarray:
        tree = self._require_tree()
        view = View(view)
        node_ids = list(node_ids)
        self.regions = {}

        queue = TaskQueue(node_ids, lifo=True)

        def worker() -> None:
            while True:
                node_id = queue.get()
                if node_id is None:
                    return
                self._deconvolve_region(node_id, view, color)
                queue.task_done()

        if node_ids:
            run_workers(worker, n_threads, name=f"deconv-{view.name.lower()}", on_error=queue.close)

        template = self.deblur.images[view] if color else self.deblur.gray_images[view]
        result = np.zeros(template.shape, dtype=np.uint8)
        for node_id in sorted(node_ids):
            mask = tree.get_mask(node_id, view) != 0
            result[mask] = self.regions[node_id][mask]
            self.deblur.reader.dump_image(f"deconv-{view.name.lower()}-{node_id}", self.regions[node_id])

        self.logger.info("Composited %d regions for the %s view", len(node_ids), view.name.lower())
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("%s view: PSNR against the blurred input %.2f dB",
                              view.name.lower(), PSNR(template, result))
        return result

    def deconvolve(self, view: View, n_threads: int = 1, color: bool = False) -> np.ndarray:
        """
        Деконволюция вида по листовым регионам.

        Параметры
        ---------
        view : View
            Левый или правый вид.
        n_threads : int
            Число исполнителей.
        color : bool
            True - деконволюция цветного изображения по каналам.

        Возвращает
        ----------
        np.ndarray
            Итоговое изображение uint8 формы входного (серого или цветного).
        """
        return self._run(self._require_tree().leaf_ids, view, n_threads, color)

    def deconvolve_toplevel(self, view: View, n_threads: int = 1, color: bool = False) -> np.ndarray:
        """Деконволюция вида по регионам верхнего уровня."""
        return self._run(self._require_tree().toplevel_ids, view, n_threads, color)
