"""
Оценка ядер дочерних регионов и выбор кандидатов.

Возможности:
    - Градиенты размытых видов (один раз на проход распространения).
    - Оценка ядра потомка по ядру родителя (деконволюция, значимые края,
      совместная оценка PSF).
    - Энтропия ядра и проверка надежности относительно уровня.
    - Набор кандидатов (свое ядро, ядро родителя, надежное ядро соседа)
      и выбор победителя по энергии корреляции градиентов.
"""

import logging
from typing import Any, List, Optional, Tuple

import numpy as np

from depth_deblur.algorithms.edge_map import (
    compute_salient_edge_map,
    mask_gradients,
    normalized_gradients,
)
from depth_deblur.algorithms.joint_psf import joint_psf_estimation
from depth_deblur.filters import CoherenceShockFilter, GaussianBlur
from depth_deblur.metrics import gradient_correlation, kernel_entropy
from depth_deblur.processing.config import DeconvAlgo, View


class KernelEstimator:
    """
    Модуль оценки и уточнения ядер узлов дерева регионов.

    Все методы читают изображения владельца и пишут только в узлы,
    переданные вызывающим исполнителем.
    """

    def __init__(self, deblur_instance: Any) -> None:
        """
        Инициализация.

        Параметры
        ---------
        deblur_instance : Any
            Ссылка на объект DepthDeblur с изображениями и деревом регионов.
        """
        self.deblur = deblur_instance
        self.grads = (None, None)
        self.smoothing = GaussianBlur((5, 0))
        self.shock_filter = CoherenceShockFilter()
        self.logger = logging.getLogger(self.__class__.__name__)

    def compute_blurred_gradients(self) -> None:
        """Нормированные градиенты Собеля обоих размытых видов."""
        self.grads = (normalized_gradients(self.deblur.gray_images[View.LEFT]),
                      normalized_gradients(self.deblur.gray_images[View.RIGHT]))

    def _deconvolve(self, view: View, kernel: np.ndarray, mask: Optional[np.ndarray]) -> np.ndarray:
        image = self.deblur.float_images[view]
        if self.deblur.deconv_algo == DeconvAlgo.IRLS:
            return self.deblur.solver.deconvolve(image, kernel, mask)
        return self.deblur.solver.deconvolve(image, kernel)

    def estimate_child_psf(self,
                           parent_psf: np.ndarray,
                           masks: Tuple[np.ndarray, np.ndarray]) -> np.ndarray:
        """
        Оценка начального ядра потомка по ядру родителя.

        Параметры
        ---------
        parent_psf : np.ndarray
            Ядро родительского региона.
        masks : (mask_left, mask_right)
            Маски региона потомка для обоих видов.

        Возвращает
        ----------
        psf : np.ndarray
            Ядро размера psf_width с суммой 1.
        """
        if self.grads[0] is None:
            self.compute_blurred_gradients()

        psf_width = self.deblur.psf_width
        salient = []
        region_grads = []
        for view in (View.LEFT, View.RIGHT):
            latent = self._deconvolve(view, parent_psf, masks[view])
            latent = np.clip(latent, 0.0, 1.0) * 255.0
            salient.append(compute_salient_edge_map(latent, psf_width, masks[view],
                                                    shock_filter=self.shock_filter))
            region_grads.append(mask_gradients(self.grads[view], masks[view]))

        return joint_psf_estimation(salient[View.LEFT], salient[View.RIGHT],
                                    region_grads[View.LEFT], region_grads[View.RIGHT],
                                    psf_width, gamma=self.deblur.config.gamma)

    @staticmethod
    def compute_entropy(kernel: np.ndarray) -> float:
        return kernel_entropy(kernel)

    def is_reliable_psf(self, node_id: int) -> bool:
        """
        Надежность ядра: entropy - mean < ratio * mean.

        mean - средняя энтропия всех узлов того же уровня. Сравнение
        строгое: ядро с энтропией ровно mean * (1 + ratio) ненадежно.
        """
        tree = self.deblur.region_tree
        peers = tree.get_level_peers(node_id)
        mean = float(np.mean([tree[nid].entropy for nid in peers]))
        threshold = self.deblur.config.reliability_ratio * mean
        return tree[node_id].entropy - mean < threshold

    def candidate_selection(self, node_id: int, sibling_id: int) -> List[np.ndarray]:
        """Кандидаты: свое ядро, ядро родителя, ядро соседа (если надежно)."""
        tree = self.deblur.region_tree
        candidates = [tree[node_id].psf, tree[tree[node_id].parent].psf]
        if self.is_reliable_psf(sibling_id):
            candidates.append(tree[sibling_id].psf)
        return candidates

    def psf_selection(self,
                      candidates: List[np.ndarray],
                      node_id: int) -> Tuple[np.ndarray, int, List[float]]:
        """
        Выбор ядра с минимальной энергией 1 - corr.

        Для каждого кандидата левый вид деконволюционируется, результат
        сглаживается и пропускается через shock-фильтр; энергия - единица
        минус корреляция градиентов латентного и отфильтрованного
        изображений внутри маски региона. При равенстве побеждает первый
        кандидат (свое ядро).

        Возвращает
        ----------
        winner : np.ndarray
            Ядро-победитель (копия).
        index : int
            Индекс победителя (0 - свое, 1 - родителя, 2 - соседа).
        energies : List[float]
            Энергии всех кандидатов.
        """
        tree = self.deblur.region_tree
        mask = tree.get_mask(node_id, View.LEFT)
        cache_leaf = tree.is_leaf(node_id) and self.deblur.deconv_algo == DeconvAlgo.IRLS

        min_energy = 2.0
        winner = 0
        energies = []
        for i, candidate in enumerate(candidates):
            latent = self._deconvolve(View.LEFT, candidate, mask)
            latent = np.clip(latent, 0.0, 1.0) * 255.0

            # сглаживается все изображение, чтобы не было эффектов на границе региона
            smoothed = self.smoothing(latent)
            shocked = self.shock_filter(smoothed)

            energy = 1.0 - gradient_correlation(latent, shocked, mask)
            energies.append(energy)
            self.logger.debug("node %d candidate %d: energy %.6f", node_id, i, energy)

            if energy < min_energy:
                min_energy = energy
                winner = i
                if cache_leaf:
                    self.deblur.leaf_cache[node_id] = np.round(latent).astype(np.uint8)

        self.logger.debug("node %d winner: %d (0: self, 1: parent, 2: sibling)", node_id, winner)
        self.deblur.reader.dump_kernel(f"mid-{node_id}-kernel-selection-{winner}", candidates[winner])
        return candidates[winner].copy(), winner, energies
