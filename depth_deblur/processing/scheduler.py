"""
Иерархический планировщик оценки ядер.

Дерево регионов обходится сверху вниз по уровням (FIFO). Текущий узел
отвечает за ядра своих потомков: на обоих проходах нужны и ядро
родителя, и ядро соседа. Проходы:
    1. Распространение: начальные ядра потомков по ядру родителя.
    2. Уточнение: выбор среди кандидатов (свое, родителя, соседа).
"""

import logging
import threading
from typing import Any, Callable, List

import numpy as np

from depth_deblur.processing.work_queue import TaskQueue, run_workers


class ModuleScheduler:
    """
    Модуль обхода дерева регионов пулом исполнителей.

    Атрибуты
    --------
    visited : List[int]
        Узлы, извлеченные из очереди за последний проход, в порядке извлечения.
    visited_leaves : int
        Число листьев, посещенных за последний проход.
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
        self.visited: List[int] = []
        self.visited_leaves = 0
        self._counter_lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _run_pass(self, process_children: Callable[[int, int, int], None],
                  n_threads: int, name: str) -> None:
        """Один проход сверху вниз с обработкой потомков каждого внутреннего узла."""
        tree = self.deblur.region_tree
        self.visited = []
        self.visited_leaves = 0

        queue = TaskQueue(tree.toplevel_ids)
        if queue.closed:
            self.logger.info("%s: no top-level nodes, nothing to do", name)
            return

        def worker() -> None:
            while True:
                node_id = queue.get()
                if node_id is None:
                    return
                with self._counter_lock:
                    self.visited.append(node_id)

                node = tree[node_id]
                if node.children is not None:
                    cid1, cid2 = node.children
                    process_children(node_id, cid1, cid2)
                    queue.put_many((cid1, cid2))
                else:
                    with self._counter_lock:
                        self.visited_leaves += 1
                queue.task_done()

        run_workers(worker, n_threads, name=name, on_error=queue.close)

        expected = len(tree.leaf_ids)
        if self.visited_leaves != expected:
            raise RuntimeError(
                f"{name}: visited {self.visited_leaves} leaves, expected {expected}"
            )
        self.logger.info("%s finished: %d nodes, %d leaves",
                         name, len(self.visited), self.visited_leaves)

    def _estimate_child(self, parent_id: int, child_id: int) -> None:
        tree = self.deblur.region_tree
        kernels = self.deblur.kernels
        masks = tree.get_masks(child_id)

        # совместная оценка невозможна, если глубина есть только в одном виде
        if np.sum(masks[0]) != 0 and np.sum(masks[1]) != 0:
            tree[child_id].psf = kernels.estimate_child_psf(tree[parent_id].psf, masks)
        else:
            self.logger.debug("node %d: empty mask in one view, using parent kernel", child_id)
            tree[child_id].psf = tree[parent_id].psf.copy()

        self.deblur.reader.dump_kernel(f"mid-{child_id}-kernel-init", tree[child_id].psf)

    def _propagate_children(self, node_id: int, cid1: int, cid2: int) -> None:
        tree = self.deblur.region_tree
        kernels = self.deblur.kernels

        self._estimate_child(node_id, cid1)
        self._estimate_child(node_id, cid2)

        tree[cid1].entropy = kernels.compute_entropy(tree[cid1].psf)
        tree[cid2].entropy = kernels.compute_entropy(tree[cid2].psf)
        self.logger.debug("entropy of node %d: %.6f, node %d: %.6f",
                          cid1, tree[cid1].entropy, cid2, tree[cid2].entropy)

    def _refine_children(self, node_id: int, cid1: int, cid2: int) -> None:
        tree = self.deblur.region_tree
        kernels = self.deblur.kernels

        candidates1 = kernels.candidate_selection(cid1, cid2)
        candidates2 = kernels.candidate_selection(cid2, cid1)

        # оба выбора до записи: иначе сосед увидит уже замененное ядро
        winner1, _, _ = kernels.psf_selection(candidates1, cid1)
        winner2, _, _ = kernels.psf_selection(candidates2, cid2)
        tree[cid1].psf = winner1
        tree[cid2].psf = winner2

    def propagate(self, n_threads: int = 1) -> None:
        """Проход 1: начальные ядра всех узлов по ядрам верхнего уровня."""
        self._run_pass(self._propagate_children, n_threads, name='propagation')

    def refine(self, n_threads: int = 1) -> None:
        """Проход 2: уточнение ядер выбором кандидатов."""
        self._run_pass(self._refine_children, n_threads, name='refinement')

    def mid_level_kernel_estimation(self, n_threads: int = 1) -> None:
        """Градиенты размытых видов, распространение, затем уточнение."""
        tree = self.deblur.region_tree
        for tid in tree.toplevel_ids:
            if tree[tid].psf is None:
                raise RuntimeError(f"Top-level node {tid} has no kernel")

        self.deblur.kernels.compute_blurred_gradients()
        self.propagate(n_threads)
        self.deblur.leaf_cache.clear()
        self.refine(n_threads)
