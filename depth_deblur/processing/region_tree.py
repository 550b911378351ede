"""
Дерево регионов над слоями диспаритета.

Листья - слои глубины (лист i покрывает метку диспаритета i), внутренние
узлы - объединения соседних по глубине регионов. Узлы хранятся в массиве
и адресуются целочисленным id; связи parent/children задаются один раз
при построении. Изменяются только поля psf и entropy.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from depth_deblur.processing.config import View


@dataclass
class RegionNode:
    """
    Узел дерева регионов.

    Атрибуты
    --------
    node_id : int
        Индекс узла в дереве.
    layers : Tuple[int, ...]
        Метки диспаритета, покрываемые регионом.
    parent : Optional[int]
        Родитель (None для узлов верхнего уровня).
    children : Optional[Tuple[int, int]]
        Пара потомков (None для листьев).
    level : int
        Уровень: 0 у листьев, у родителя - максимум уровней потомков + 1.
    psf : Optional[np.ndarray]
        Текущее ядро региона.
    entropy : float
        Энтропия текущего ядра.
    """
    node_id: int
    layers: Tuple[int, ...]
    parent: Optional[int] = None
    children: Optional[Tuple[int, int]] = None
    level: int = 0
    psf: Optional[np.ndarray] = None
    entropy: float = 0.0
    masks: Dict[int, np.ndarray] = field(default_factory=dict, repr=False)

    @property
    def is_leaf(self) -> bool:
        return self.children is None


class RegionTree:
    """
    Бинарное дерево регионов для двух видов стереопары.

    Атрибуты
    --------
    nodes : List[RegionNode]
        Узлы, индексированные по node_id.
    toplevel_ids : List[int]
        Узлы верхнего уровня в порядке обхода.
    layers : int
        Число листьев (слоев глубины).
    disparity_maps : Tuple[np.ndarray, np.ndarray]
        Квантованные карты диспаритета левого и правого видов.
    gray_images : Tuple[Optional[np.ndarray], Optional[np.ndarray]]
        Серые изображения видов (для вырезания регионов).
    """

    def __init__(self) -> None:
        self.nodes: List[RegionNode] = []
        self.toplevel_ids: List[int] = []
        self.layers = 0
        self.disparity_maps: Tuple[Optional[np.ndarray], Optional[np.ndarray]] = (None, None)
        self.gray_images: Tuple[Optional[np.ndarray], Optional[np.ndarray]] = (None, None)
        self._mask_lock = threading.Lock()

    def __getitem__(self, node_id: int) -> RegionNode:
        return self.nodes[node_id]

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def leaf_ids(self) -> List[int]:
        return [node.node_id for node in self.nodes if node.is_leaf]

    @classmethod
    def create(cls,
               dmap_left: np.ndarray,
               dmap_right: np.ndarray,
               layers: int,
               gray_left: Optional[np.ndarray] = None,
               gray_right: Optional[np.ndarray] = None,
               max_toplevel_nodes: int = 3) -> 'RegionTree':
        """
        Построение дерева по квантованным картам диспаритета.

        Соседние узлы текущего уровня попарно объединяются (нечетный
        последний узел переходит на следующий уровень без изменений),
        пока узлов на уровне не станет не больше max_toplevel_nodes.

        Параметры
        ---------
        dmap_left, dmap_right : np.ndarray
            Карты диспаритета с метками [0, layers - 1].
        layers : int
            Число слоев глубины (листьев).
        gray_left, gray_right : Optional[np.ndarray]
            Серые изображения видов.
        max_toplevel_nodes : int
            Максимальное число узлов верхнего уровня.
        """
        if layers < 1:
            raise ValueError(f"Дереву нужен хотя бы один слой: {layers}")
        if max_toplevel_nodes < 1:
            raise ValueError(f"max_toplevel_nodes должен быть положительным: {max_toplevel_nodes}")
        if dmap_left.shape != dmap_right.shape:
            raise ValueError(
                f"Disparity maps differ in shape: {dmap_left.shape} vs {dmap_right.shape}"
            )

        tree = cls()
        tree.layers = layers
        tree.disparity_maps = (dmap_left, dmap_right)
        tree.gray_images = (gray_left, gray_right)

        for label in range(layers):
            tree.nodes.append(RegionNode(node_id=label, layers=(label,)))

        current = list(range(layers))
        while len(current) > max_toplevel_nodes:
            next_level = []
            for i in range(0, len(current) - 1, 2):
                next_level.append(tree._merge(current[i], current[i + 1]))
            if len(current) % 2:
                next_level.append(current[-1])
            current = next_level

        tree.toplevel_ids = current
        return tree

    @classmethod
    def from_nodes(cls,
                   nodes: Sequence[RegionNode],
                   toplevel_ids: Sequence[int],
                   dmap_left: np.ndarray,
                   dmap_right: np.ndarray,
                   gray_left: Optional[np.ndarray] = None,
                   gray_right: Optional[np.ndarray] = None) -> 'RegionTree':
        """
        Построение дерева из готовых узлов с проверкой структуры.

        Каждый узел имеет ноль или два потомка, ссылки parent согласованы
        с children, узлы верхнего уровня не имеют родителя.
        """
        tree = cls()
        tree.nodes = list(nodes)
        tree.toplevel_ids = list(toplevel_ids)
        tree.disparity_maps = (dmap_left, dmap_right)
        tree.gray_images = (gray_left, gray_right)

        for index, node in enumerate(tree.nodes):
            if node.node_id != index:
                raise ValueError(f"Node id {node.node_id} stored at index {index}")
            if node.children is not None:
                if len(node.children) != 2:
                    raise ValueError(f"Node {index} must have zero or two children")
                for cid in node.children:
                    if tree.nodes[cid].parent != index:
                        raise ValueError(f"Node {cid} does not point back to parent {index}")
        for tid in tree.toplevel_ids:
            if tree.nodes[tid].parent is not None:
                raise ValueError(f"Top-level node {tid} has a parent")

        tree.layers = len(tree.leaf_ids)
        return tree

    def _merge(self, first: int, second: int) -> int:
        node_id = len(self.nodes)
        a, b = self.nodes[first], self.nodes[second]
        node = RegionNode(node_id=node_id,
                          layers=a.layers + b.layers,
                          children=(first, second),
                          level=max(a.level, b.level) + 1)
        a.parent = node_id
        b.parent = node_id
        self.nodes.append(node)
        return node_id

    def is_leaf(self, node_id: int) -> bool:
        return self.nodes[node_id].is_leaf

    def sibling(self, node_id: int) -> Optional[int]:
        """Второй потомок родителя (None для узлов верхнего уровня)."""
        parent = self.nodes[node_id].parent
        if parent is None:
            return None
        first, second = self.nodes[parent].children
        return second if first == node_id else first

    def get_level_peers(self, node_id: int) -> List[int]:
        """Все узлы того же уровня, включая сам узел."""
        level = self.nodes[node_id].level
        return [node.node_id for node in self.nodes if node.level == level]

    def get_mask(self, node_id: int, view: View) -> np.ndarray:
        """
        Бинарная маска региона (uint8, 0/1) для вида.

        Маски вычисляются лениво и кэшируются в узле.
        """
        node = self.nodes[node_id]
        view = View(view)
        mask = node.masks.get(view)
        if mask is None:
            dmap = self.disparity_maps[view]
            if dmap is None:
                raise RuntimeError("Disparity maps are not set")
            mask = np.isin(dmap, node.layers).astype(np.uint8)
            with self._mask_lock:
                node.masks.setdefault(view, mask)
                mask = node.masks[view]
        return mask

    def get_masks(self, node_id: int) -> Tuple[np.ndarray, np.ndarray]:
        """Маски региона для левого и правого видов."""
        return self.get_mask(node_id, View.LEFT), self.get_mask(node_id, View.RIGHT)

    def get_region_image(self, node_id: int, view: View) -> Tuple[np.ndarray, np.ndarray]:
        """
        Серое изображение региона (вне маски - нули) и его маска.
        """
        gray = self.gray_images[View(view)]
        if gray is None:
            raise RuntimeError("Gray images are not set")
        mask = self.get_mask(node_id, view)
        region = np.zeros_like(gray)
        region[mask != 0] = gray[mask != 0]
        return region, mask
