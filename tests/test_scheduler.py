import threading

import numpy as np
import pytest

from depth_deblur.algorithms.joint_psf import delta_kernel
from depth_deblur.filters import box_kernel
from depth_deblur.processing.core import DepthDeblur
from depth_deblur.processing.region_tree import RegionNode, RegionTree

from conftest import block_texture


class RecordingKernels:
    """Замена KernelEstimator: ядро потомка - родительское ядро, уменьшенное вдвое по краям."""

    def __init__(self, tree):
        self.tree = tree
        self.estimated = []
        self.selections = []
        self.lock = threading.Lock()

    def compute_blurred_gradients(self):
        pass

    def estimate_child_psf(self, parent_psf, masks):
        with self.lock:
            self.estimated.append(parent_psf)
        psf = parent_psf * 0.5
        return psf / psf.sum()

    @staticmethod
    def compute_entropy(kernel):
        return float(kernel.sum())

    def candidate_selection(self, node_id, sibling_id):
        return [self.tree[node_id].psf, self.tree[self.tree[node_id].parent].psf,
                self.tree[sibling_id].psf]

    def psf_selection(self, candidates, node_id):
        with self.lock:
            self.selections.append((node_id, [c.copy() for c in candidates]))
        # победитель - ядро соседа
        return candidates[2].copy(), 2, [0.0, 0.0, 0.0]


def _deblur_with_tree(layers, max_toplevel, dmap_left=None, dmap_right=None):
    image = block_texture(32, 4)
    deblur = DepthDeblur(image, image.copy(), width=5, layers=layers, deconv_algo='fft')
    if dmap_left is None:
        dmap_left = np.repeat(np.arange(layers, dtype=np.uint16), 32 // layers + 1)[:32]
        dmap_left = np.tile(dmap_left, (32, 1))
        dmap_right = dmap_left.copy()
    deblur.set_disparity_maps(dmap_left, dmap_right)
    deblur.region_tree_reconstruction(max_toplevel)
    for i, tid in enumerate(deblur.region_tree.toplevel_ids):
        deblur.region_tree[tid].psf = box_kernel(1 + 2 * (i % 2), 5)
    deblur.kernels = RecordingKernels(deblur.region_tree)
    return deblur


@pytest.mark.parametrize("n_threads", [1, 2, 4])
@pytest.mark.parametrize("layers, max_toplevel", [(2, 1), (4, 1), (8, 3), (12, 3)])
def test_propagation_visits_every_node_once(layers, max_toplevel, n_threads):
    deblur = _deblur_with_tree(layers, max_toplevel)
    scheduler = deblur.scheduler
    scheduler.propagate(n_threads)

    tree = deblur.region_tree
    assert sorted(scheduler.visited) == list(range(len(tree)))
    assert scheduler.visited_leaves == deblur.layers
    assert all(node.psf is not None for node in tree.nodes)


def test_propagation_is_level_ordered_with_one_thread():
    deblur = _deblur_with_tree(4, 1)
    deblur.scheduler.propagate(1)
    assert deblur.scheduler.visited == [6, 4, 5, 0, 1, 2, 3]


def test_propagation_sets_child_entropies():
    deblur = _deblur_with_tree(4, 1)
    deblur.scheduler.propagate(2)
    tree = deblur.region_tree
    for node_id in range(6):
        assert tree[node_id].entropy == pytest.approx(1.0)


def test_empty_mask_falls_back_to_parent_kernel():
    layers = 2
    dmap_left = np.zeros((32, 32), dtype=np.uint16)
    dmap_left[:, 16:] = 1
    # в правом виде нет слоя 1
    dmap_right = np.zeros((32, 32), dtype=np.uint16)
    deblur = _deblur_with_tree(layers, 1, dmap_left, dmap_right)
    tree = deblur.region_tree
    parent_psf = np.random.default_rng(5).random((5, 5)).astype(np.float32)
    parent_psf /= parent_psf.sum()
    tree[2].psf = parent_psf

    deblur.scheduler.propagate(1)

    assert np.array_equal(tree[1].psf, parent_psf)
    assert tree[1].psf.dtype == parent_psf.dtype
    assert tree[1].psf is not parent_psf
    assert len(deblur.kernels.estimated) == 1


def test_refinement_selects_both_children_before_writing():
    deblur = _deblur_with_tree(2, 1)
    tree = deblur.region_tree
    tree[0].psf = box_kernel(1, 5)
    tree[1].psf = box_kernel(3, 5)

    deblur.scheduler.refine(2)

    # каждый потомок получил исходное ядро соседа, а не уже замененное
    assert np.array_equal(tree[0].psf, box_kernel(3, 5))
    assert np.array_equal(tree[1].psf, box_kernel(1, 5))
    for node_id, candidates in deblur.kernels.selections:
        own = box_kernel(1, 5) if node_id == 0 else box_kernel(3, 5)
        assert np.array_equal(candidates[0], own)


def test_mid_level_runs_both_passes():
    deblur = _deblur_with_tree(4, 1)
    deblur.leaf_cache[0] = np.zeros((32, 32), dtype=np.uint8)
    deblur.mid_level_kernel_estimation(2)
    assert sorted(node for node, _ in deblur.kernels.selections) == list(range(6))
    assert deblur.scheduler.visited_leaves == 4


def test_mid_level_requires_toplevel_kernels():
    deblur = _deblur_with_tree(2, 1)
    deblur.region_tree[2].psf = None
    with pytest.raises(RuntimeError):
        deblur.mid_level_kernel_estimation(1)


def test_missing_leaves_are_detected():
    deblur = _deblur_with_tree(2, 1)
    dmap_left, dmap_right = deblur.disparity_maps
    nodes = [RegionNode(0, (0,)), RegionNode(1, (1,))]
    nodes[0].psf = delta_kernel(5)
    deblur.set_region_tree(RegionTree.from_nodes(nodes, [0], dmap_left, dmap_right))
    with pytest.raises(RuntimeError):
        deblur.scheduler.propagate(1)


def test_tree_without_toplevel_nodes_returns_immediately():
    deblur = _deblur_with_tree(2, 1)
    dmap_left, dmap_right = deblur.disparity_maps
    deblur.set_region_tree(RegionTree.from_nodes([], [], dmap_left, dmap_right))
    deblur.scheduler.propagate(4)
    assert deblur.scheduler.visited == []


def test_worker_error_propagates():
    deblur = _deblur_with_tree(4, 1)

    def failing(parent_psf, masks):
        raise ArithmeticError("solver diverged")

    deblur.kernels.estimate_child_psf = failing
    with pytest.raises(ArithmeticError):
        deblur.scheduler.propagate(3)
