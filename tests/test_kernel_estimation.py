import numpy as np
import pytest

from depth_deblur.algorithms.joint_psf import delta_kernel
from depth_deblur.filters import box_kernel
from depth_deblur.processing.config import DeconvAlgo


def test_reliability_threshold_is_strict(four_leaf_tree, small_deblur):
    small_deblur.set_region_tree(four_leaf_tree)
    tree = four_leaf_tree
    for node_id, entropy in zip(range(4), [2.0, 3.0, 2.0, 3.0]):
        tree[node_id].entropy = entropy
    kernels = small_deblur.kernels

    # среднее 2.5, порог 0.5: 3.0 - 2.5 = 0.5 не меньше порога
    assert kernels.is_reliable_psf(0)
    assert not kernels.is_reliable_psf(1)

    tree[1].entropy = 2.9
    tree[3].entropy = 2.9
    assert kernels.is_reliable_psf(1)


def test_candidate_selection(small_deblur):
    tree = small_deblur.region_tree
    tree[2].psf = box_kernel(3, 5)
    tree[0].psf, tree[0].entropy = delta_kernel(5), 1.0
    tree[1].psf, tree[1].entropy = box_kernel(5), 10.0
    kernels = small_deblur.kernels

    candidates = kernels.candidate_selection(0, 1)
    assert len(candidates) == 2
    assert candidates[0] is tree[0].psf
    assert candidates[1] is tree[2].psf

    candidates = kernels.candidate_selection(1, 0)
    assert len(candidates) == 3
    assert candidates[2] is tree[0].psf


def test_estimate_child_psf_is_a_kernel(small_deblur):
    kernels = small_deblur.kernels
    masks = small_deblur.region_tree.get_masks(0)
    psf = kernels.estimate_child_psf(box_kernel(3, 5), masks)
    assert psf.shape == (5, 5)
    assert psf.sum() == pytest.approx(1.0, abs=1e-5)
    assert (psf >= 0).all()

    again = kernels.estimate_child_psf(box_kernel(3, 5), masks)
    assert np.array_equal(psf, again)


def test_selection_prefers_first_candidate_on_ties(small_deblur):
    kernels = small_deblur.kernels
    candidate = box_kernel(3, 5)
    winner, index, energies = kernels.psf_selection([candidate, candidate.copy(), candidate.copy()], 0)
    assert index == 0
    assert energies[0] == energies[1] == energies[2]
    assert np.array_equal(winner, candidate)
    assert winner is not candidate


def test_selection_is_deterministic(small_deblur):
    kernels = small_deblur.kernels
    candidates = [delta_kernel(5), box_kernel(3, 5), box_kernel(5)]
    first = kernels.psf_selection(candidates, 1)
    second = kernels.psf_selection(candidates, 1)
    assert first[1] == second[1]
    assert first[2] == second[2]
    assert all(-1e-9 <= energy <= 2.0 + 1e-9 for energy in first[2])


def test_leaf_latent_is_cached_with_irls(small_deblur):
    small_deblur.deconv_algo = DeconvAlgo.IRLS
    small_deblur.solver = small_deblur.final_solver
    small_deblur.kernels.psf_selection([box_kernel(3, 5)], 0)
    cached = small_deblur.leaf_cache[0]
    assert cached.dtype == np.uint8
    assert cached.shape == small_deblur.gray_images[0].shape

    # внутренние узлы не кэшируются
    small_deblur.kernels.psf_selection([box_kernel(3, 5)], 2)
    assert 2 not in small_deblur.leaf_cache


def test_fft_selection_does_not_cache(small_deblur):
    small_deblur.kernels.psf_selection([box_kernel(3, 5)], 0)
    assert small_deblur.leaf_cache == {}
