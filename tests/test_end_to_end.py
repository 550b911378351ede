import numpy as np
import pytest

from depth_deblur.filters import box_kernel
from depth_deblur.metrics import kernel_correlation, kernel_entropy
from depth_deblur.processing.config import View
from depth_deblur.processing.core import DepthDeblur

from conftest import blur, block_texture, half_split_maps, write_kernel_png

PSF_WIDTH = 11


@pytest.fixture
def box_scene(tmp_path, monkeypatch):
    """Стереопара 256x256, размытая квадратным ядром 7x7, и kernel0.png с этим ядром."""
    kernel = box_kernel(7, PSF_WIDTH)
    sharp = block_texture(256, 8, seed=11)
    left, right = blur(sharp, kernel), blur(sharp, kernel)
    write_kernel_png(tmp_path, 0, kernel)
    monkeypatch.chdir(tmp_path)
    return sharp, left, right, kernel


@pytest.fixture
def estimated(box_scene):
    sharp, left, right, kernel = box_scene
    deblur = DepthDeblur(left, right, width=PSF_WIDTH, layers=2, deconv_algo='fft')
    deblur.set_disparity_maps(*half_split_maps(left.shape))
    deblur.region_tree_reconstruction(max_toplevel_nodes=1)
    deblur.toplevel_kernel_estimation()
    deblur.mid_level_kernel_estimation(n_threads=2)
    return deblur


def test_leaf_kernels_recover_box(estimated, box_scene):
    kernel = box_scene[3]
    tree = estimated.region_tree
    leaves = [tree[i].psf for i in tree.leaf_ids]

    for psf in leaves:
        assert psf.shape == (PSF_WIDTH, PSF_WIDTH)
        assert psf.sum() == pytest.approx(1.0, abs=1e-5)
        assert (psf >= 0).all()

    correlations = [kernel_correlation(psf, kernel) for psf in leaves]
    best = leaves[int(np.argmax(correlations))]
    assert max(correlations) > 0.9

    noise = np.random.default_rng(0).random((PSF_WIDTH, PSF_WIDTH))
    noise /= noise.sum()
    assert kernel_entropy(best) < kernel_entropy(noise)


def test_every_node_visited_once(estimated):
    scheduler = estimated.scheduler
    assert sorted(scheduler.visited) == list(range(len(estimated.region_tree)))
    assert scheduler.visited_leaves == estimated.layers


def test_deconvolution_reduces_error(estimated, box_scene):
    sharp, left = box_scene[0], box_scene[1]
    restored = estimated.deconvolve(View.LEFT, n_threads=2)
    assert restored.shape == left.shape

    def error(image):
        return np.mean(np.abs(image.astype(np.float64) - sharp.astype(np.float64)))

    assert error(restored) < error(left)
