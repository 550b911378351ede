import cv2 as cv
import numpy as np
import pytest

from depth_deblur.filters import KernelBlur, box_kernel
from depth_deblur.processing.core import DepthDeblur
from depth_deblur.processing.region_tree import RegionTree


def block_texture(size: int, block: int, seed: int = 0) -> np.ndarray:
    """Кусочно-постоянная текстура uint8 с резкими краями."""
    rng = np.random.default_rng(seed)
    cells = rng.integers(20, 236, size=(size // block, size // block)).astype(np.uint8)
    return np.kron(cells, np.ones((block, block), dtype=np.uint8))


def blur(image: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    blurred = KernelBlur(kernel)(image)
    return np.clip(np.round(blurred), 0, 255).astype(np.uint8)


def half_split_maps(shape):
    """Левая половина - слой 0, правая - слой 1, одинаково в обоих видах."""
    dmap = np.zeros(shape, dtype=np.uint16)
    dmap[:, shape[1] // 2:] = 1
    return dmap, dmap.copy()


def write_kernel_png(folder, index: int, kernel: np.ndarray) -> None:
    image = np.round(kernel / kernel.max() * 255.0).astype(np.uint8)
    cv.imwrite(str(folder / f"kernel{index}.png"), image)


@pytest.fixture
def sharp_image():
    return block_texture(64, 8)


@pytest.fixture
def blurred_pair(sharp_image):
    kernel = box_kernel(3, 5)
    return blur(sharp_image, kernel), blur(sharp_image, kernel)


@pytest.fixture
def small_deblur(blurred_pair):
    """DepthDeblur на 64x64 с двумя слоями и одним узлом верхнего уровня."""
    left, right = blurred_pair
    deblur = DepthDeblur(left, right, width=5, layers=2, deconv_algo='fft')
    deblur.set_disparity_maps(*half_split_maps(left.shape))
    deblur.region_tree_reconstruction(max_toplevel_nodes=1)
    return deblur


@pytest.fixture
def four_leaf_tree():
    """Дерево из 4 листьев: 0,1 -> 4; 2,3 -> 5; 4,5 -> 6."""
    dmap = np.repeat(np.arange(4, dtype=np.uint16), 8)[None, :].repeat(16, axis=0)
    return RegionTree.create(dmap, dmap.copy(), 4, max_toplevel_nodes=1)
