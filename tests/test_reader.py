import cv2 as cv
import numpy as np
import pytest

from depth_deblur.filters import box_kernel
from depth_deblur.processing.config import DeblurConfig
from depth_deblur.processing.core import DepthDeblur

from conftest import half_split_maps, write_kernel_png


def test_loads_kernels_from_working_directory(small_deblur, tmp_path, monkeypatch):
    write_kernel_png(tmp_path, 0, box_kernel(3, 5))
    monkeypatch.chdir(tmp_path)

    small_deblur.reader.load_toplevel_kernels()

    root = small_deblur.region_tree[small_deblur.region_tree.toplevel_ids[0]]
    assert root.psf.dtype == np.float32
    assert root.psf.sum() == pytest.approx(1.0, abs=1e-6)
    assert np.allclose(root.psf, box_kernel(3, 5))
    assert root.entropy == pytest.approx(np.log(9), rel=1e-5)


def test_kernel_dir_from_config(blurred_pair, tmp_path):
    write_kernel_png(tmp_path, 0, box_kernel(3, 5))
    write_kernel_png(tmp_path, 1, box_kernel(5))
    config = DeblurConfig(psf_width=5, layers=2, kernel_dir=str(tmp_path))
    deblur = DepthDeblur(*blurred_pair, config=config)
    deblur.set_disparity_maps(*half_split_maps(blurred_pair[0].shape))
    deblur.region_tree_reconstruction(max_toplevel_nodes=2)

    deblur.toplevel_kernel_estimation()

    assert np.allclose(deblur.region_tree[0].psf, box_kernel(3, 5))
    assert np.allclose(deblur.region_tree[1].psf, box_kernel(5))


def test_missing_kernel_file(small_deblur, tmp_path):
    with pytest.raises(FileNotFoundError):
        small_deblur.reader.load_toplevel_kernels(tmp_path)


def test_empty_kernel_file(small_deblur, tmp_path):
    cv.imwrite(str(tmp_path / "kernel0.png"), np.zeros((5, 5), dtype=np.uint8))
    with pytest.raises(ValueError):
        small_deblur.reader.load_toplevel_kernels(tmp_path)


def test_requires_region_tree(blurred_pair, tmp_path):
    deblur = DepthDeblur(*blurred_pair, width=5, layers=2)
    with pytest.raises(RuntimeError):
        deblur.reader.load_toplevel_kernels(tmp_path)


def test_save_toplevel_regions(small_deblur, tmp_path):
    small_deblur.reader.save_toplevel_regions(tmp_path / "regions")
    for name in ("mask-left0.png", "mask-right0.png", "region0.png"):
        assert (tmp_path / "regions" / name).exists()
    mask = cv.imread(str(tmp_path / "regions" / "mask-left0.png"), cv.IMREAD_GRAYSCALE)
    assert set(np.unique(mask)) <= {0, 255}


def test_debug_dumps_only_when_configured(small_deblur, tmp_path):
    small_deblur.reader.dump_kernel("kernel", box_kernel(3, 5))
    assert list(tmp_path.iterdir()) == []

    small_deblur.config.debug_dir = str(tmp_path / "debug")
    small_deblur.reader.dump_kernel("kernel", box_kernel(3, 5))
    small_deblur.reader.dump_image("image", np.full((4, 4), 0.5, dtype=np.float32))
    assert (tmp_path / "debug" / "kernel.png").exists()
    image = cv.imread(str(tmp_path / "debug" / "image.png"), cv.IMREAD_GRAYSCALE)
    assert (image == 128).all()
