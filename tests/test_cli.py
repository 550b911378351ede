import logging

import cv2 as cv

from depth_deblur.cli import _make_config, build_parser, main
from depth_deblur.filters import box_kernel
from depth_deblur.processing.config import DeconvAlgo

from conftest import blur, write_kernel_png


def test_parser_overrides_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"psf_width": 21, "threads": 2}')
    args = build_parser().parse_args(
        ["l.png", "r.png", "--config", str(path), "--width", "15", "--deconv", "fft"])
    config = _make_config(args)
    assert config.psf_width == 15
    assert config.threads == 2
    assert config.deconv_algo is DeconvAlgo.FFT


def test_missing_input_exits_with_error(tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        code = main([str(tmp_path / "missing-left.png"), str(tmp_path / "missing-right.png")])
    assert code == 1
    assert "Failed to read image" in caplog.text


def test_missing_kernels_exit_with_error(tmp_path, sharp_image):
    cv.imwrite(str(tmp_path / "left.png"), sharp_image)
    cv.imwrite(str(tmp_path / "right.png"), sharp_image)
    code = main([str(tmp_path / "left.png"), str(tmp_path / "right.png"),
                 "--width", "5", "--layers", "2", "--max-disparity", "16", "--kernel-dir", str(tmp_path / "none"),
                 "-o", str(tmp_path / "out")])
    assert code == 1
    assert not (tmp_path / "out-left.png").exists()


def test_writes_both_views(tmp_path, sharp_image):
    kernel = box_kernel(3, 5)
    blurred = blur(sharp_image, kernel)
    cv.imwrite(str(tmp_path / "left.png"), blurred)
    cv.imwrite(str(tmp_path / "right.png"), blurred)
    write_kernel_png(tmp_path, 0, kernel)

    code = main([str(tmp_path / "left.png"), str(tmp_path / "right.png"),
                 "--width", "5", "--layers", "2", "--deconv", "fft",
                 "--max-disparity", "16", "--max-toplevel", "1", "--threads", "2",
                 "--kernel-dir", str(tmp_path), "-o", str(tmp_path / "out")])

    assert code == 0
    for name in ("out-left.png", "out-right.png"):
        restored = cv.imread(str(tmp_path / name), cv.IMREAD_UNCHANGED)
        assert restored is not None
        assert restored.shape == sharp_image.shape
