"""
Точка входа командной строки.

    depth-deblur LEFT RIGHT [-o OUT_PREFIX] [--width W] [--layers L] ...

Результат: OUT_PREFIX-left.png и OUT_PREFIX-right.png.
"""

import argparse
import logging
import sys
from typing import List, Optional

from depth_deblur.processing.config import DeblurConfig
from depth_deblur.processing.core import DepthDeblur
from depth_deblur.utils import imread, imwrite

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="depth-deblur",
        description="Depth-aware PSF estimation and deconvolution of a blurred stereo pair",
    )
    ap.add_argument("left", help="Left view image path")
    ap.add_argument("right", help="Right view image path")
    ap.add_argument("-o", "--output", default="deconv", help="Output prefix")
    ap.add_argument("--width", type=int, default=None, help="PSF width (even values are rounded down)")
    ap.add_argument("--layers", type=int, default=None, help="Depth layers (odd values are rounded down)")
    ap.add_argument("--deconv", choices=["fft", "irls"], default=None,
                    help="Deconvolution used for kernel estimation")
    ap.add_argument("--disparity", choices=["sgbm", "match"], default=None,
                    help="Disparity estimation algorithm")
    ap.add_argument("--max-disparity", type=int, default=None)
    ap.add_argument("--max-toplevel", type=int, default=None, help="Max number of top-level regions")
    ap.add_argument("--threads", type=int, default=None)
    ap.add_argument("--kernel-dir", default=None, help="Directory with kernel<i>.png files")
    ap.add_argument("--color", action="store_true", default=False, help="Deconvolve color images")
    ap.add_argument("--toplevel-only", action="store_true", default=False,
                    help="Skip hierarchical refinement and deconvolve top-level regions")
    ap.add_argument("--config", default=None, help="JSON configuration file")
    ap.add_argument("--debug-dir", default=None, help="Directory for intermediate kernels and images")
    ap.add_argument("-v", "--verbose", action="count", default=0)
    return ap


def _make_config(args: argparse.Namespace) -> DeblurConfig:
    config = DeblurConfig.from_json(args.config) if args.config else DeblurConfig()
    overrides = {
        'psf_width': args.width,
        'layers': args.layers,
        'deconv_algo': args.deconv,
        'disparity_algo': args.disparity,
        'max_disparity': args.max_disparity,
        'max_toplevel_nodes': args.max_toplevel,
        'threads': args.threads,
        'kernel_dir': args.kernel_dir,
        'debug_dir': args.debug_dir,
    }
    data = config.to_dict()
    data.update({key: value for key, value in overrides.items() if value is not None})
    return DeblurConfig.from_dict(data)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = _make_config(args)
        images = []
        for path in (args.left, args.right):
            image = imread(path, color=True)
            if image is None:
                raise FileNotFoundError(f"Failed to read image: {path}")
            images.append(image)

        deblur = DepthDeblur(images[0], images[1], config=config)
        left, right = deblur.run(color=args.color, toplevel_only=args.toplevel_only)

        imwrite(f"{args.output}-left.png", left)
        imwrite(f"{args.output}-right.png", right)
        logger.info("Saved %s-left.png and %s-right.png", args.output, args.output)
    except (OSError, ValueError, RuntimeError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
