"""
Batch document scanning.

    python -m pagescan photo1.jpg photo2.jpg --out-dir scans --enhance binarize
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import EnhanceMode, PRESETS, ScanConfig
from .errors import ScanError
from .pages import PageCollection
from .pipeline import process_image
from .raster import load_image, save_image

logger = logging.getLogger("pagescan")


def build_parser():
    parser = argparse.ArgumentParser(prog="pagescan", description="Detect and flatten photographed documents.")
    parser.add_argument("images", nargs="+", type=Path, help="Input photographs")
    parser.add_argument("--out-dir", type=Path, default=Path("scans"), help="Directory for the page PNGs")
    parser.add_argument("--preset", choices=sorted(PRESETS), default="adaptive",
                        help="Edge threshold preset (ratio of max gradient or fixed absolute)")
    parser.add_argument("--enhance", choices=[m.value for m in EnhanceMode], default=EnhanceMode.NONE.value)
    parser.add_argument("--brightness", type=int, default=0, help="Percent, -50..50")
    parser.add_argument("--contrast", type=int, default=0, help="Percent, -50..50")
    parser.add_argument("--sigma", type=float, default=None, help="Gaussian blur sigma")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = ScanConfig.preset(
            args.preset,
            enhance_mode=EnhanceMode(args.enhance),
            brightness=args.brightness,
            contrast=args.contrast,
        )
        if args.sigma is not None:
            config = replace(config, gaussian_sigma=args.sigma)
            config.validate()
    except ScanError as exc:
        logger.error("invalid options: %s", exc)
        return 2

    args.out_dir.mkdir(parents=True, exist_ok=True)
    pages = PageCollection()
    failures = 0
    for path in args.images:
        try:
            page_pixels, detection = process_image(load_image(path), config)
        except (OSError, ScanError) as exc:
            logger.error("%s: %s", path, exc)
            failures += 1
            continue
        page = pages.append(page_pixels, detection.quad, detection.method)
        target = args.out_dir / f"page_{page.sequence_id:03d}.png"
        save_image(target, page.pixels)
        corners = ", ".join(f"({x:.0f}, {y:.0f})" for x, y in detection.quad.corners)
        logger.info("%s -> %s [%s] corners %s", path, target, detection.method.value, corners)

    logger.info("%d page(s) written, %d failed", len(pages), failures)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
