#!/usr/bin/env python3
"""
Score Sheet Rectification Script

Rectifies a photographed score sheet from four known corner points,
without the interactive editor.

Usage:
    # Corners in original photo pixels, TL TR BR BL
    python scripts/rectify_image.py photo.jpg out.png \
        --points 112 80 1870 95 1902 2410 90 2385

    # Force a 3:4 sheet and keep the accepted points
    python scripts/rectify_image.py photo.jpg out.png \
        --points 112 80 1870 95 1902 2410 90 2385 \
        --aspect-ratio 0.75 --json out.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import cv2

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.scanner.config_loader import load_config  # noqa: E402
from src.scanner.processor import ScanProcessor, prepare_working_image  # noqa: E402
from src.scanner.schemas import result_payload  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Main entry point for score sheet rectification."""
    parser = argparse.ArgumentParser(
        description="Rectify a photographed score sheet from four corner points",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("input", type=Path, help="Input photo")
    parser.add_argument("output", type=Path, help="Output PNG (keeps transparency)")

    parser.add_argument(
        "--points",
        type=float,
        nargs=8,
        metavar=("TLX", "TLY", "TRX", "TRY", "BRX", "BRY", "BLX", "BLY"),
        default=None,
        help="Corner points in photo pixels (default: the photo corners)",
    )

    parser.add_argument(
        "--aspect-ratio",
        type=float,
        default=None,
        help="Force output width/height (default: derived from the corners)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Scanner config YAML (default: src/scanner/config.yaml)",
    )

    parser.add_argument(
        "--json",
        type=Path,
        default=None,
        help="Also write the accepted points and aspect ratio as JSON",
    )

    args = parser.parse_args()

    bgr = cv2.imread(str(args.input), cv2.IMREAD_COLOR)
    if bgr is None:
        logger.error(f"Could not read image: {args.input}")
        sys.exit(1)

    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
    config = load_config(args.config) if args.config else load_config()
    working = prepare_working_image(rgb, config.rectify.working_max_dimension)

    points = None
    if args.points is not None:
        # The working canvas may be smaller than the photo
        ratio = working.shape[1] / rgb.shape[1]
        coords = [v * ratio for v in args.points]
        points = [{"x": coords[i], "y": coords[i + 1]} for i in range(0, 8, 2)]

    try:
        processor = ScanProcessor(
            working, points=points, aspect_ratio=args.aspect_ratio, config=config
        )
        result = processor.commit()
    except ValueError as e:
        logger.error(f"Rectification failed: {e}")
        sys.exit(1)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(args.output), cv2.cvtColor(result.image, cv2.COLOR_RGBA2BGRA))
    logger.info(f"Saved {result.width}x{result.height} raster to {args.output}")

    if args.json is not None:
        args.json.parent.mkdir(parents=True, exist_ok=True)
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(result_payload(result), f, indent=2)
        logger.info(f"Saved accepted points to {args.json}")


if __name__ == "__main__":
    main()
