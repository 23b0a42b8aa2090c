#!/usr/bin/env python3
"""
Apply one pixel transform to a photo or a folder of photos.

Examples:
    photo-lab --input data/photo.jpg --transform grayscale
    photo-lab --input data/gallery --transform binary --threshold 128
"""
import os
import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from models.errors import ImageTransformError
from pipeline.transform_gallery import iter_transform_gallery, OUTPUT_DIR, OUTPUT_EXT
from services.image_service import ImageService
from services.image_transformer import ImageTransformer, TRANSFORMS

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Grayscale, binary and CIE L*a*b* transforms for photos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Image file or folder of images",
    )

    parser.add_argument(
        "--transform", "-t",
        type=str,
        default="grayscale",
        choices=TRANSFORMS,
        help="Transform to apply (default: grayscale)",
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Gray value threshold for the binary transform (default: BINARY_THRESHOLD or 119)",
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=str,
        default=OUTPUT_DIR,
        help=f"Where results are written (default: {OUTPUT_DIR})",
    )

    parser.add_argument(
        "--ext",
        type=str,
        default=OUTPUT_EXT,
        help=f"Output file extension (default: {OUTPUT_EXT})",
    )

    parser.add_argument(
        "--recursive", "-r",
        action="store_true",
        help="Descend into sub-folders when --input is a folder",
    )

    parser.add_argument(
        "--no-strict-threshold",
        action="store_true",
        help="Accept thresholds outside [0, 255]",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    image_service = ImageService()
    transformer = ImageTransformer(
        strict_threshold=False if args.no_strict_threshold else None
    )

    source = Path(args.input)
    saved = []
    try:
        if source.is_dir():
            gallery = image_service.stream_gallery(source, recursive=args.recursive)
        else:
            gallery = [image_service.load(source)]

        results = iter_transform_gallery(
            gallery,
            args.transform,
            threshold=args.threshold,
            transformer=transformer,
            output_dir=args.output_dir,
            ext=args.ext,
            source_root=source if source.is_dir() else None,
        )
        # save as we go, earlier outputs survive a later failure
        for out in results:
            saved.append(image_service.save(out))
    except (FileNotFoundError, NotADirectoryError) as err:
        logger.error(f"Input not found: {err}")
        return 1
    except ImageTransformError as err:
        logger.error(f"Transform failed after {len(saved)} image(s): {err}")
        return 1

    print(f"\nApplied '{args.transform}' to {len(saved)} image(s)")
    for path in saved:
        print(f"  {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
