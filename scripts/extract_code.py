"""
Command-line code extraction from gift-card photos.

Usage:
    # Extract the code from one photo
    python scripts/extract_code.py card.jpg

    # Several photos, JSON output with per-attempt details
    python scripts/extract_code.py card1.jpg card2.png --json

    # Custom configuration and debug images
    python scripts/extract_code.py card.jpg --config my_config.yaml --debug-dir artifacts/debug
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.exceptions import EngineUnavailable  # noqa: E402
from src.ocr import CodeExtractor, get_default_config, load_config  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Extract redemption codes from gift-card photos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/extract_code.py card.jpg
  python scripts/extract_code.py card1.jpg card2.png --json
  python scripts/extract_code.py card.jpg --engine rapidocr
        """,
    )

    parser.add_argument("images", nargs="+", type=Path, help="Image file(s) to process")

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config YAML (default: bundled src/ocr/config.yaml)",
    )

    parser.add_argument(
        "--engine",
        type=str,
        default=None,
        choices=["tesseract", "rapidocr"],
        help="Override the recognition engine from the config",
    )

    parser.add_argument(
        "--debug-dir",
        type=str,
        default=None,
        help="Save binarized attempt images to this directory",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON object per image instead of plain text",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point. Returns 0 if every image yielded a code, 1 otherwise."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(args.config) if args.config else get_default_config()
    if args.engine:
        config.ocr.engine.type = args.engine
    if args.debug_dir:
        config.ocr.output.debug_dir = args.debug_dir

    extractor = CodeExtractor(config=config)
    try:
        extractor.initialize()
    except EngineUnavailable as e:
        logger.error(f"Recognition engine unavailable: {e.message}")
        return 2

    all_found = True
    try:
        for image_path in args.images:
            result = extractor.extract_code(image_path)
            all_found = all_found and result.is_success()

            if args.json:
                payload = result.to_dict(
                    include_attempts=config.ocr.output.include_attempts
                )
                payload["image"] = str(image_path)
                print(json.dumps(payload, ensure_ascii=False))
            elif result.is_success():
                print(f"{image_path}: {result.code}")
            else:
                print(
                    f"{image_path}: NOT FOUND ({result.failure_reason.constant}) "
                    f"best text: '{result.best_raw_text}'"
                )
    finally:
        extractor.close()

    return 0 if all_found else 1


if __name__ == "__main__":
    sys.exit(main())
