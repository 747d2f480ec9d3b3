"""
Face Scan CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the pipeline and output handler, and run one scan.

Usage:
    python main.py photos/                              # Scan with defaults
    python main.py photos/ backup/ --workers 8          # Several roots, 8 workers
    python main.py photos/ --policy fail_fast --detector ssd
    python main.py photos/ --output-mode summary,save_json --output-path out/
    python main.py photos/ --config my_config.yaml

This module is the executable entry point. Library code should not
import it.
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from facescan.config import AppConfig, load_config, validate_config
from facescan.errors import DetectionFailedError
from facescan.output_handler import OutputHandler
from facescan.pipeline import ScanPipeline


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="facescan",
        description="Detect faces in the image files under one or more directories.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "directories",
        nargs="+",
        help="The path(s) to the directories containing the images.",
    )
    parser.add_argument(
        "-w", "--workers",
        type=int,
        help="Number of detection worker threads (also the batch size). Overrides config.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--detector",
        type=str,
        choices=["haar", "ssd"],
        help="Face detection backend. Overrides config.",
    )
    parser.add_argument(
        "--policy",
        type=str,
        choices=["best_effort", "fail_fast"],
        help="Per-image failure policy. Overrides config.",
    )
    parser.add_argument(
        "--max-edge",
        type=int,
        help="Longer image edge, in pixels, used for detection. Overrides config.",
    )
    parser.add_argument(
        "--dedupe",
        action="store_true",
        help="Run detection once per distinct file content.",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Show a mosaic of each processed batch in a window.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: summary, preview, save_json, save_csv. "
             "Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return config with CLI arguments applied on top (CLI wins)."""
    dispatch = config.dispatch
    if args.workers is not None:
        dispatch = replace(dispatch, workers=args.workers)
    if args.policy is not None:
        dispatch = replace(dispatch, failure_policy=args.policy)
    if args.max_edge is not None:
        dispatch = replace(dispatch, max_edge=args.max_edge)
    if args.dedupe:
        dispatch = replace(dispatch, deduplicate=True)

    detection = config.detection
    if args.detector is not None:
        detection = replace(detection, detector=args.detector)

    output = config.output
    if args.output_mode is not None:
        output = replace(output, mode=args.output_mode)
    if args.output_path is not None:
        output = replace(output, save_path=args.output_path)
    if args.preview and "preview" not in output.modes:
        output = replace(output, mode=f"{output.mode},preview")

    return replace(config, dispatch=dispatch, detection=detection, output=output)


def main(argv: Optional[List[str]] = None) -> int:
    """Run one scan and print its summary."""
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_overrides(load_config(args.config), args)
        validate_config(config)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        output_handler = OutputHandler(config)
        pipeline = ScanPipeline(config, display_sink=output_handler.display_sink)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Run
    try:
        report = pipeline.run(args.directories)
        output_handler.write(report)
    except DetectionFailedError as e:
        logger.error("Run aborted: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 130
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        output_handler.finalize()

    return 0


if __name__ == "__main__":
    sys.exit(main())
