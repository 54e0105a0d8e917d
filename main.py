"""
BlazeFace Face Detection CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the detector and I/O handlers, and run detection over a batch of images.

Usage:
    python main.py --source photos/                     # Directory of images
    python main.py --source face.jpg --profile back
    python main.py --source photos/ --output-mode log,save_json
    python main.py --config my_config.yaml
    python main.py --write-anchors --profile back       # Provision anchors

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import dataclasses
import logging
import sys
import time

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from blazeface.anchors import save_anchors
from blazeface.config import AppConfig, get_project_root, load_config, validate_config
from blazeface.detector import Detector
from blazeface.input_handler import InputHandler
from blazeface.output_handler import OutputHandler


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="BlazeFace Face Detection — Batch CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: path to an image file or a directory of images.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--model-dir",
        type=str,
        help="Directory holding the weight and anchor files. Overrides config.",
    )
    parser.add_argument(
        "--profile",
        type=str,
        choices=["front", "back"],
        help="Detector profile (front: 128x128, back: 256x256). Overrides config.",
    )
    parser.add_argument(
        "--min-score",
        type=float,
        help="Minimum detection score (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--min-suppression",
        type=float,
        help="IoU threshold for non-maximum suppression (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--device",
        type=str,
        help="Torch device: cpu, cuda, cuda:N or mps. Overrides config.",
    )
    parser.add_argument(
        "--dtype",
        type=str,
        choices=["float16", "bfloat16", "float32"],
        help="Working precision. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: log, save_json, save_csv. "
             "Example: 'log,save_json'. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )
    parser.add_argument(
        "--write-anchors",
        action="store_true",
        help="Write the profile's anchor table into the model directory and exit.",
    )

    return parser.parse_args()


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Apply CLI overrides on top of the loaded configuration."""
    model_overrides = {
        key: value
        for key, value in (
            ("model_dir", args.model_dir),
            ("profile", args.profile),
            ("device", args.device),
            ("dtype", args.dtype),
        )
        if value is not None
    }
    detection_overrides = {
        key: value
        for key, value in (
            ("min_score_threshold", args.min_score),
            ("min_suppression_threshold", args.min_suppression),
        )
        if value is not None
    }
    output_overrides = {
        key: value
        for key, value in (("mode", args.output_mode), ("save_path", args.output_path))
        if value is not None
    }

    config = dataclasses.replace(
        config,
        model=dataclasses.replace(config.model, **model_overrides),
        detection=dataclasses.replace(config.detection, **detection_overrides),
        output=dataclasses.replace(config.output, **output_overrides),
    )
    if args.source is not None:
        config = dataclasses.replace(
            config, input=dataclasses.replace(config.input, source=args.source)
        )

    return validate_config(config)


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    if args.write_anchors:
        model_dir = get_project_root() / config.model.model_dir
        model_dir.mkdir(parents=True, exist_ok=True)
        save_anchors(model_dir, config.model.model_profile)
        return 0

    # 2. Initialize Components
    try:
        detector = Detector(config)
        input_handler = InputHandler(config.input.source)
        output_handler = OutputHandler(config)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    logger.info("Processing %d image(s).", len(input_handler))

    image_count = 0
    failed_count = 0
    start_time = time.perf_counter()

    try:
        for image_id, path in input_handler:
            try:
                detections = detector.detect_file(path)
            except (FileNotFoundError, ValueError) as e:
                # A bad image does not invalidate the loaded model
                failed_count += 1
                logger.warning("Skipping image %s: %s", image_id, e)
                continue

            image_count += 1
            output_handler.process_image(image_id, detections)

            if image_count % 50 == 0:
                logger.info("Processed %d images...", image_count)

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        elapsed = time.perf_counter() - start_time
        rate = image_count / elapsed if elapsed > 0 else 0.0

        output_handler.finalize()

        logger.info(
            "Processing finished. Images: %d, skipped: %d. Avg images/s: %.2f.",
            image_count, failed_count, rate,
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
