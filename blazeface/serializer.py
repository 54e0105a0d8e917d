"""
Serialization for the BlazeFace batch pipeline.

Responsibility:
    Export detection results to structured file formats (JSON, CSV)
    keyed by image identifier, for downstream consumption.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output — writes complete files on finalize.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List

from blazeface.detection import Detection

logger = logging.getLogger(__name__)


def save_json(
    detections_by_image: Dict[str, List[Detection]],
    output_path: str,
) -> None:
    """Export all detections to a JSON file.

    Output schema:
        {
            "images": [
                {
                    "image_id": "photos/a.jpg",
                    "detections": [
                        {"score": ..., "xmin": ..., "ymin": ..., "xmax": ...,
                         "ymax": ..., "keypoints": [[x, y], ...]}
                    ]
                }
            ],
            "total_images": N,
            "total_detections": M
        }

    Args:
        detections_by_image: Mapping of image ID to its detections.
        output_path: Full path to the output JSON file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    images = []
    total_detections = 0

    for image_id in sorted(detections_by_image):
        dets = detections_by_image[image_id]
        total_detections += len(dets)
        images.append({
            "image_id": image_id,
            "detections": [d.to_dict() for d in dets],
        })

    payload = {
        "images": images,
        "total_images": len(images),
        "total_detections": total_detections,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d images, %d detections)",
        output_path, len(images), total_detections,
    )


def save_csv(
    detections_by_image: Dict[str, List[Detection]],
    output_path: str,
) -> None:
    """Export all detections to a CSV file, one row per detection.

    Columns: image_id, score, xmin, ymin, xmax, ymax, keypoints
    (keypoints as space-separated "x:y" pairs).

    Args:
        detections_by_image: Mapping of image ID to its detections.
        output_path: Full path to the output CSV file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    fieldnames = ["image_id", "score", "xmin", "ymin", "xmax", "ymax", "keypoints"]

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        total = 0
        for image_id in sorted(detections_by_image):
            for det in detections_by_image[image_id]:
                row = det.to_dict()
                row["keypoints"] = " ".join(f"{x}:{y}" for x, y in row["keypoints"])
                writer.writerow({"image_id": image_id, **row})
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
