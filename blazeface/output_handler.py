"""
Output handling for the BlazeFace batch pipeline.

Responsibility:
    Route per-image detection results to the configured sinks: the log,
    a JSON file, or a CSV file. Multiple sinks can be active at once.

Non-goals:
    - No detection logic.
    - No drawing or display windows.
"""

import logging
from pathlib import Path
from typing import Dict, List

from blazeface.config import AppConfig, get_project_root
from blazeface.detection import Detection
from blazeface.serializer import save_csv, save_json

logger = logging.getLogger(__name__)


class OutputHandler:
    """Routes detection results to configured output sinks.

    Supported modes (comma-separated in config.output.mode):
        - 'log': Log each detection as it is produced.
        - 'save_json': Accumulate detections, write detections.json on finalize.
        - 'save_csv': Accumulate detections, write detections.csv on finalize.

    Usage:
        handler = OutputHandler(config)
        handler.process_image(image_id, detections)
        ...
        handler.finalize()
    """

    def __init__(self, config: AppConfig) -> None:
        self._modes = config.output.modes
        self._detections_buffer: Dict[str, List[Detection]] = {}

        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        if self._modes & {"save_json", "save_csv"}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info(
            "OutputHandler initialized: modes=%s, save_path=%s",
            sorted(self._modes), self._save_path,
        )

    @property
    def save_path(self) -> Path:
        return self._save_path

    def process_image(self, image_id: str, detections: List[Detection]) -> None:
        """Route one image's detections through the output pipeline."""
        if "log" in self._modes:
            self._handle_log(image_id, detections)

        if self._modes & {"save_json", "save_csv"}:
            self._detections_buffer[image_id] = detections

    @staticmethod
    def _handle_log(image_id: str, detections: List[Detection]) -> None:
        logger.info("%s: %d face(s)", image_id, len(detections))
        for det in detections:
            logger.info(
                "  score=%.3f box=(%.3f, %.3f, %.3f, %.3f)",
                det.score, det.xmin, det.ymin, det.xmax, det.ymax,
            )

    def finalize(self) -> None:
        """Flush buffered output. Must be called after all images are processed."""
        if "save_json" in self._modes and self._detections_buffer:
            save_json(self._detections_buffer, str(self._save_path / "detections.json"))

        if "save_csv" in self._modes and self._detections_buffer:
            save_csv(self._detections_buffer, str(self._save_path / "detections.csv"))

        self._detections_buffer.clear()
        logger.info("OutputHandler finalized.")
