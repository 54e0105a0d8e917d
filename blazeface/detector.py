"""
Detector — the single public API for BlazeFace face detection.

This module is the ONLY intended programmatic entry point for consumers
of the library. All other modules are internal.

Public contract:
    Detector.detect_file(path) -> list[Detection]
    Detector.detect(frame: np.ndarray) -> list[Detection]

Constraints:
    - Frames are BGR numpy arrays (as returned by OpenCV).
    - Deterministic for identical weights, input and device.
    - Safe to share across threads: forward passes are serialized per
      Detector (one inference at a time per device handle); decoding and
      suppression run outside the lock.

Non-goals:
    - No directory walking, visualization or output writing.
    - No tracking or temporal state.
    - No batching, timeouts or cancellation.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import torch

from blazeface.config import AppConfig, load_config
from blazeface.decoder import RawOutput
from blazeface.detection import Detection
from blazeface.model_loader import load_model, resolve_dtype
from blazeface.network import BlazeFace
from blazeface.preprocessor import image_to_tensor, load_image, prepare_frame
from blazeface.profile import ModelProfile

logger = logging.getLogger(__name__)


class Detector:
    """BlazeFace face detector.

    Usage:
        detector = Detector()                       # Uses safe defaults
        detector = Detector(config=my_config)       # Custom config
        detections = detector.detect_file("a.jpg")  # Image file
        detections = detector.detect(frame)         # BGR numpy array

    The constructor loads the model once. Subsequent calls reuse the
    loaded network; weights and anchors are read-only for the lifetime
    of the detector.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).

        Raises:
            FileNotFoundError: If model files are missing.
            RuntimeError: If a model file is malformed or the device or
                          precision is unavailable.
            ValueError: If configuration values or anchors are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._net: BlazeFace = load_model(config.model, config.detection)
        self._dtype = resolve_dtype(config.model.dtype)
        self._lock = threading.Lock()

        logger.info(
            "Detector initialized (profile=%s, device=%s, min_score=%.2f, min_suppression=%.2f)",
            self.profile.name,
            config.model.device,
            config.detection.min_score_threshold,
            config.detection.min_suppression_threshold,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def profile(self) -> ModelProfile:
        return self._net.profile

    @property
    def network(self) -> BlazeFace:
        return self._net

    def detect_file(self, path: Union[str, Path]) -> List[Detection]:
        """Detect faces in an image file.

        Raises:
            FileNotFoundError: If the image does not exist.
            ValueError: If the image cannot be decoded.
        """
        image = load_image(path, self.profile)
        return self.detect_image(image)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """Detect faces in a single BGR frame of any size.

        The frame is resized to fill the profile resolution; returned
        coordinates are normalized to that resized, centre-cropped image.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty.
        """
        self._validate_frame(frame)
        return self.detect_image(prepare_frame(frame, self.profile))

    def detect_image(self, image: np.ndarray) -> List[Detection]:
        """Detect faces in an RGB image already at the profile resolution."""
        tensor = image_to_tensor(image, device=self._net.device, dtype=self._dtype)
        return self.detect_tensor(tensor)

    def detect_tensor(self, tensor: torch.Tensor) -> List[Detection]:
        """Detect faces in a (3, R, R) input tensor.

        Raises:
            ValueError: If the tensor shape does not match the profile.
        """
        return self._net.postprocess(self.infer(tensor))

    def infer(self, tensor: torch.Tensor) -> RawOutput:
        """Run the forward pass only, returning raw per-anchor output."""
        with self._lock, torch.inference_mode():
            return self._net(tensor)

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use cv2.imread() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError(
                "Frame is empty (zero size). "
                "Ensure the input source is providing valid images."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}. "
                f"Grayscale images must be converted to BGR first."
            )

        if frame.shape[2] != 3:
            raise ValueError(
                f"Expected 3 channels (BGR), got {frame.shape[2]} channels. "
                f"Input must be a BGR image as returned by OpenCV."
            )
