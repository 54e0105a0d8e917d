"""
Detection data transfer object.

This module defines the Detection dataclass — the single output type
returned by Detector.detect(). It is a frozen, serializable container;
the only coordinate helper is the mapping to pixel space of the resized
model input.

Non-goals:
    - No rendering logic.
    - No file I/O.
"""

from dataclasses import dataclass
from typing import Tuple

Keypoint = Tuple[float, float]


@dataclass(frozen=True, slots=True)
class Detection:
    """A single detected face with bounding box, keypoints and score.

    Attributes:
        score: Detection confidence in [0.0, 1.0].
        xmin: Left edge (normalized to the resized input image).
        ymin: Top edge (normalized).
        xmax: Right edge (normalized).
        ymax: Bottom edge (normalized).
        keypoints: Ordered (x, y) landmarks in normalized coordinates:
                   right eye, left eye, nose tip, mouth, right ear, left ear.
                   Empty when the regressor emits box offsets only.

    Coordinates are fractions of the resized model input, not of the
    original photo. Values may fall slightly outside [0, 1] for faces
    cut by the image border; they are not clamped.
    """

    score: float
    xmin: float
    ymin: float
    xmax: float
    ymax: float
    keypoints: Tuple[Keypoint, ...] = ()

    @property
    def box(self) -> Tuple[float, float, float, float]:
        """Bounding box as (xmin, ymin, xmax, ymax)."""
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def area(self) -> float:
        """Box area, zero for degenerate (inverted) boxes."""
        return max(0.0, self.width) * max(0.0, self.height)

    def to_pixels(self, resolution: int) -> Tuple[int, int, int, int]:
        """Map the box to integer pixel coordinates of a square image.

        Args:
            resolution: Side length of the resized image in pixels.

        Returns:
            (x1, y1, x2, y2) clamped to [0, resolution - 1].
        """
        limit = resolution - 1

        def _px(v: float) -> int:
            return max(0, min(int(v * resolution), limit))

        return (_px(self.xmin), _px(self.ymin), _px(self.xmax), _px(self.ymax))

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "score": round(self.score, 4),
            "xmin": round(self.xmin, 5),
            "ymin": round(self.ymin, 5),
            "xmax": round(self.xmax, 5),
            "ymax": round(self.ymax, 5),
            "keypoints": [[round(x, 5), round(y, 5)] for x, y in self.keypoints],
        }
