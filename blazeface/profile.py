"""
Model profiles for the BlazeFace detector.

Responsibility:
    Describe the two fixed detector configurations (front camera and
    back camera) and everything that differs between them: input
    resolution, anchor count, and the weight/anchor file names inside
    a model directory.

Non-goals:
    - No file access. The loader resolves these names against a directory.
"""

from enum import Enum
from typing import Tuple


class ModelProfile(Enum):
    """Closed set of BlazeFace detector configurations.

    Each member carries (resolution, anchor_count, weights_filename,
    anchors_filename). Both profiles emit 896 anchors, but the anchor
    geometry differs because the feature-map strides differ.
    """

    FRONT = (128, 896, "blazeface.safetensors", "anchors.npy")
    BACK = (256, 896, "blazefaceback.safetensors", "anchorsback.npy")

    def __init__(
        self,
        resolution: int,
        anchor_count: int,
        weights_filename: str,
        anchors_filename: str,
    ) -> None:
        self.resolution = resolution
        self.anchor_count = anchor_count
        self.weights_filename = weights_filename
        self.anchors_filename = anchors_filename

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        """Expected (channels, height, width) of the network input."""
        return (3, self.resolution, self.resolution)

    @classmethod
    def from_name(cls, name: str) -> "ModelProfile":
        """Look up a profile by case-insensitive name ('front' or 'back').

        Raises:
            ValueError: If the name does not match a profile.
        """
        try:
            return cls[name.strip().upper()]
        except KeyError:
            valid = ", ".join(p.name.lower() for p in cls)
            raise ValueError(
                f"Unknown model profile: '{name}'. Must be one of: {valid}."
            ) from None
