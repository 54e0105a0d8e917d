"""
Preprocessing for the BlazeFace detection pipeline.

Responsibility:
    Decode an image file, resize it to the square resolution of the
    model profile, and convert it into the network input tensor.

Non-goals:
    - No inference or coordinate mapping.
    - No directory walking or source management.

Hard-coded:
    - Channel order is RGB (OpenCV decodes BGR; it is swapped here).
    - Resizing is "resize to fill": scale so the image covers the square,
      then centre-crop the overflow. Aspect ratio is preserved.
    - Nearest-neighbour interpolation. Chosen for speed and bit-exact
      reproducibility; an area/bilinear filter would improve recall on
      very small faces at the cost of throughput.
    - Tensor layout is (channels, height, width), values in [-1, 1].
"""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np
import torch

from blazeface.profile import ModelProfile

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_image(path: PathLike) -> np.ndarray:
    """Decode an image file into a BGR uint8 array (H, W, 3).

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If OpenCV cannot decode the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")

    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise ValueError(
            f"Unable to decode image: {path}. "
            f"The file is corrupt or not a supported raster format."
        )
    return image


def resize_to_fill(image: np.ndarray, size: int) -> np.ndarray:
    """Scale an image to cover a size x size square and centre-crop it."""
    h, w = image.shape[:2]
    ratio = max(size / w, size / h)
    new_w = max(size, int(round(w * ratio)))
    new_h = max(size, int(round(h * ratio)))

    resized = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_NEAREST)

    top = (new_h - size) // 2
    left = (new_w - size) // 2
    return np.ascontiguousarray(resized[top:top + size, left:left + size])


def prepare_frame(frame: np.ndarray, profile: ModelProfile) -> np.ndarray:
    """Convert a decoded BGR frame into the profile's RGB input image.

    Args:
        frame: BGR uint8 array (H, W, 3), as returned by cv2.imread().
        profile: Model profile selecting the target resolution.

    Returns:
        RGB uint8 array of shape (R, R, 3).

    Raises:
        ValueError: If the frame is empty or not a 3-channel image.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid images."
        )

    if frame.ndim != 3 or frame.shape[2] != 3:
        raise ValueError(
            f"Expected a BGR frame of shape (H, W, 3), got {frame.shape}. "
            f"Grayscale and alpha images must be converted to BGR first."
        )

    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    return resize_to_fill(rgb, profile.resolution)


def load_image(path: PathLike, profile: ModelProfile) -> np.ndarray:
    """Decode an image file and resize it for a profile.

    Returns:
        RGB uint8 array of shape (R, R, 3).
    """
    image = prepare_frame(read_image(path), profile)
    logger.debug("Loaded %s for profile %s", path, profile.name)
    return image


def image_to_tensor(
    image: np.ndarray,
    device: Union[str, torch.device] = "cpu",
    dtype: torch.dtype = torch.float32,
) -> torch.Tensor:
    """Convert an RGB uint8 image (H, W, 3) into a (3, H, W) tensor in [-1, 1].

    Pixels are scaled to [0, 1], moved channels-first, then mapped
    through v * 2 - 1. Arithmetic is done in float32 before casting.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(
            f"Expected an RGB image of shape (H, W, 3), got {image.shape}."
        )

    tensor = torch.from_numpy(np.ascontiguousarray(image)).to(device=device)
    tensor = tensor.permute(2, 0, 1).float() / 255.0   # (3, H, W) in [0, 1]
    tensor = tensor * 2.0 - 1.0                         # (3, H, W) in [-1, 1]
    return tensor.to(dtype=dtype).contiguous()


def preprocess(
    path: PathLike,
    profile: ModelProfile,
    device: Union[str, torch.device] = "cpu",
    dtype: torch.dtype = torch.float32,
) -> torch.Tensor:
    """Decode, resize and tensorize an image file for a profile."""
    return image_to_tensor(load_image(path, profile), device=device, dtype=dtype)
