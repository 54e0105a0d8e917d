"""
Tests for the preprocessing module.
"""

import cv2
import numpy as np
import pytest
import torch

from blazeface.preprocessor import (
    image_to_tensor,
    load_image,
    prepare_frame,
    preprocess,
    resize_to_fill,
)
from blazeface.profile import ModelProfile


def test_tensor_axis_order_is_channels_height_width():
    """A non-square image pins down which axis is height and which is width."""
    image = np.zeros((2, 3, 3), dtype=np.uint8)   # H=2, W=3, RGB
    image[0, 2, 0] = 255                          # red at (y=0, x=2)
    image[1, 0, 1] = 255                          # green at (y=1, x=0)
    image[1, 1, 2] = 255                          # blue at (y=1, x=1)

    tensor = image_to_tensor(image)

    assert tensor.shape == (3, 2, 3)
    assert tensor[0, 0, 2].item() == 1.0
    assert tensor[1, 1, 0].item() == 1.0
    assert tensor[2, 1, 1].item() == 1.0
    assert int((tensor == 1.0).sum()) == 3
    assert int((tensor == -1.0).sum()) == tensor.numel() - 3


def test_tensor_value_mapping():
    image = np.full((4, 4, 3), 0, dtype=np.uint8)
    image[..., 1] = 255
    image[..., 2] = 51    # 0.2 → -0.6

    tensor = image_to_tensor(image, dtype=torch.float32)

    assert tensor.dtype == torch.float32
    assert torch.all(tensor[0] == -1.0)
    assert torch.all(tensor[1] == 1.0)
    assert torch.allclose(tensor[2], torch.full((4, 4), -0.6), atol=1e-6)
    assert tensor.min() >= -1.0 and tensor.max() <= 1.0


def test_tensor_dtype_cast():
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    assert image_to_tensor(image, dtype=torch.float16).dtype == torch.float16


def test_tensor_rejects_non_rgb():
    with pytest.raises(ValueError, match="RGB"):
        image_to_tensor(np.zeros((4, 4), dtype=np.uint8))


def test_resize_to_fill_crops_centre_with_nearest_neighbour():
    # 100 high x 200 wide: left half black, right half white
    image = np.zeros((100, 200), dtype=np.uint8)
    image[:, 100:] = 255

    out = resize_to_fill(image, 128)

    # Scaled to 128 x 256, centre crop keeps resized columns 64..191
    assert out.shape == (128, 128)
    assert np.all(out[:, :60] == 0)
    assert np.all(out[:, 68:] == 255)
    # Nearest neighbour introduces no intermediate values
    assert set(np.unique(out)) <= {0, 255}


@pytest.mark.parametrize("profile", list(ModelProfile))
def test_load_image_profile_resolution(image_file, profile):
    image = load_image(image_file, profile)
    assert image.shape == (profile.resolution, profile.resolution, 3)
    assert image.dtype == np.uint8


def test_prepare_frame_swaps_bgr_to_rgb():
    frame = np.zeros((50, 50, 3), dtype=np.uint8)
    frame[..., 0] = 255   # pure blue in BGR

    image = prepare_frame(frame, ModelProfile.FRONT)

    assert np.all(image[..., 2] == 255)
    assert np.all(image[..., 0] == 0)


def test_load_image_reads_file_as_rgb(tmp_path):
    frame = np.zeros((64, 64, 3), dtype=np.uint8)
    frame[..., 2] = 255   # pure red in BGR
    path = tmp_path / "red.png"
    cv2.imwrite(str(path), frame)

    tensor = preprocess(path, ModelProfile.FRONT)

    assert tensor.shape == (3, 128, 128)
    assert torch.all(tensor[0] == 1.0)
    assert torch.all(tensor[1:] == -1.0)


def test_preprocess_is_deterministic(image_file):
    a = preprocess(image_file, ModelProfile.BACK)
    b = preprocess(image_file, ModelProfile.BACK)
    assert torch.equal(a, b)


def test_preprocess_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        preprocess(tmp_path / "missing.jpg", ModelProfile.FRONT)


def test_preprocess_corrupt_file(tmp_path):
    path = tmp_path / "corrupt.jpg"
    path.write_bytes(b"this is not a jpeg")
    with pytest.raises(ValueError, match="Unable to decode"):
        preprocess(path, ModelProfile.FRONT)


def test_prepare_frame_empty():
    with pytest.raises(ValueError):
        prepare_frame(np.array([]), ModelProfile.FRONT)

    with pytest.raises(ValueError):
        prepare_frame(None, ModelProfile.FRONT)


@pytest.mark.parametrize("shape", [(40, 60), (40, 60, 1), (40, 60, 4)])
def test_prepare_frame_rejects_non_bgr(shape):
    with pytest.raises(ValueError, match=r"\(H, W, 3\)"):
        prepare_frame(np.zeros(shape, dtype=np.uint8), ModelProfile.FRONT)
