"""
Shared fixtures: synthetic model directories built from randomly
initialized networks, so no downloaded weights are needed.
"""

from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np
import pytest
import torch
from safetensors.torch import save_file

from blazeface.anchors import save_anchors
from blazeface.config import AppConfig, DetectionConfig, ModelConfig, OutputConfig
from blazeface.network import BlazeFace
from blazeface.profile import ModelProfile


def set_constant_heads(net: BlazeFace, logit: float, box_size: float = 0.0) -> None:
    """Make every anchor emit the same logit and a centred box of box_size.

    Box size is in normalized units; it is multiplied by the default
    decode scale (100) to get the raw regression value.
    """
    with torch.no_grad():
        for name in ("classifier_8", "classifier_16"):
            head = getattr(net, name)
            head.weight.zero_()
            head.bias.fill_(logit)
        for name in ("regressor_8", "regressor_16"):
            head = getattr(net, name)
            head.weight.zero_()
            bias = head.bias.view(-1, 16)
            bias.zero_()
            bias[:, 2:4] = box_size * 100.0


def write_model(
    directory: Path,
    profile: ModelProfile,
    seed: int = 0,
    mutate: Optional[Callable[[BlazeFace], None]] = None,
) -> Path:
    """Write a weight file and anchor table for a profile into directory."""
    torch.manual_seed(seed)
    net = BlazeFace(profile)
    if mutate is not None:
        mutate(net)

    directory.mkdir(parents=True, exist_ok=True)
    save_file(
        {k: v.contiguous() for k, v in net.state_dict().items()},
        str(directory / profile.weights_filename),
    )
    save_anchors(directory, profile)
    return directory


def make_config(
    model_dir: Path, profile: str = "front", dtype: str = "float32", **detection
) -> AppConfig:
    return AppConfig(
        model=ModelConfig(model_dir=str(model_dir), profile=profile, dtype=dtype),
        detection=DetectionConfig(**detection),
        output=OutputConfig(mode="log", save_path=str(model_dir / "output")),
    )


@pytest.fixture
def front_model_dir(tmp_path: Path) -> Path:
    return write_model(tmp_path / "models", ModelProfile.FRONT)


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    """A small textured BGR image on disk."""
    rng = np.random.default_rng(7)
    image = rng.integers(0, 256, size=(90, 160, 3), dtype=np.uint8)
    path = tmp_path / "photo.png"
    cv2.imwrite(str(path), image)
    return path
