"""
Model loading for the BlazeFace detection system.

Responsibility:
    Resolve the profile's weight and anchor files inside a model
    directory, deserialize them, cast them to the working precision on
    the configured device, and return a frozen, ready-to-infer network.

Non-goals:
    - No preprocessing, inference, or image-level logic.
    - No automatic model downloading.
    - No fallback to alternative models, devices, or precisions.

Failure behavior:
    - Missing files raise FileNotFoundError with the exact missing path.
    - Malformed containers, mismatched layer names/shapes, and unsupported
      device/precision pairs raise RuntimeError.
    - An anchor table of the wrong shape raises ValueError.
    No partially loaded model is ever returned.
"""

import logging
from pathlib import Path
from typing import Dict, Tuple

import numpy as np
import torch
import torch.nn.functional as F
from safetensors import SafetensorError
from safetensors.torch import load_file

from blazeface.config import DetectionConfig, ModelConfig, get_project_root
from blazeface.network import BlazeFace
from blazeface.profile import ModelProfile

logger = logging.getLogger(__name__)

_DTYPES = {
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
    "float32": torch.float32,
}


def resolve_dtype(name: str) -> torch.dtype:
    """Map a config dtype name to a torch dtype."""
    try:
        return _DTYPES[name]
    except KeyError:
        raise ValueError(
            f"Unsupported dtype: '{name}'. Must be one of {sorted(_DTYPES)}."
        ) from None


def resolve_model_files(model_dir: str, profile: ModelProfile) -> Tuple[Path, Path]:
    """Return (weights_path, anchors_path) for a profile.

    Relative directories are resolved against the project root.

    Raises:
        FileNotFoundError: If either file is missing.
    """
    base = Path(model_dir)
    if not base.is_absolute():
        base = get_project_root() / base

    weights = base / profile.weights_filename
    anchors = base / profile.anchors_filename

    if not weights.is_file():
        raise FileNotFoundError(
            f"Model weights not found.\n"
            f"  Expected: {weights}\n"
            f"  Place the {profile.name.lower()} model weights at the path above,\n"
            f"  or update 'model.model_dir' in your config."
        )

    if not anchors.is_file():
        raise FileNotFoundError(
            f"Anchor table not found.\n"
            f"  Expected: {anchors}\n"
            f"  Generate it with 'python main.py --write-anchors' or copy it\n"
            f"  next to the weights file."
        )

    return weights, anchors


def resolve_device(name: str) -> torch.device:
    """Return a torch device, failing if the backend is unavailable.

    Raises:
        RuntimeError: If CUDA or MPS is requested but not available.
    """
    device = torch.device(name)

    if device.type == "cuda":
        if not torch.cuda.is_available():
            raise RuntimeError(
                f"CUDA device '{name}' requested but CUDA is not available. "
                f"Install a CUDA-enabled torch build or use device 'cpu'."
            )
        if device.index is not None and device.index >= torch.cuda.device_count():
            raise RuntimeError(
                f"CUDA device '{name}' requested but only "
                f"{torch.cuda.device_count()} device(s) are present."
            )
    elif device.type == "mps" and not torch.backends.mps.is_available():
        raise RuntimeError(
            f"MPS device '{name}' requested but MPS is not available on this host."
        )

    return device


def check_precision_support(device: torch.device, dtype: torch.dtype) -> None:
    """Probe the device with a tiny convolution in the requested precision.

    Raises:
        RuntimeError: If the device cannot run convolutions in that dtype.
    """
    try:
        probe = torch.zeros((1, 2, 4, 4), device=device, dtype=dtype)
        kernel = torch.zeros((2, 1, 3, 3), device=device, dtype=dtype)
        F.conv2d(probe, kernel, groups=2)
    except (RuntimeError, TypeError) as e:
        raise RuntimeError(
            f"Device '{device}' does not support {dtype} convolutions. "
            f"Choose another 'model.dtype' (e.g. float32) or device.\n"
            f"  torch error: {e}"
        ) from e


def _load_weights(path: Path) -> Dict[str, torch.Tensor]:
    try:
        return load_file(str(path), device="cpu")
    except (SafetensorError, OSError, ValueError) as e:
        raise RuntimeError(f"Malformed weights file: {path}\n  {e}") from e


def _load_anchors(path: Path, profile: ModelProfile) -> np.ndarray:
    try:
        anchors = np.load(path, allow_pickle=False)
    except (OSError, ValueError, EOFError) as e:
        raise RuntimeError(f"Malformed anchor file: {path}\n  {e}") from e

    expected = (profile.anchor_count, 4)
    if anchors.shape != expected:
        raise ValueError(
            f"Anchor table shape mismatch in {path}: "
            f"expected {expected} for profile {profile.name}, got {anchors.shape}."
        )

    return anchors


def load_model(config: ModelConfig, detection: DetectionConfig) -> BlazeFace:
    """Load and configure the BlazeFace model for a profile.

    Args:
        config: ModelConfig with model directory, profile, device and dtype.
        detection: Score and suppression thresholds bound to the model.

    Returns:
        A frozen BlazeFace network with weights and anchors resident on
        the configured device in the configured precision.

    Raises:
        FileNotFoundError: If the weight or anchor file does not exist.
        RuntimeError: If a file is malformed, the weights do not fit the
                      architecture, or the device/precision is unsupported.
        ValueError: If the anchor table has the wrong shape.
    """
    profile = config.model_profile
    weights_path, anchors_path = resolve_model_files(config.model_dir, profile)

    device = resolve_device(config.device)
    dtype = resolve_dtype(config.dtype)
    check_precision_support(device, dtype)

    logger.info(
        "Loading %s model: weights=%s, anchors=%s",
        profile.name, weights_path, anchors_path,
    )
    weights = _load_weights(weights_path)
    anchors = _load_anchors(anchors_path, profile)

    net = BlazeFace(profile).to(device=device, dtype=dtype)
    try:
        net.load_state_dict(weights, strict=True)
    except RuntimeError as e:
        raise RuntimeError(
            f"Weights in {weights_path} do not match the {profile.name} "
            f"architecture.\n  {e}"
        ) from e

    net.bind(
        torch.from_numpy(anchors).to(device=device, dtype=dtype),
        scale=config.scale,
        min_score_threshold=detection.min_score_threshold,
        min_suppression_threshold=detection.min_suppression_threshold,
    )
    net.freeze()

    logger.info(
        "Model loaded successfully (profile=%s, device=%s, dtype=%s).",
        profile.name, device, config.dtype,
    )
    return net
