"""
Configuration management for the BlazeFace detection system.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from blazeface.profile import ModelProfile

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: blazeface/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_dir: Directory holding the weight and anchor files
                   (relative to project root unless absolute).
        profile: Detector profile — 'front' (128x128) or 'back' (256x256).
        device: Torch device string — 'cpu', 'cuda', 'cuda:N' or 'mps'.
        dtype: Working precision for weights, anchors and inputs —
               'float16', 'bfloat16' or 'float32'.
        scale: Coordinate scale the regressor was trained against. Raw
               offsets are divided by this value during decoding.
    """

    model_dir: str = "models"
    profile: str = "front"
    device: str = "cpu"
    dtype: str = "float16"
    scale: float = 100.0

    @property
    def model_profile(self) -> ModelProfile:
        return ModelProfile.from_name(self.profile)


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds, fixed for the lifetime of a loaded model.

    Attributes:
        min_score_threshold: Minimum activated score to keep a candidate.
        min_suppression_threshold: IoU at or above which the lower-scoring
                                   of two candidates is suppressed.
    """

    min_score_threshold: float = 0.75
    min_suppression_threshold: float = 0.3


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Path to a single image file or a directory of images.
    """

    source: str = "images/"


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'log', 'save_json', 'save_csv'.
              Example: "log,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "log"
    save_path: str = "output/"

    @property
    def modes(self) -> frozenset:
        return frozenset(m.strip() for m in self.mode.split(",") if m.strip())


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_DTYPES = {"float16", "bfloat16", "float32"}
_VALID_OUTPUT_MODES = {"log", "save_json", "save_csv"}


def _validate_device(device: str) -> None:
    kind, _, index = device.partition(":")
    if kind not in {"cpu", "cuda", "mps"} or (index and not index.isdigit()):
        raise ValueError(
            f"Invalid model.device: '{device}'. "
            f"Must be 'cpu', 'mps', 'cuda' or 'cuda:<index>'."
        )


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    _validate_device(config.model.device)

    ModelProfile.from_name(config.model.profile)

    if config.model.dtype not in _VALID_DTYPES:
        raise ValueError(
            f"Invalid model.dtype: '{config.model.dtype}'. "
            f"Must be one of {sorted(_VALID_DTYPES)}."
        )

    if config.model.scale <= 0:
        raise ValueError(
            f"model.scale must be positive, got {config.model.scale}."
        )

    invalid_modes = config.output.modes - _VALID_OUTPUT_MODES
    if invalid_modes or not config.output.modes:
        raise ValueError(
            f"Invalid output.mode: '{config.output.mode}'. "
            f"Valid modes: {sorted(_VALID_OUTPUT_MODES)}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.min_score_threshold <= 1.0):
        raise ValueError(
            f"detection.min_score_threshold must be in [0.0, 1.0], "
            f"got {config.detection.min_score_threshold}."
        )

    if not (0.0 <= config.detection.min_suppression_threshold <= 1.0):
        raise ValueError(
            f"detection.min_suppression_threshold must be in [0.0, 1.0], "
            f"got {config.detection.min_suppression_threshold}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_dir" in raw:
        kwargs["model_dir"] = str(raw["model_dir"])
    if "profile" in raw:
        kwargs["profile"] = str(raw["profile"]).lower()
    if "device" in raw:
        kwargs["device"] = str(raw["device"]).lower()
    if "dtype" in raw:
        kwargs["dtype"] = str(raw["dtype"]).lower()
    if "scale" in raw:
        kwargs["scale"] = float(raw["scale"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "min_score_threshold" in raw:
        kwargs["min_score_threshold"] = float(raw["min_score_threshold"])
    if "min_suppression_threshold" in raw:
        kwargs["min_suppression_threshold"] = float(raw["min_suppression_threshold"])
    return DetectionConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "BLAZEFACE_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        BLAZEFACE_MODEL_DEVICE=cuda
        BLAZEFACE_MODEL_SCALE=256
        BLAZEFACE_DETECTION_MIN_SCORE_THRESHOLD=0.6
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_DIR": ("model", "model_dir"),
        f"{_ENV_PREFIX}MODEL_PROFILE": ("model", "profile"),
        f"{_ENV_PREFIX}MODEL_DEVICE": ("model", "device"),
        f"{_ENV_PREFIX}MODEL_DTYPE": ("model", "dtype"),
        f"{_ENV_PREFIX}MODEL_SCALE": ("model", "scale"),
        f"{_ENV_PREFIX}DETECTION_MIN_SCORE_THRESHOLD": ("detection", "min_score_threshold"),
        f"{_ENV_PREFIX}DETECTION_MIN_SUPPRESSION_THRESHOLD": ("detection", "min_suppression_threshold"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    config = AppConfig(
        model=_build_model_config(raw.get("model") or {}),
        detection=_build_detection_config(raw.get("detection") or {}),
        input=_build_input_config(raw.get("input") or {}),
        output=_build_output_config(raw.get("output") or {}),
    )

    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config


def validate_config(config: AppConfig) -> AppConfig:
    """Validate a programmatically built or CLI-overridden configuration.

    Returns the same config so callers can chain it after
    dataclasses.replace().
    """
    _validate(config)
    return config
