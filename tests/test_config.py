"""
Tests for the configuration module.
"""

import pytest

from blazeface.config import (
    AppConfig,
    DetectionConfig,
    ModelConfig,
    OutputConfig,
    _validate,
    load_config,
)
from blazeface.profile import ModelProfile


def test_load_defaults():
    """Test loading configuration without any file."""
    config = load_config(None)
    assert isinstance(config, AppConfig)
    assert config.model.device == "cpu"
    assert config.model.dtype == "float16"
    assert config.model.scale == 100.0
    assert config.model.model_profile is ModelProfile.FRONT
    assert config.detection.min_score_threshold == 0.75
    assert config.detection.min_suppression_threshold == 0.3


def test_validation_failure():
    """Test fail-fast validation."""
    with pytest.raises(ValueError, match="min_score_threshold"):
        _validate(AppConfig(detection=DetectionConfig(min_score_threshold=1.5)))

    with pytest.raises(ValueError, match="min_suppression_threshold"):
        _validate(AppConfig(detection=DetectionConfig(min_suppression_threshold=-0.1)))

    with pytest.raises(ValueError, match="device"):
        _validate(AppConfig(model=ModelConfig(device="tpu")))

    with pytest.raises(ValueError, match="device"):
        _validate(AppConfig(model=ModelConfig(device="cuda:x")))

    with pytest.raises(ValueError, match="dtype"):
        _validate(AppConfig(model=ModelConfig(dtype="int8")))

    with pytest.raises(ValueError, match="profile"):
        _validate(AppConfig(model=ModelConfig(profile="side")))

    with pytest.raises(ValueError, match="scale"):
        _validate(AppConfig(model=ModelConfig(scale=0.0)))

    with pytest.raises(ValueError, match="output.mode"):
        _validate(AppConfig(output=OutputConfig(mode="log,display")))


def test_valid_device_strings():
    for device in ("cpu", "cuda", "cuda:1", "mps"):
        _validate(AppConfig(model=ModelConfig(device=device)))


def test_env_override(monkeypatch):
    """Test environment variable overrides."""
    monkeypatch.setenv("BLAZEFACE_DETECTION_MIN_SCORE_THRESHOLD", "0.9")
    monkeypatch.setenv("BLAZEFACE_MODEL_PROFILE", "back")
    monkeypatch.setenv("BLAZEFACE_MODEL_DEVICE", "cuda")

    config = load_config(None)

    assert config.detection.min_score_threshold == 0.9
    assert config.model.model_profile is ModelProfile.BACK
    assert config.model.device == "cuda"


def test_env_override_scale(monkeypatch):
    monkeypatch.setenv("BLAZEFACE_MODEL_SCALE", "256")
    assert load_config(None).model.scale == 256.0

    monkeypatch.setenv("BLAZEFACE_MODEL_SCALE", "0")
    with pytest.raises(ValueError, match="scale"):
        load_config(None)


def test_yaml_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "model:\n"
        "  profile: BACK\n"
        "  dtype: float32\n"
        "detection:\n"
        "  min_suppression_threshold: 0.5\n"
        "output:\n"
        "  mode: log, save_json\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("BLAZEFACE_MODEL_DTYPE", "bfloat16")

    config = load_config(str(path))

    assert config.model.profile == "back"
    assert config.model.dtype == "bfloat16"  # env wins over YAML
    assert config.detection.min_suppression_threshold == 0.5
    assert config.detection.min_score_threshold == 0.75
    assert config.output.modes == {"log", "save_json"}


def test_missing_yaml_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Configuration file not found"):
        load_config(str(tmp_path / "nope.yaml"))
