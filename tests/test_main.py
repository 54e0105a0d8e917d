"""
Tests for the CLI entry point.
"""

import json
import sys

import pytest

import main
from blazeface.config import load_config
from blazeface.profile import ModelProfile

from conftest import set_constant_heads, write_model


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    return main.main()


def test_cli_overrides_are_validated(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["main.py", "--min-score", "0.4", "--profile", "back"])
    config = main.apply_overrides(load_config(None), main.parse_args())

    assert config.detection.min_score_threshold == 0.4
    assert config.model.model_profile is ModelProfile.BACK

    monkeypatch.setattr(sys, "argv", ["main.py", "--min-score", "1.4"])
    with pytest.raises(ValueError, match="min_score_threshold"):
        main.apply_overrides(load_config(None), main.parse_args())


def test_write_anchors(monkeypatch, tmp_path):
    assert _run(monkeypatch, "--write-anchors", "--profile", "back", "--model-dir", str(tmp_path)) == 0
    assert (tmp_path / "anchorsback.npy").is_file()


def test_batch_run_skips_bad_images(monkeypatch, tmp_path, image_file):
    model_dir = write_model(
        tmp_path / "models",
        ModelProfile.FRONT,
        mutate=lambda net: set_constant_heads(net, logit=3.0, box_size=0.1),
    )
    (tmp_path / "broken.jpg").write_bytes(b"not an image")
    out_dir = tmp_path / "out"

    code = _run(
        monkeypatch,
        "--source", str(tmp_path),
        "--model-dir", str(model_dir),
        "--dtype", "float32",
        "--min-score", "0.5",
        "--output-mode", "save_json,save_csv",
        "--output-path", str(out_dir),
    )

    assert code == 0
    payload = json.loads((out_dir / "detections.json").read_text(encoding="utf-8"))
    assert [i["image_id"] for i in payload["images"]] == [str(image_file)]
    assert payload["total_detections"] > 0
    assert (out_dir / "detections.csv").is_file()


def test_missing_model_exits_with_error(monkeypatch, tmp_path, image_file):
    code = _run(monkeypatch, "--source", str(image_file), "--model-dir", str(tmp_path / "none"))
    assert code == 1
