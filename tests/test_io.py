"""
Tests for input iteration, serialization and output routing.
"""

import csv
import json

import pytest

from blazeface.config import AppConfig, OutputConfig
from blazeface.detection import Detection
from blazeface.input_handler import InputHandler
from blazeface.output_handler import OutputHandler
from blazeface.serializer import save_csv, save_json


def _det(score=0.9):
    return Detection(
        score=score, xmin=0.1, ymin=0.2, xmax=0.4, ymax=0.6,
        keypoints=((0.2, 0.3), (0.3, 0.3)),
    )


def test_input_single_image(image_file):
    handler = InputHandler(str(image_file))
    assert len(handler) == 1
    assert list(handler) == [(str(image_file), image_file)]


def test_input_directory_sorted_and_filtered(tmp_path):
    for name in ("b.jpg", "a.PNG", "notes.txt", "c.webp"):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "sub.jpg").mkdir()

    handler = InputHandler(tmp_path)

    assert [p.name for _, p in handler] == ["a.PNG", "b.jpg", "c.webp"]


def test_input_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        InputHandler(tmp_path / "missing")

    with pytest.raises(ValueError, match="No image files"):
        InputHandler(tmp_path)

    text = tmp_path / "notes.txt"
    text.write_text("hi")
    with pytest.raises(ValueError, match="Unrecognized file extension"):
        InputHandler(text)


def test_detection_helpers():
    det = _det()
    assert det.width == pytest.approx(0.3)
    assert det.height == pytest.approx(0.4)
    assert det.area == pytest.approx(0.12)
    assert det.to_pixels(128) == (12, 25, 51, 76)
    assert Detection(0.5, 0.6, 0.6, 0.5, 0.5).area == 0.0
    assert Detection(0.5, -0.1, -0.1, 1.2, 1.2).to_pixels(100) == (0, 0, 99, 99)


def test_save_json(tmp_path):
    path = tmp_path / "out" / "detections.json"

    save_json({"b.jpg": [_det(0.8)], "a.jpg": [_det(0.9), _det(0.7)]}, str(path))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["total_images"] == 2
    assert payload["total_detections"] == 3
    assert [i["image_id"] for i in payload["images"]] == ["a.jpg", "b.jpg"]
    first = payload["images"][0]["detections"][0]
    assert first["score"] == 0.9
    assert first["keypoints"] == [[0.2, 0.3], [0.3, 0.3]]


def test_save_csv(tmp_path):
    path = tmp_path / "detections.csv"

    save_csv({"a.jpg": [_det(), _det(0.5)], "empty.jpg": []}, str(path))

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 2
    assert rows[0]["image_id"] == "a.jpg"
    assert float(rows[1]["score"]) == 0.5
    assert rows[0]["keypoints"] == "0.2:0.3 0.3:0.3"


def test_output_handler_writes_selected_sinks(tmp_path):
    config = AppConfig(output=OutputConfig(mode="log,save_json", save_path=str(tmp_path)))
    handler = OutputHandler(config)

    handler.process_image("a.jpg", [_det()])
    handler.process_image("b.jpg", [])
    handler.finalize()

    assert (tmp_path / "detections.json").is_file()
    assert not (tmp_path / "detections.csv").exists()
    payload = json.loads((tmp_path / "detections.json").read_text(encoding="utf-8"))
    assert payload["total_images"] == 2
