"""
BlazeFace — face detection inference with the BlazeFace SSD detector.

Public API:
    - Detector: The single entry point for face detection.
    - Detection: Data transfer object representing a detected face.
    - ModelProfile: Front (128x128) or back (256x256) detector profile.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from blazeface import Detector, Detection

    detector = Detector()
    detections = detector.detect_file("photo.jpg")
"""

from blazeface.detection import Detection
from blazeface.detector import Detector
from blazeface.profile import ModelProfile

__all__ = ["Detector", "Detection", "ModelProfile"]
