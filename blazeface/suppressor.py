"""
Non-maximum suppression for the BlazeFace pipeline.

Responsibility:
    Reduce a list of scored candidates to a set of non-overlapping
    detections with greedy NMS.

Tie-break policy:
    Candidates are ordered by score with a stable sort, so of two
    candidates with identical scores the one that came first in the
    input is accepted first. Decoder output is already in this order.
"""

from typing import List, Sequence, Tuple

import numpy as np

from blazeface.detection import Detection

Box = Tuple[float, float, float, float]


def iou(a: Box, b: Box) -> float:
    """Intersection-over-union of two (xmin, ymin, xmax, ymax) boxes.

    Zero-area and non-overlapping boxes yield 0.0.
    """
    inter_w = min(a[2], b[2]) - max(a[0], b[0])
    inter_h = min(a[3], b[3]) - max(a[1], b[1])
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    intersection = inter_w * inter_h
    area_a = max(0.0, a[2] - a[0]) * max(0.0, a[3] - a[1])
    area_b = max(0.0, b[2] - b[0]) * max(0.0, b[3] - b[1])
    union = area_a + area_b - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def _iou_one_to_many(box: np.ndarray, area: float, boxes: np.ndarray, areas: np.ndarray) -> np.ndarray:
    inter_w = np.clip(np.minimum(box[2], boxes[:, 2]) - np.maximum(box[0], boxes[:, 0]), 0.0, None)
    inter_h = np.clip(np.minimum(box[3], boxes[:, 3]) - np.maximum(box[1], boxes[:, 1]), 0.0, None)
    intersection = inter_w * inter_h
    union = area + areas - intersection
    return np.divide(
        intersection, union,
        out=np.zeros_like(intersection),
        where=union > 0,
    )


def non_max_suppression(
    candidates: Sequence[Detection],
    min_suppression_threshold: float,
) -> List[Detection]:
    """Greedy NMS over scored candidates.

    Repeatedly accepts the highest-scoring remaining candidate and drops
    every remaining candidate whose IoU with it is >= the threshold.

    Args:
        candidates: Detections in any order.
        min_suppression_threshold: IoU at or above which a lower-scoring
                                   candidate is suppressed.

    Returns:
        Accepted detections in descending score order. Empty input
        yields an empty list.
    """
    if not candidates:
        return []

    boxes = np.array([d.box for d in candidates], dtype=np.float64)
    scores = np.array([d.score for d in candidates], dtype=np.float64)
    widths = np.clip(boxes[:, 2] - boxes[:, 0], 0.0, None)
    heights = np.clip(boxes[:, 3] - boxes[:, 1], 0.0, None)
    areas = widths * heights

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        best = order[0]
        keep.append(int(best))
        rest = order[1:]
        overlaps = _iou_one_to_many(boxes[best], areas[best], boxes[rest], areas[rest])
        order = rest[overlaps < min_suppression_threshold]

    return [candidates[i] for i in keep]
