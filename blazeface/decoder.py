"""
Anchor decoding for the BlazeFace pipeline.

Responsibility:
    Turn the raw per-anchor network output into scored Detection
    candidates: activate the classification logits, apply the score
    threshold, and decode regression offsets against the anchor table
    into normalized boxes and keypoints.

Non-goals:
    - No overlap resolution (see suppressor).
    - No model loading or inference.

Hard-coded:
    - Regression layout per anchor: [dx, dy, dw, dh, k0x, k0y, k1x, ...].
    - Decode arithmetic is carried in float32 regardless of the model's
      working precision, so reduced-precision rounding of offset/scale
      does not shift boxes.
"""

from typing import List, NamedTuple

import numpy as np
import torch

from blazeface.detection import Detection

# Logits are clamped to this magnitude before the sigmoid.
SCORE_CLIPPING_THRESHOLD = 100.0


class RawOutput(NamedTuple):
    """Raw network output for a single image, aligned by anchor index.

    Attributes:
        scores: (num_anchors,) classification logits (pre-activation).
        regressions: (num_anchors, 4 + 2 * num_keypoints) offsets.
    """

    scores: torch.Tensor
    regressions: torch.Tensor


def activate_scores(
    raw_scores: torch.Tensor,
    clip: float = SCORE_CLIPPING_THRESHOLD,
) -> torch.Tensor:
    """Map raw logits to [0, 1] confidences with a clamped sigmoid."""
    return torch.sigmoid(raw_scores.float().clamp(-clip, clip))


def decode_boxes(
    regressions: torch.Tensor,
    anchors: torch.Tensor,
    scale: float,
) -> torch.Tensor:
    """Decode regression offsets into absolute normalized coordinates.

    Each anchor row decodes only from its own regression row:

        cx = anchor.cx + dx / scale        w = dw / scale
        cy = anchor.cy + dy / scale        h = dh / scale
        box = (cx - w/2, cy - h/2, cx + w/2, cy + h/2)
        keypoint k = (anchor.cx + kx / scale, anchor.cy + ky / scale)

    Args:
        regressions: (N, 4 + 2K) raw offsets.
        anchors: (N, 4) anchor table (cx, cy, w, h).
        scale: Coordinate scale the regressor was trained against.

    Returns:
        (N, 4 + 2K) float32 tensor: xmin, ymin, xmax, ymax, then K
        keypoint (x, y) pairs.
    """
    if regressions.shape[0] != anchors.shape[0]:
        raise ValueError(
            f"Regression rows ({regressions.shape[0]}) do not match "
            f"anchor rows ({anchors.shape[0]})."
        )

    offsets = regressions.float() / scale
    anchors = anchors.float().to(offsets.device)
    anchor_cx = anchors[:, 0]
    anchor_cy = anchors[:, 1]

    center_x = anchor_cx + offsets[:, 0]
    center_y = anchor_cy + offsets[:, 1]
    half_w = offsets[:, 2] / 2.0
    half_h = offsets[:, 3] / 2.0

    boxes = torch.stack(
        [center_x - half_w, center_y - half_h, center_x + half_w, center_y + half_h],
        dim=-1,
    )

    keypoints = offsets[:, 4:].clone()
    keypoints[:, 0::2] += anchor_cx.unsqueeze(-1)
    keypoints[:, 1::2] += anchor_cy.unsqueeze(-1)

    return torch.cat([boxes, keypoints], dim=-1)


def decode(
    raw: RawOutput,
    anchors: torch.Tensor,
    scale: float,
    min_score_threshold: float,
) -> List[Detection]:
    """Decode raw output into candidates at or above the score threshold.

    The sigmoid is applied before thresholding; a candidate whose
    activated score equals the threshold is kept.

    Returns:
        Detections sorted by descending score. The sort is stable, so
        candidates with equal scores stay in anchor-index order.
    """
    scores = activate_scores(raw.scores)
    keep = scores >= min_score_threshold
    if not bool(keep.any()):
        return []

    decoded = decode_boxes(raw.regressions[keep], anchors[keep], scale)

    scores_np = scores[keep].cpu().numpy()
    decoded_np = decoded.cpu().numpy()
    order = np.argsort(-scores_np, kind="stable")

    detections: List[Detection] = []
    for i in order:
        row = decoded_np[i].tolist()
        keypoints = tuple(zip(row[4::2], row[5::2]))
        detections.append(Detection(
            score=float(scores_np[i]),
            xmin=row[0], ymin=row[1], xmax=row[2], ymax=row[3],
            keypoints=keypoints,
        ))

    return detections
