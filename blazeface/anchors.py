"""
SSD anchor table for the BlazeFace detector.

Responsibility:
    Rebuild the fixed anchor table a BlazeFace model was trained with,
    and write it to the .npy file the model loader expects.

The table has one row per anchor, (cx, cy, w, h) in normalized image
coordinates. Anchors are emitted grid by grid, row-major (y, then x),
with all anchors of a cell consecutive. This matches the order in which
the network flattens its head outputs.

Hard-coded:
    - Fixed anchor size: w = h = 1.0 (offsets are predicted in absolute
      scaled units, not relative to the anchor size).
    - Anchor centre offset of 0.5 cell.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from blazeface.profile import ModelProfile

logger = logging.getLogger(__name__)

# (stride, anchors per cell) for each output grid.
# The three stride-16 (front) / stride-32 (back) SSD layers share one grid
# and are merged into 6 anchors per cell.
_GRID_LAYOUT = {
    ModelProfile.FRONT: [(8, 2), (16, 6)],
    ModelProfile.BACK: [(16, 2), (32, 6)],
}

_ANCHOR_OFFSET = 0.5


def grid_layout(profile: ModelProfile) -> List[Tuple[int, int]]:
    """Return [(grid_size, anchors_per_cell), ...] for a profile."""
    return [
        (profile.resolution // stride, per_cell)
        for stride, per_cell in _GRID_LAYOUT[profile]
    ]


def generate_anchors(profile: ModelProfile) -> np.ndarray:
    """Generate the (anchor_count, 4) float32 anchor table for a profile."""
    rows = []
    for grid, per_cell in grid_layout(profile):
        centers = (np.arange(grid, dtype=np.float32) + _ANCHOR_OFFSET) / grid
        cy, cx = np.meshgrid(centers, centers, indexing="ij")
        cells = np.stack([cx.ravel(), cy.ravel()], axis=1)
        cells = np.repeat(cells, per_cell, axis=0)
        sizes = np.ones_like(cells)
        rows.append(np.concatenate([cells, sizes], axis=1))

    return np.concatenate(rows, axis=0).astype(np.float32)


def save_anchors(path: Union[str, Path], profile: ModelProfile) -> Path:
    """Write the anchor table for a profile to an .npy file.

    Args:
        path: Target file, or a directory in which case the profile's
              standard anchor file name is used.
        profile: Profile whose anchors are generated.

    Returns:
        The path that was written.
    """
    path = Path(path)
    if path.is_dir():
        path = path / profile.anchors_filename

    path.parent.mkdir(parents=True, exist_ok=True)
    np.save(path, generate_anchors(profile))
    logger.info("Anchors written: %s (%s, %d rows)", path, profile.name, profile.anchor_count)
    return path
