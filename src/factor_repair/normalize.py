"""
Anchor normalization: clear anchor-crossing cells before the repair loop runs.

A factor below the rebase level must be >= 1.0 and one above it must be <= 1.0.
Crossings are data errors, so they are overwritten with the same-row value one
column closer to the anchor:

    below anchor: columns 0 .. anchor-1 in ascending order, v < 1 -> v[col + 1]
    above anchor: columns n-1 .. anchor+1 in descending order, v > 1 -> v[col - 1]

One sweep per side, not a fixed point. Both sides start at the column farthest
from the anchor, so a run of adjacent crossing columns copies a value that is
itself still crossing; the residue is left for the repair loop.
"""

import logging

import numpy as np

from .config import ANCHOR_VALUE
from .grid import FactorGrid

logger = logging.getLogger(__name__)


def normalize_anchor(grid: FactorGrid) -> int:
    """
    Apply the anchor-crossing sweep to grid in place.

    Returns:
        Number of cells overwritten (0 in non-fixed mode)
    """
    if not grid.fixed or grid.anchor_col is None:
        return 0

    values = grid.values
    anchor = grid.anchor_col
    n_changed = 0

    for j in range(0, anchor):
        crossing = values[:, j] < ANCHOR_VALUE
        if crossing.any():
            values[crossing, j] = values[crossing, j + 1]
            n_changed += int(crossing.sum())

    for j in range(grid.n_deductibles - 1, anchor, -1):
        crossing = values[:, j] > ANCHOR_VALUE
        if crossing.any():
            values[crossing, j] = values[crossing, j - 1]
            n_changed += int(crossing.sum())

    if n_changed:
        logger.debug("Anchor normalization rewrote %d cell(s)", n_changed)
    return n_changed


def anchor_crossings(grid: FactorGrid) -> np.ndarray:
    """Boolean mask of cells on the wrong side of 1.0 for their column."""
    mask = np.zeros(grid.shape, dtype=bool)
    if grid.anchor_col is None:
        return mask
    anchor = grid.anchor_col
    mask[:, :anchor] = grid.values[:, :anchor] < ANCHOR_VALUE
    mask[:, anchor + 1:] = grid.values[:, anchor + 1:] > ANCHOR_VALUE
    return mask
