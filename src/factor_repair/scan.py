"""
Violation scanner.

Builds two signed score matrices with the grid's shape:

    rule_a[i, j]  cross-deductible check for cell (i, j) against its neighbour
                  one column closer to the anchor (predecessor column when the
                  grid has no anchor)
    rule_b[i, j]  cross-limit check for cell (i, j) against the cell one
                  coverage-limit level lower in the same column

A strictly negative score is a violation; its magnitude is the size of the
mis-ordered step. Boundaries, ties and the anchor column score NEUTRAL_SCORE.

Required directions (rows = ascending limit, columns = ascending deductible):
    Rule A: every row non-increasing across deductibles, through the anchor.
    Rule B: below-anchor columns non-increasing down the rows, all other
            columns non-decreasing. Without an anchor every column is treated
            as sitting above it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .config import NEUTRAL_SCORE
from .grid import FactorGrid


class Direction(Enum):
    INCREASE = 1
    DECREASE = -1


class Rule(Enum):
    A = "rule_a"
    B = "rule_b"


def required_direction(column_is_below_anchor: bool) -> Direction:
    """
    Direction a column must move in as coverage limit grows.

    Below-anchor factors sit above 1.0 and must come down toward it; the others
    sit at or below 1.0 and must climb toward it.
    """
    return Direction.DECREASE if column_is_below_anchor else Direction.INCREASE


def scan_rule_b(grid: FactorGrid) -> np.ndarray:
    """Cross-limit (per column) violation scores."""
    values = grid.values
    scores = np.full(values.shape, NEUTRAL_SCORE)
    if grid.n_limits < 2:
        return scores

    # diff[i] = v[i] - v[i-1], first row stays neutral
    diffs = np.diff(values, axis=0)
    for j in range(grid.n_deductibles):
        if grid.is_anchor(j):
            continue
        sign = required_direction(grid.is_below_anchor(j)).value
        scores[1:, j] = sign * diffs[:, j]

    scores[scores == 0] = NEUTRAL_SCORE
    return scores


def scan_rule_a(grid: FactorGrid) -> np.ndarray:
    """Cross-deductible (per row) violation scores, evaluated column by column."""
    values = grid.values
    scores = np.full(values.shape, NEUTRAL_SCORE)

    # Work on the transpose so each deductible is a row of consecutive differences
    by_deductible = values.T
    for j in range(grid.n_deductibles):
        if grid.is_anchor(j):
            continue
        k = grid.toward_anchor(j)
        if k < 0:
            continue
        # Lower deductible must carry the larger (or equal) factor
        lo, hi = (j, k) if j < k else (k, j)
        scores[:, j] = by_deductible[lo] - by_deductible[hi]

    scores[scores == 0] = NEUTRAL_SCORE
    return scores


def scan(grid: FactorGrid) -> Tuple[np.ndarray, np.ndarray]:
    """Return (rule_a, rule_b) score matrices for the current grid state."""
    return scan_rule_a(grid), scan_rule_b(grid)


def has_violation(rule_a: np.ndarray, rule_b: np.ndarray) -> bool:
    return bool((rule_a < 0).any() or (rule_b < 0).any())


@dataclass(frozen=True)
class Violation:
    """The single worst violation found by a scan."""

    rule: Rule
    row: int
    col: int
    score: float


def worst_violation(rule_a: np.ndarray, rule_b: np.ndarray) -> Optional[Violation]:
    """
    Most negative score across both matrices, or None when the grid is clean.

    Candidates are ordered cell by cell in column-major order (row varies
    fastest), with the Rule A score of a cell ahead of its Rule B score; the
    first minimum in that order wins ties.
    """
    if not has_violation(rule_a, rule_b):
        return None

    n_rows = rule_a.shape[0]
    # [a(0,0), b(0,0), a(1,0), b(1,0), ...]
    flat = np.stack([rule_a.ravel(order="F"), rule_b.ravel(order="F")]).ravel(order="F")
    pos = int(np.argmin(flat))

    rule = Rule.A if pos % 2 == 0 else Rule.B
    cell = pos // 2
    row, col = cell % n_rows, cell // n_rows
    return Violation(rule=rule, row=row, col=col, score=float(flat[pos]))


def count_violations(grid: FactorGrid) -> dict:
    """Violation counts per rule for the current grid state."""
    rule_a, rule_b = scan(grid)
    n_a = int((rule_a < 0).sum())
    n_b = int((rule_b < 0).sum())
    return {"rule_a": n_a, "rule_b": n_b, "total": n_a + n_b}
