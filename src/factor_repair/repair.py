"""
Factor Repair Loop

Iteratively corrects a deductible x coverage-limit factor grid until it
satisfies both ordering rules:

    Rule A (cross-deductible): each row is non-increasing in deductible,
        end-to-end through the anchor value 1.0.
    Rule B (cross-limit): below-anchor columns are non-increasing in coverage
        limit, above-anchor columns non-decreasing; the anchor column is exempt.

Each round:
    1. Scan the grid for Rule A / Rule B scores.
    2. Stop if nothing is negative.
    3. Take the most negative score (first in column-major order on ties).
    4. Build the offending pair of adjacent cells along that rule's axis.
    5. Overwrite the pair cell farther from 1.0 with the nearer cell's value.
    6. Record a snapshot of the grid.

No value is ever interpolated: a correction copies an existing neighbour.
The round cap bounds the run; a dirty grid at the cap raises
NonConvergenceError.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import ANCHOR_VALUE, DEFAULT_MAX_ITERS, RepairConfig, validate_max_iters
from .errors import NonConvergenceError
from .grid import FactorGrid
from .normalize import normalize_anchor
from .scan import Rule, Violation, scan, worst_violation

logger = logging.getLogger(__name__)


@dataclass
class Correction:
    """One applied correction: which cell was overwritten and why."""

    iteration: int
    rule: Rule
    row: int
    col: int
    source_row: int
    source_col: int
    old_value: float
    new_value: float
    score: float


@dataclass
class RepairResult:
    """Container for a single-grid repair and its diagnostics."""

    grid: FactorGrid
    original: np.ndarray
    trace: List[np.ndarray] = field(default_factory=list)
    corrections: List[Correction] = field(default_factory=list)
    n_normalized: int = 0
    converged: bool = True

    @property
    def n_corrections(self) -> int:
        return len(self.trace)


def offending_pair(grid: FactorGrid, violation: Violation) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """
    The two adjacent cells responsible for a violation, ordered (first, second).

    Rule A pairs the triggering cell with its neighbour one column toward the
    anchor (the predecessor column without an anchor). Rule B pairs the
    triggering cell with the cell one coverage-limit level lower. In both cases
    the cell at the lower axis position comes first.
    """
    i, j = violation.row, violation.col
    if violation.rule is Rule.A:
        k = grid.toward_anchor(j)
        first, second = (i, min(j, k)), (i, max(j, k))
    else:
        first, second = (i - 1, j), (i, j)
    return first, second


def collapse_pair(
    grid: FactorGrid,
    first: Tuple[int, int],
    second: Tuple[int, int],
) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """
    Overwrite the pair cell farther from 1.0 with the nearer cell's value.

    On equal distance the first cell is kept and the second updated.

    Returns:
        (target, source) cell coordinates
    """
    dev_first = abs(grid.get(*first) - ANCHOR_VALUE)
    dev_second = abs(grid.get(*second) - ANCHOR_VALUE)

    if dev_first > dev_second:
        target, source = first, second
    else:
        target, source = second, first

    grid.set(*target, grid.get(*source))
    return target, source


def repair_grid(grid: FactorGrid, max_iters: int = DEFAULT_MAX_ITERS) -> RepairResult:
    """
    Repair grid in place.

    Runs the anchor normalizer once (fixed mode only), then up to max_iters
    correction rounds.

    Args:
        grid: FactorGrid to repair (mutated)
        max_iters: Maximum number of corrections

    Returns:
        RepairResult with one trace snapshot per correction

    Raises:
        NonConvergenceError: violations remain after max_iters corrections
    """
    validate_max_iters(max_iters)

    original = grid.snapshot()
    n_normalized = normalize_anchor(grid)

    trace: List[np.ndarray] = []
    corrections: List[Correction] = []

    for iteration in range(1, max_iters + 1):
        rule_a, rule_b = scan(grid)
        violation = worst_violation(rule_a, rule_b)
        if violation is None:
            break

        first, second = offending_pair(grid, violation)
        old_values = {first: grid.get(*first), second: grid.get(*second)}
        target, source = collapse_pair(grid, first, second)

        correction = Correction(
            iteration=iteration,
            rule=violation.rule,
            row=target[0],
            col=target[1],
            source_row=source[0],
            source_col=source[1],
            old_value=old_values[target],
            new_value=grid.get(*target),
            score=violation.score,
        )
        corrections.append(correction)
        trace.append(grid.snapshot())

        logger.debug(
            "Round %d: %s score=%.6g, cell (%d, %d) %.6g -> %.6g",
            iteration, violation.rule.value, violation.score,
            target[0], target[1], correction.old_value, correction.new_value,
        )

    # Final scan decides the outcome, including when the cap was hit exactly
    rule_a, rule_b = scan(grid)
    if worst_violation(rule_a, rule_b) is not None:
        raise NonConvergenceError(
            f"Factor grid still violates ordering rules after {max_iters} correction(s)",
            grid=grid.snapshot(),
            rule_a=rule_a,
            rule_b=rule_b,
            trace=trace,
            iterations=len(trace),
            n_normalized=n_normalized,
        )

    return RepairResult(
        grid=grid,
        original=original,
        trace=trace,
        corrections=corrections,
        n_normalized=n_normalized,
        converged=True,
    )


def repair(
    grid,
    deductible_levels: Sequence[float],
    coverage_limit_levels: Sequence[float],
    max_iters: int = DEFAULT_MAX_ITERS,
    fixed: bool = True,
    rebase_level: Optional[float] = None,
) -> Tuple[np.ndarray, List[np.ndarray]]:
    """
    Repair a factor table and return (repaired_grid, trace).

    Args:
        grid: Rectangular table of factors, rows keyed by coverage_limit_levels
            and columns by deductible_levels
        deductible_levels: Ascending, distinct deductible amounts
        coverage_limit_levels: Ascending, distinct coverage-limit levels
        max_iters: Positive bound on correction rounds
        fixed: Whether the table is anchored at rebase_level
        rebase_level: Deductible level whose factors are 1.0 (required when fixed)

    Returns:
        repaired_grid: numpy array with the input's shape
        trace: grid snapshot after each correction, in order

    Raises:
        ShapeError, ConfigError: before any processing
        NonConvergenceError: the cap was exhausted with violations left
    """
    config = RepairConfig(rebase_level=rebase_level, max_iters=max_iters, fixed=fixed)
    config.validate()

    factor_grid = FactorGrid(
        values=grid,
        deductible_levels=deductible_levels,
        coverage_limit_levels=coverage_limit_levels,
        fixed=fixed,
        rebase_level=rebase_level,
    )
    result = repair_grid(factor_grid, max_iters=max_iters)
    return result.grid.values, result.trace
