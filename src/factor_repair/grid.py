"""
Factor grid: the mutable deductible x coverage-limit table for one
coverage/peril combination.

Layout:
    values[i, j] = factor for coverage limit i (ascending), deductible j (ascending)

Only shape consistency is checked here. Anchor values are assumed to be 1.0
and are not enforced.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .config import DEDUCTIBLE_COL, FACTOR_COL, LIMIT_COL
from .errors import ConfigError, ShapeError


def _as_levels(levels: Sequence[float], name: str) -> np.ndarray:
    arr = np.asarray(levels, dtype=float)
    if arr.ndim != 1 or len(arr) == 0:
        raise ShapeError(f"{name} must be a non-empty 1-D sequence")
    if np.isnan(arr).any():
        raise ShapeError(f"{name} contains NaN")
    if len(arr) > 1 and not np.all(np.diff(arr) > 0):
        raise ShapeError(f"{name} must be strictly ascending with no duplicates: {arr.tolist()}")
    return arr


@dataclass
class FactorGrid:
    """Factor table plus its ordered level axes and anchor column."""

    values: np.ndarray  # [n_limits x n_deductibles]
    deductible_levels: np.ndarray
    coverage_limit_levels: np.ndarray
    fixed: bool = True
    rebase_level: Optional[float] = None
    anchor_col: Optional[int] = field(default=None, init=False)

    def __post_init__(self):
        self.deductible_levels = _as_levels(self.deductible_levels, "deductible_levels")
        self.coverage_limit_levels = _as_levels(self.coverage_limit_levels, "coverage_limit_levels")

        try:
            values = np.array(self.values, dtype=float)
        except ValueError as exc:
            raise ShapeError(f"grid is not rectangular: {exc}") from exc
        if values.ndim != 2:
            raise ShapeError(f"grid must be 2-D, got {values.ndim} dimension(s)")
        expected = (len(self.coverage_limit_levels), len(self.deductible_levels))
        if values.shape != expected:
            raise ShapeError(
                f"grid shape {values.shape} does not match "
                f"(n_limits, n_deductibles) = {expected}"
            )
        self.values = values

        if self.fixed:
            if self.rebase_level is None:
                raise ConfigError("rebase_level is required when fixed=True")
            matches = np.flatnonzero(self.deductible_levels == float(self.rebase_level))
            if len(matches) == 0:
                raise ConfigError(
                    f"rebase_level {self.rebase_level!r} is not one of the deductible levels "
                    f"{self.deductible_levels.tolist()}"
                )
            self.anchor_col = int(matches[0])

    @property
    def n_limits(self) -> int:
        return len(self.coverage_limit_levels)

    @property
    def n_deductibles(self) -> int:
        return len(self.deductible_levels)

    @property
    def shape(self):
        return self.values.shape

    def get(self, row: int, col: int) -> float:
        return float(self.values[row, col])

    def set(self, row: int, col: int, value: float) -> None:
        self.values[row, col] = value

    def is_below_anchor(self, col: int) -> bool:
        """Whether column col sits strictly below the rebase level (always False when not fixed)."""
        return self.anchor_col is not None and col < self.anchor_col

    def is_anchor(self, col: int) -> bool:
        return self.anchor_col is not None and col == self.anchor_col

    def toward_anchor(self, col: int) -> int:
        """
        Neighbouring column one step closer to the anchor.

        Without an anchor every column defers to its predecessor.
        """
        if self.is_below_anchor(col):
            return col + 1
        return col - 1

    def dispersion(self) -> float:
        """Sum of absolute distances from 1.0 over all cells."""
        return float(np.abs(self.values - 1.0).sum())

    def snapshot(self) -> np.ndarray:
        return self.values.copy()

    def copy(self) -> "FactorGrid":
        return FactorGrid(
            values=self.values.copy(),
            deductible_levels=self.deductible_levels.copy(),
            coverage_limit_levels=self.coverage_limit_levels.copy(),
            fixed=self.fixed,
            rebase_level=self.rebase_level,
        )

    def to_frame(self, value_col: str = FACTOR_COL) -> pd.DataFrame:
        """Long-format view: one row per (limit, deductible) cell."""
        limits, deductibles = np.meshgrid(
            self.coverage_limit_levels, self.deductible_levels, indexing="ij"
        )
        return pd.DataFrame({
            LIMIT_COL: limits.ravel(),
            DEDUCTIBLE_COL: deductibles.ravel(),
            value_col: self.values.ravel(),
        })

    def to_pivot(self) -> pd.DataFrame:
        """Wide view: limits as index, deductibles as columns."""
        return pd.DataFrame(
            self.values,
            index=pd.Index(self.coverage_limit_levels, name=LIMIT_COL),
            columns=pd.Index(self.deductible_levels, name=DEDUCTIBLE_COL),
        )


def grid_from_frame(
    df: pd.DataFrame,
    fixed: bool = True,
    rebase_level: Optional[float] = None,
    value_col: str = FACTOR_COL,
) -> FactorGrid:
    """
    Pivot a long-format table of one coverage/peril combination into a FactorGrid.

    Each (limit, deductible) pair must appear exactly once and the pivot must be
    dense; holes or duplicates raise ShapeError.
    """
    missing = {LIMIT_COL, DEDUCTIBLE_COL, value_col} - set(df.columns)
    if missing:
        raise ShapeError(f"Missing required columns: {sorted(missing)}")

    dupes = df.duplicated(subset=[LIMIT_COL, DEDUCTIBLE_COL])
    if dupes.any():
        first = df.loc[dupes, [LIMIT_COL, DEDUCTIBLE_COL]].iloc[0].tolist()
        raise ShapeError(f"Duplicate (limit, deductible) cell: {first}")

    pivot = df.pivot(index=LIMIT_COL, columns=DEDUCTIBLE_COL, values=value_col)
    pivot = pivot.sort_index()
    pivot = pivot.reindex(sorted(pivot.columns), axis=1)

    if pivot.isna().to_numpy().any():
        n_missing = int(pivot.isna().to_numpy().sum())
        raise ShapeError(f"Factor table is not dense: {n_missing} (limit, deductible) cell(s) missing")

    return FactorGrid(
        values=pivot.to_numpy(dtype=float),
        deductible_levels=pivot.columns.to_numpy(dtype=float),
        coverage_limit_levels=pivot.index.to_numpy(dtype=float),
        fixed=fixed,
        rebase_level=rebase_level,
    )
