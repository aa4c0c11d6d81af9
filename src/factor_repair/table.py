"""
Batch repair over a long-format factor table.

Input columns: coverage, peril, deductible, limit, factor. Each
(coverage, peril) combination is pivoted into its own FactorGrid and repaired
independently; results are stacked back into long format.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from .config import (
    DEDUCTIBLE_COL,
    EPS,
    FACTOR_COL,
    GROUP_COLS,
    LIMIT_COL,
    REPAIRED_COL,
    RepairConfig,
)
from .errors import NonConvergenceError, ShapeError
from .grid import FactorGrid, grid_from_frame
from .repair import repair_grid
from .scan import count_violations

logger = logging.getLogger(__name__)

REQUIRED_COLS = GROUP_COLS + [DEDUCTIBLE_COL, LIMIT_COL, FACTOR_COL]


@dataclass
class TableRepairResult:
    """Container for batch repair outputs and diagnostics."""

    # Long table with factor_repaired and adjustment columns
    repaired_df: pd.DataFrame

    # Per (coverage, peril) status, corrections and dispersion
    summary_df: pd.DataFrame

    # Stacked trace snapshots, one block of cells per correction
    trace_df: pd.DataFrame

    total_cells: int = 0
    total_adjusted: int = 0
    n_failed: int = 0


def load_factor_table(input_path: Path) -> pd.DataFrame:
    """
    Load a long-format factor table from CSV or parquet.

    Rows with a missing factor or level are rejected rather than dropped, since
    the grid must be dense.
    """
    input_path = Path(input_path)
    if input_path.suffix == ".parquet":
        df = pd.read_parquet(input_path)
    else:
        df = pd.read_csv(input_path)

    missing = set(REQUIRED_COLS) - set(df.columns)
    if missing:
        raise ShapeError(f"Missing required columns: {sorted(missing)}")

    n_nan = int(df[REQUIRED_COLS].isna().any(axis=1).sum())
    if n_nan:
        raise ShapeError(f"{n_nan} row(s) with missing values in {REQUIRED_COLS}")

    df[[DEDUCTIBLE_COL, LIMIT_COL, FACTOR_COL]] = df[[DEDUCTIBLE_COL, LIMIT_COL, FACTOR_COL]].astype(float)
    return df.sort_values(GROUP_COLS + [LIMIT_COL, DEDUCTIBLE_COL]).reset_index(drop=True)


def trace_frame(trace: List[np.ndarray], grid: FactorGrid) -> pd.DataFrame:
    """Long-format view of a trace: one row per cell per correction."""
    frames = []
    for iteration, snapshot in enumerate(trace, start=1):
        snap = FactorGrid(
            values=snapshot,
            deductible_levels=grid.deductible_levels,
            coverage_limit_levels=grid.coverage_limit_levels,
            fixed=False,
        ).to_frame()
        snap.insert(0, "iteration", iteration)
        frames.append(snap)
    if not frames:
        return pd.DataFrame(columns=["iteration", LIMIT_COL, DEDUCTIBLE_COL, FACTOR_COL])
    return pd.concat(frames, ignore_index=True)


def _repair_combination(
    group: pd.DataFrame,
    config: RepairConfig,
    raise_on_failure: bool,
) -> Dict:
    grid = grid_from_frame(group, fixed=config.fixed, rebase_level=config.rebase_level)
    dispersion_before = grid.dispersion()
    pre = count_violations(grid)

    try:
        result = repair_grid(grid, max_iters=config.max_iters)
        trace, n_normalized = result.trace, result.n_normalized
        status = "converged"
    except NonConvergenceError as exc:
        if raise_on_failure:
            raise
        # grid was repaired in place up to the failure point
        status = "non_converged"
        trace, n_normalized = exc.trace, exc.n_normalized

    return {
        "status": status,
        "grid": grid,
        "trace": trace,
        "n_normalized": n_normalized,
        "dispersion_before": dispersion_before,
        "pre_violations": pre["total"],
        "post_violations": count_violations(grid)["total"],
    }


def repair_table(
    df: pd.DataFrame,
    config: RepairConfig,
    raise_on_failure: bool = True,
) -> TableRepairResult:
    """
    Repair every (coverage, peril) combination in a long-format table.

    Args:
        df: Long-format factor table (see load_factor_table)
        config: Repair parameters shared by all combinations
        raise_on_failure: Re-raise NonConvergenceError; when False the
            combination is recorded as non_converged with its last grid state

    Returns:
        TableRepairResult with repaired data, summary and trace
    """
    config.validate()
    missing = set(REQUIRED_COLS) - set(df.columns)
    if missing:
        raise ShapeError(f"Missing required columns: {sorted(missing)}")

    # groupby would silently drop rows keyed by a missing coverage or peril
    n_nan = int(df[REQUIRED_COLS].isna().any(axis=1).sum())
    if n_nan:
        raise ShapeError(f"{n_nan} row(s) with missing values in {REQUIRED_COLS}")

    df = df.copy()
    level_cols = [DEDUCTIBLE_COL, LIMIT_COL, FACTOR_COL]
    df[level_cols] = df[level_cols].astype(float)

    repaired_frames = []
    trace_frames = []
    summary_rows = []

    for (coverage, peril), group in df.groupby(GROUP_COLS, sort=True):
        logger.info("Repairing coverage=%s peril=%s (%d cells)", coverage, peril, len(group))
        try:
            out = _repair_combination(group, config, raise_on_failure)
        except NonConvergenceError:
            logger.error("coverage=%s peril=%s did not converge", coverage, peril)
            raise

        if out["status"] != "converged":
            logger.warning(
                "coverage=%s peril=%s did not converge within %d round(s); keeping last grid state",
                coverage, peril, config.max_iters,
            )

        grid = out["grid"]
        repaired = grid.to_frame(value_col=REPAIRED_COL)
        merged = group.merge(repaired, on=[LIMIT_COL, DEDUCTIBLE_COL], how="left")
        merged["adjustment"] = merged[REPAIRED_COL] - merged[FACTOR_COL]
        repaired_frames.append(merged)

        if out["trace"]:
            tf = trace_frame(out["trace"], grid)
            tf.insert(0, GROUP_COLS[1], peril)
            tf.insert(0, GROUP_COLS[0], coverage)
            trace_frames.append(tf)

        summary_rows.append({
            GROUP_COLS[0]: coverage,
            GROUP_COLS[1]: peril,
            "status": out["status"],
            "n_limits": grid.n_limits,
            "n_deductibles": grid.n_deductibles,
            "n_normalized": out["n_normalized"],
            "n_corrections": len(out["trace"]),
            "pre_violations": out["pre_violations"],
            "post_violations": out["post_violations"],
            "dispersion_before": out["dispersion_before"],
            "dispersion_after": grid.dispersion(),
            "n_adjusted": int((merged["adjustment"].abs() > EPS).sum()),
        })

    repaired_df = pd.concat(repaired_frames, ignore_index=True) if repaired_frames else pd.DataFrame()
    if trace_frames:
        trace_df = pd.concat(trace_frames, ignore_index=True)
    else:
        trace_df = pd.DataFrame(columns=GROUP_COLS + ["iteration", LIMIT_COL, DEDUCTIBLE_COL, FACTOR_COL])
    summary_df = pd.DataFrame(summary_rows)

    total_cells = len(repaired_df)
    total_adjusted = int(summary_df["n_adjusted"].sum()) if not summary_df.empty else 0
    n_failed = int((summary_df["status"] != "converged").sum()) if not summary_df.empty else 0

    logger.info(
        "Repaired %d combination(s): %d of %d cells adjusted, %d failed",
        len(summary_df), total_adjusted, total_cells, n_failed,
    )

    return TableRepairResult(
        repaired_df=repaired_df,
        summary_df=summary_df,
        trace_df=trace_df,
        total_cells=total_cells,
        total_adjusted=total_adjusted,
        n_failed=n_failed,
    )


def export_results(result: TableRepairResult, output_dir: Path) -> Path:
    """Write repaired table, summary and trace CSVs; returns the output dir."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    result.repaired_df.to_csv(output_dir / "repaired_factors.csv", index=False)
    result.summary_df.to_csv(output_dir / "repair_summary.csv", index=False)
    result.trace_df.to_csv(output_dir / "repair_trace.csv", index=False)
    return output_dir
