"""
Post-repair validation.

Re-checks Rule A and Rule B on a repaired long-format table, independently of
the scanner's score matrices, and reports residual violations per
(coverage, peril) combination.

Unlike the repair loop, which compares exactly, checks here allow EPS of slack
so that values read back from CSV do not report spurious violations.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .config import EPS, FACTOR_COL, GROUP_COLS, REPAIRED_COL, RepairConfig
from .grid import FactorGrid, grid_from_frame
from .scan import Direction, required_direction

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Container for validation outputs."""

    # Summary of violations pre and post repair
    pre_violations: Dict[str, int]
    post_violations: Dict[str, int]

    # Detailed violation records (post-repair, empty if successful)
    rule_a_violations: pd.DataFrame
    rule_b_violations: pd.DataFrame

    is_valid: bool
    message: str


def check_rule_a(grid: FactorGrid) -> List[Dict]:
    """
    Cross-deductible check: each row must be non-increasing in deductible.

    Returns one record per adjacent column pair where the higher deductible
    carries the larger factor.
    """
    records = []
    values = grid.values
    deductibles = grid.deductible_levels

    for i in range(grid.n_limits):
        for j in range(grid.n_deductibles - 1):
            f_low, f_high = values[i, j], values[i, j + 1]
            if f_high > f_low + EPS:
                records.append({
                    "limit": grid.coverage_limit_levels[i],
                    "deductible_low": deductibles[j],
                    "deductible_high": deductibles[j + 1],
                    "factor_low": f_low,
                    "factor_high": f_high,
                    "violation": f_high - f_low,
                    "rule": "rule_a",
                })

    return records


def check_rule_b(grid: FactorGrid) -> List[Dict]:
    """
    Cross-limit check: factors must move toward 1.0 as coverage limit grows.

    The anchor column is exempt.
    """
    records = []
    values = grid.values
    limits = grid.coverage_limit_levels

    for j in range(grid.n_deductibles):
        if grid.is_anchor(j):
            continue
        direction = required_direction(grid.is_below_anchor(j))

        for i in range(grid.n_limits - 1):
            f_low, f_high = values[i, j], values[i + 1, j]
            if direction is Direction.DECREASE:
                gap = f_high - f_low
            else:
                gap = f_low - f_high

            if gap > EPS:
                records.append({
                    "deductible": grid.deductible_levels[j],
                    "limit_low": limits[i],
                    "limit_high": limits[i + 1],
                    "factor_low": f_low,
                    "factor_high": f_high,
                    "violation": gap,
                    "rule": "rule_b",
                })

    return records


def _collect(df: pd.DataFrame, config: RepairConfig, value_col: str):
    a_records, b_records = [], []
    for (coverage, peril), grp in df.groupby(GROUP_COLS, sort=True):
        grid = grid_from_frame(
            grp, fixed=config.fixed, rebase_level=config.rebase_level, value_col=value_col
        )
        for rec in check_rule_a(grid):
            a_records.append({GROUP_COLS[0]: coverage, GROUP_COLS[1]: peril, **rec})
        for rec in check_rule_b(grid):
            b_records.append({GROUP_COLS[0]: coverage, GROUP_COLS[1]: peril, **rec})
    return a_records, b_records


def count_violations_in_df(
    df: pd.DataFrame,
    config: RepairConfig,
    value_col: str = FACTOR_COL,
) -> Dict[str, int]:
    """
    Count Rule A / Rule B violations in a long table using a specific factor column.
    """
    a_records, b_records = _collect(df, config, value_col)
    return {
        "rule_a": len(a_records),
        "rule_b": len(b_records),
        "total": len(a_records) + len(b_records),
    }


def validate_repaired_table(
    repaired_df: pd.DataFrame,
    config: RepairConfig,
    original_df: Optional[pd.DataFrame] = None,
) -> ValidationResult:
    """
    Validate that a repaired table satisfies both ordering rules.

    Args:
        repaired_df: Long table with a factor_repaired column
        config: The RepairConfig used for the repair (anchor geometry)
        original_df: Optional original table for pre/post comparison; defaults
            to the factor column of repaired_df

    Returns:
        ValidationResult with detailed violation information
    """
    source = original_df if original_df is not None else repaired_df
    if FACTOR_COL in source.columns:
        pre_violations = count_violations_in_df(source, config, FACTOR_COL)
    else:
        pre_violations = {"rule_a": 0, "rule_b": 0, "total": 0}

    a_records, b_records = _collect(repaired_df, config, REPAIRED_COL)
    post_violations = {
        "rule_a": len(a_records),
        "rule_b": len(b_records),
        "total": len(a_records) + len(b_records),
    }

    is_valid = post_violations["total"] == 0
    if is_valid:
        message = "SUCCESS: All ordering violations eliminated."
    else:
        message = (
            f"WARNING: {post_violations['total']} residual violations remain "
            f"(rule_a={post_violations['rule_a']}, rule_b={post_violations['rule_b']})"
        )

    logger.info(
        "Validation: pre=%d post=%d (%s)",
        pre_violations["total"], post_violations["total"], "valid" if is_valid else "invalid",
    )

    return ValidationResult(
        pre_violations=pre_violations,
        post_violations=post_violations,
        rule_a_violations=pd.DataFrame(a_records),
        rule_b_violations=pd.DataFrame(b_records),
        is_valid=is_valid,
        message=message,
    )


def generate_validation_report(
    validation_result: ValidationResult,
    output_dir: Path,
) -> None:
    """
    Export validation results to files.

    Args:
        validation_result: ValidationResult from validate_repaired_table
        output_dir: Directory for output files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    summary = pd.DataFrame([{
        "pre_rule_a": validation_result.pre_violations["rule_a"],
        "pre_rule_b": validation_result.pre_violations["rule_b"],
        "pre_total": validation_result.pre_violations["total"],
        "post_rule_a": validation_result.post_violations["rule_a"],
        "post_rule_b": validation_result.post_violations["rule_b"],
        "post_total": validation_result.post_violations["total"],
        "is_valid": validation_result.is_valid,
        "message": validation_result.message,
    }])
    summary.to_csv(output_dir / "validation_summary.csv", index=False)

    if not validation_result.rule_a_violations.empty:
        validation_result.rule_a_violations.to_csv(
            output_dir / "residual_rule_a.csv", index=False
        )

    if not validation_result.rule_b_violations.empty:
        validation_result.rule_b_violations.to_csv(
            output_dir / "residual_rule_b.csv", index=False
        )
