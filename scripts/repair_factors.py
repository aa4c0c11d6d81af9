#!/usr/bin/env python3
"""
Deductible / Coverage-Limit Factor Repair

CLI entrypoint for repairing factor tables so that every (coverage, peril)
combination respects the cross-deductible and cross-limit ordering rules.

Usage:
    python scripts/repair_factors.py \
        --input data/factors.csv \
        --output-dir reports/repair \
        --rebase-level 500 \
        --validate

Input is a long-format CSV or parquet file with columns:
    coverage, peril, deductible, limit, factor

Ordering rules:
-----------------
    Rule A: factor[limit, d1] >= factor[limit, d2]  for d1 < d2
    Rule B: below the rebase deductible, factors fall toward 1.0 as the limit
            grows; above it, they rise toward 1.0

The worst violation is corrected by copying the neighbouring value nearer to
1.0 over the other, until no violation remains or --max-iters is reached.
"""

import argparse
import logging
import sys
from pathlib import Path

from factor_repair.config import DEFAULT_MAX_ITERS, RepairConfig
from factor_repair.errors import FactorRepairError
from factor_repair.table import export_results, load_factor_table, repair_table
from factor_repair.validate import generate_validation_report, validate_repaired_table
from factor_repair.vis import plot_adjustment_heatmap


def main(argv=None):
    """
    Main CLI entrypoint for factor repair.

    Workflow:
    1. Parse command line arguments
    2. Repair each coverage/peril combination
    3. Optionally validate the repaired table
    4. Export results and reports
    """
    parser = argparse.ArgumentParser(
        description="Repair deductible x coverage-limit factor tables.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic repair anchored at the 500 deductible
  python scripts/repair_factors.py --input data/factors.csv --output-dir reports/repair --rebase-level 500

  # Repair with validation, keep going past combinations that do not converge
  python scripts/repair_factors.py --input data/factors.csv --output-dir reports/repair --rebase-level 500 --validate --keep-going

  # No anchor column
  python scripts/repair_factors.py --input data/factors.csv --output-dir reports/repair --no-fixed
        """,
    )

    # Required arguments
    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="Path to long-format factor table (.csv or .parquet)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        required=True,
        help="Directory for output files (e.g., reports/repair)",
    )

    # Optional arguments
    parser.add_argument(
        "--rebase-level",
        type=float,
        default=None,
        help="Deductible level whose factors are 1.0. Required unless --no-fixed.",
    )
    parser.add_argument(
        "--no-fixed",
        action="store_true",
        help="Treat the table as having no anchor column.",
    )
    parser.add_argument(
        "--max-iters",
        type=int,
        default=DEFAULT_MAX_ITERS,
        help=f"Maximum correction rounds per combination (default: {DEFAULT_MAX_ITERS}).",
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Record non-converging combinations instead of aborting the run.",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Run post-repair validation to verify zero violations.",
    )
    parser.add_argument(
        "--no-plot",
        action="store_true",
        help="Skip the adjustment heatmap.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every correction.",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    input_path = Path(args.input)
    output_dir = Path(args.output_dir)

    if not input_path.exists():
        print(f"ERROR: Input file not found: {input_path}")
        return 2

    config = RepairConfig(
        rebase_level=args.rebase_level,
        max_iters=args.max_iters,
        fixed=not args.no_fixed,
    )

    print(f"\n{'='*70}")
    print("FACTOR REPAIR")
    print(f"{'='*70}")
    print(f"Input:  {input_path}")
    print(f"Output: {output_dir}")
    print(f"Mode:   {'fixed (rebase ' + str(args.rebase_level) + ')' if config.fixed else 'non-fixed'}")
    print(f"Max iterations: {config.max_iters}")
    print()

    # =========================================================================
    # Repair
    # =========================================================================
    try:
        df = load_factor_table(input_path)
        result = repair_table(df, config, raise_on_failure=not args.keep_going)
    except FactorRepairError as exc:
        print(f"ERROR: {exc}")
        return 1

    export_results(result, output_dir)
    if not args.no_plot:
        plot_adjustment_heatmap(result.repaired_df, output_dir)

    # =========================================================================
    # Validate repaired table (optional)
    # =========================================================================
    if args.validate:
        print("\nRunning post-repair validation...")
        validation = validate_repaired_table(result.repaired_df, config, original_df=df)
        generate_validation_report(validation, output_dir)

        print(f"Pre-repair violations:  {validation.pre_violations['total']}")
        print(f"Post-repair violations: {validation.post_violations['total']}")
        print(validation.message)

    # =========================================================================
    # Print final summary
    # =========================================================================
    pct = 100 * result.total_adjusted / result.total_cells if result.total_cells else 0.0
    print(f"\nRepair complete:")
    print(f"  Combinations: {len(result.summary_df)}")
    print(f"  Cells: {result.total_cells}")
    print(f"  Adjusted: {result.total_adjusted} ({pct:.1f}%)")
    print(f"  Non-converged: {result.n_failed}")

    print(f"\nOutputs written to: {output_dir}/")
    print(f"  - repaired_factors.csv      (full repaired table)")
    print(f"  - repair_summary.csv        (per coverage/peril metrics)")
    print(f"  - repair_trace.csv          (grid after every correction)")
    if not args.no_plot:
        print(f"  - adjustment_heatmap.png    (visualization)")
    if args.validate:
        print(f"  - validation_summary.csv    (pre/post violation counts)")

    return 1 if result.n_failed else 0


if __name__ == "__main__":
    sys.exit(main())
