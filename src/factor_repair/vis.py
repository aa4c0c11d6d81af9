from pathlib import Path

import matplotlib
import numpy as np
import pandas as pd

from .config import DEDUCTIBLE_COL, LIMIT_COL

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402  # isort:skip


def plot_adjustment_heatmap(repaired_df: pd.DataFrame, output_dir: Path) -> None:
    """
    Visualize where repairs happened by deductible and coverage limit.

    Cells are the mean absolute adjustment over all coverage/peril combinations.
    """
    if repaired_df.empty or "adjustment" not in repaired_df.columns:
        return

    pivot = repaired_df.groupby([LIMIT_COL, DEDUCTIBLE_COL])["adjustment"].apply(
        lambda x: np.abs(x).mean()
    ).unstack(fill_value=0)

    if pivot.empty:
        return

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(max(6, pivot.shape[1] * 0.8), max(4, pivot.shape[0] * 0.5)))
    im = ax.imshow(pivot.values, aspect="auto", origin="lower", cmap="YlOrRd")

    ax.set_xticks(range(len(pivot.columns)))
    ax.set_xticklabels([f"{d:,.0f}" for d in pivot.columns], rotation=45, ha="right", fontsize=8)
    ax.set_yticks(range(len(pivot.index)))
    ax.set_yticklabels([f"{lim:,.0f}" for lim in pivot.index], fontsize=8)

    ax.set_xlabel("Deductible")
    ax.set_ylabel("Coverage Limit")
    ax.set_title("Mean Absolute Factor Adjustment")

    fig.colorbar(im, ax=ax, label="Mean |Adjustment|")
    fig.tight_layout()
    fig.savefig(output_dir / "adjustment_heatmap.png", dpi=150)
    plt.close(fig)
