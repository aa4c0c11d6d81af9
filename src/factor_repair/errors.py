"""Exception taxonomy for factor repair."""

from typing import List, Optional

import numpy as np


class FactorRepairError(Exception):
    """Base class for every error raised by the repair engine."""


class ShapeError(FactorRepairError, ValueError):
    """Grid dimensions or level axes are malformed."""


class ConfigError(FactorRepairError, ValueError):
    """Run parameters are invalid (missing/unknown rebase level, bad max_iters)."""


class NonConvergenceError(FactorRepairError, RuntimeError):
    """
    The iteration cap was exhausted while violations still exist.

    Carries the last grid state and the violation matrices seen by the final
    scan, plus the trace and the anchor-normalizer rewrite count, so the caller
    can inspect the data or retry with a higher cap.
    """

    def __init__(
        self,
        message: str,
        grid: np.ndarray,
        rule_a: np.ndarray,
        rule_b: np.ndarray,
        trace: Optional[List[np.ndarray]] = None,
        iterations: int = 0,
        n_normalized: int = 0,
    ):
        super().__init__(message)
        self.grid = grid
        self.rule_a = rule_a
        self.rule_b = rule_b
        self.trace = trace if trace is not None else []
        self.iterations = iterations
        self.n_normalized = n_normalized
