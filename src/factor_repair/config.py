"""
Run configuration for factor repair.

Numeric constants shared by the scanner, the repair loop and validation, plus
the RepairConfig container that the CLI and the batch driver pass around.
"""

from dataclasses import dataclass
from numbers import Integral
from typing import Optional, Sequence

from .errors import ConfigError


# Value every factor in the rebase (anchor) column is defined to hold
ANCHOR_VALUE = 1.0

# Score assigned to cells that carry no violation (boundaries, ties, anchor)
NEUTRAL_SCORE = 0.0

# Hard cap on correction rounds
DEFAULT_MAX_ITERS = 100

# Tolerance for post-repair validation (the repair loop itself compares exactly)
EPS = 1e-9

# Long-format column names
COVERAGE_COL = "coverage"
PERIL_COL = "peril"
DEDUCTIBLE_COL = "deductible"
LIMIT_COL = "limit"
FACTOR_COL = "factor"
REPAIRED_COL = "factor_repaired"

GROUP_COLS = [COVERAGE_COL, PERIL_COL]


def validate_max_iters(max_iters) -> None:
    """Raise ConfigError unless max_iters is a positive integer."""
    if isinstance(max_iters, bool) or not isinstance(max_iters, Integral):
        raise ConfigError(f"max_iters must be an integer, got {max_iters!r}")
    if max_iters < 1:
        raise ConfigError(f"max_iters must be positive, got {max_iters}")


@dataclass
class RepairConfig:
    """Parameters for one repair invocation."""

    rebase_level: Optional[float] = None
    max_iters: int = DEFAULT_MAX_ITERS
    fixed: bool = True

    def validate(self, deductible_levels: Optional[Sequence[float]] = None) -> None:
        """
        Raise ConfigError if the configuration cannot drive a repair.

        When deductible_levels is given, fixed mode additionally requires the
        rebase level to be one of them.
        """
        validate_max_iters(self.max_iters)

        if not self.fixed:
            return

        if self.rebase_level is None:
            raise ConfigError("rebase_level is required when fixed=True")

        if deductible_levels is not None and self.rebase_level not in list(deductible_levels):
            raise ConfigError(
                f"rebase_level {self.rebase_level!r} is not one of the deductible levels "
                f"{list(deductible_levels)}"
            )
