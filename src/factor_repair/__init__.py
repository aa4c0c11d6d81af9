"""
Deductible / Coverage-Limit Factor Repair

Repairs a table of pricing relativities indexed by deductible (columns) and
coverage limit (rows) so that it respects two ordering rules:

- Rule A: factors never increase with deductible, end-to-end through the
  rebase (anchor) deductible whose factors are 1.0
- Rule B: factors move toward 1.0 as coverage limit grows

Repair is discrete and local: the worst violation is corrected by copying the
neighbouring value nearer to 1.0 over the other, until no violation remains
or the round cap is hit.

Key components:
- grid.py: FactorGrid and long-format pivoting
- normalize.py: one-sweep anchor-crossing cleanup
- scan.py: Rule A / Rule B violation scores
- repair.py: the correction loop and the repair() entrypoint
- table.py: batch repair per coverage/peril combination
- validate.py: post-repair validation and reports
"""

from .config import RepairConfig
from .errors import ConfigError, FactorRepairError, NonConvergenceError, ShapeError
from .grid import FactorGrid, grid_from_frame
from .repair import RepairResult, repair, repair_grid
from .table import TableRepairResult, load_factor_table, repair_table
from .validate import validate_repaired_table

__all__ = [
    "repair",
    "repair_grid",
    "RepairResult",
    "RepairConfig",
    "FactorGrid",
    "grid_from_frame",
    "repair_table",
    "load_factor_table",
    "TableRepairResult",
    "validate_repaired_table",
    "FactorRepairError",
    "ShapeError",
    "ConfigError",
    "NonConvergenceError",
]
