"""
Unit tests for the factor grid and long-format pivoting
"""

import numpy as np
import pandas as pd
import pytest

from factor_repair.errors import ConfigError, ShapeError
from factor_repair.grid import FactorGrid, grid_from_frame


class TestFactorGrid:
    """Tests for FactorGrid construction and accessors."""

    def test_anchor_column_located(self):
        """Anchor column is the position of the rebase level."""
        grid = FactorGrid(
            values=[[1.2, 1.0, 0.8]],
            deductible_levels=[100, 300, 500],
            coverage_limit_levels=[100000],
            rebase_level=300,
        )
        assert grid.anchor_col == 1
        assert grid.is_below_anchor(0)
        assert not grid.is_below_anchor(2)
        assert grid.toward_anchor(0) == 1
        assert grid.toward_anchor(2) == 1

    def test_non_fixed_has_no_anchor(self):
        """Without an anchor every column defers to its predecessor."""
        grid = FactorGrid(
            values=[[1.2, 1.0, 0.8]],
            deductible_levels=[100, 300, 500],
            coverage_limit_levels=[100000],
            fixed=False,
        )
        assert grid.anchor_col is None
        assert not grid.is_below_anchor(0)
        assert grid.toward_anchor(2) == 1

    def test_get_set(self):
        grid = FactorGrid(
            values=[[1.2, 1.0], [1.1, 1.0]],
            deductible_levels=[100, 300],
            coverage_limit_levels=[1, 2],
            rebase_level=300,
        )
        grid.set(1, 0, 1.05)
        assert grid.get(1, 0) == 1.05

    def test_input_not_aliased(self):
        """The grid owns a copy of the caller's table."""
        values = np.array([[1.2, 1.0]])
        grid = FactorGrid(values, [100, 300], [1], rebase_level=300)
        grid.set(0, 0, 2.0)
        assert values[0, 0] == 1.2

    def test_shape_mismatch(self):
        """Level lengths must match the table."""
        with pytest.raises(ShapeError):
            FactorGrid([[1.2, 1.0, 0.8]], [100, 300], [1], rebase_level=300)
        with pytest.raises(ShapeError):
            FactorGrid([[1.2, 1.0]], [100, 300], [1, 2], rebase_level=300)

    def test_levels_must_be_strictly_ascending(self):
        with pytest.raises(ShapeError):
            FactorGrid([[1.0, 1.2]], [300, 100], [1], rebase_level=300)
        with pytest.raises(ShapeError):
            FactorGrid([[1.0, 1.0]], [300, 300], [1], rebase_level=300)

    def test_ragged_table(self):
        with pytest.raises(ShapeError):
            FactorGrid([[1.2, 1.0], [1.0]], [100, 300], [1, 2], rebase_level=300)

    def test_rebase_required_in_fixed_mode(self):
        with pytest.raises(ConfigError):
            FactorGrid([[1.2, 1.0]], [100, 300], [1])

    def test_rebase_must_be_a_level(self):
        with pytest.raises(ConfigError):
            FactorGrid([[1.2, 1.0]], [100, 300], [1], rebase_level=250)

    def test_dispersion(self):
        grid = FactorGrid([[1.2, 1.0, 0.7]], [100, 300, 500], [1], rebase_level=300)
        assert grid.dispersion() == pytest.approx(0.5)


class TestGridFromFrame:
    """Tests for pivoting long-format tables."""

    def test_pivot_sorts_axes(self):
        df = pd.DataFrame({
            "limit": [1000000, 1000000, 100000, 100000],
            "deductible": [500, 100, 500, 100],
            "factor": [0.9, 1.0, 0.8, 1.0],
        })
        grid = grid_from_frame(df, rebase_level=100)
        np.testing.assert_array_equal(grid.deductible_levels, [100.0, 500.0])
        np.testing.assert_array_equal(grid.coverage_limit_levels, [100000.0, 1000000.0])
        np.testing.assert_array_almost_equal(grid.values, [[1.0, 0.8], [1.0, 0.9]])

    def test_round_trip_to_frame(self):
        df = pd.DataFrame({
            "limit": [1, 1, 2, 2],
            "deductible": [100, 500, 100, 500],
            "factor": [1.0, 0.8, 1.0, 0.9],
        })
        out = grid_from_frame(df, rebase_level=100).to_frame()
        assert len(out) == 4
        assert set(out.columns) == {"limit", "deductible", "factor"}

    def test_missing_cell(self):
        """A hole in the pivot is a shape error."""
        df = pd.DataFrame({
            "limit": [1, 1, 2],
            "deductible": [100, 500, 100],
            "factor": [1.0, 0.8, 1.0],
        })
        with pytest.raises(ShapeError):
            grid_from_frame(df, rebase_level=100)

    def test_duplicate_cell(self):
        df = pd.DataFrame({
            "limit": [1, 1, 1],
            "deductible": [100, 500, 500],
            "factor": [1.0, 0.8, 0.7],
        })
        with pytest.raises(ShapeError):
            grid_from_frame(df, rebase_level=100)

    def test_missing_column(self):
        df = pd.DataFrame({"limit": [1], "factor": [1.0]})
        with pytest.raises(ShapeError):
            grid_from_frame(df, rebase_level=100)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
