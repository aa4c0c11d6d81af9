"""
Unit tests for the Rule A / Rule B violation scanner
"""

import numpy as np
import pytest

from factor_repair.grid import FactorGrid
from factor_repair.scan import (
    Direction,
    Rule,
    count_violations,
    has_violation,
    required_direction,
    scan,
    scan_rule_a,
    scan_rule_b,
    worst_violation,
)


def _grid(values, deductibles=(100, 300, 500), limits=None, rebase=300, fixed=True):
    values = np.asarray(values, dtype=float)
    if limits is None:
        limits = [100000 * (i + 1) for i in range(values.shape[0])]
    return FactorGrid(values, list(deductibles), limits, fixed=fixed, rebase_level=rebase if fixed else None)


class TestRequiredDirection:
    """Tests for the per-column direction helper."""

    def test_below_anchor_decreases(self):
        assert required_direction(True) is Direction.DECREASE

    def test_at_or_above_anchor_increases(self):
        assert required_direction(False) is Direction.INCREASE


class TestRuleA:
    """Tests for cross-deductible scores."""

    def test_valid_row(self):
        """Non-increasing row through the anchor has no violation."""
        rule_a = scan_rule_a(_grid([[1.2, 1.0, 0.8]]))
        assert (rule_a >= 0).all()
        assert rule_a[0, 1] == 0.0

    def test_above_anchor_increase(self):
        """A factor rising above the anchor is flagged on the higher deductible."""
        rule_a = scan_rule_a(_grid([[1.1, 1.0, 1.05]]))
        assert rule_a[0, 2] == pytest.approx(-0.05)
        assert rule_a[0, 0] > 0

    def test_below_anchor_flagged_on_outer_cell(self):
        """Below the anchor the score sits on the cell farther from it."""
        rule_a = scan_rule_a(_grid([[1.1, 1.2, 1.0]], deductibles=(100, 200, 300)))
        assert rule_a[0, 0] == pytest.approx(-0.1)
        assert rule_a[0, 1] == pytest.approx(0.2)
        assert rule_a[0, 2] == 0.0

    def test_ties_are_neutral(self):
        rule_a = scan_rule_a(_grid([[1.0, 1.0, 1.0]]))
        np.testing.assert_array_equal(rule_a, np.zeros((1, 3)))

    def test_anchor_column_never_triggers(self):
        rule_a = scan_rule_a(_grid([[0.5, 1.0, 1.5], [2.0, 1.0, 0.2]]))
        np.testing.assert_array_equal(rule_a[:, 1], [0.0, 0.0])

    def test_non_fixed_uses_predecessor(self):
        rule_a = scan_rule_a(_grid([[0.9, 0.95, 0.8]], fixed=False))
        assert rule_a[0, 0] == 0.0
        assert rule_a[0, 1] == pytest.approx(-0.05)
        assert rule_a[0, 2] == pytest.approx(0.15)


class TestRuleB:
    """Tests for cross-limit scores."""

    def test_both_sides(self):
        """Below-anchor columns must fall with limit, above-anchor columns rise."""
        rule_b = scan_rule_b(_grid([[1.3, 1.0, 0.8], [1.4, 1.0, 0.7]]))
        np.testing.assert_allclose(rule_b, [[0.0, 0.0, 0.0], [-0.1, 0.0, -0.1]], atol=1e-12)

    def test_valid_columns(self):
        rule_b = scan_rule_b(_grid([[1.4, 1.0, 0.7], [1.3, 1.0, 0.8]]))
        assert (rule_b >= 0).all()

    def test_single_row_is_neutral(self):
        rule_b = scan_rule_b(_grid([[1.3, 1.0, 1.2]]))
        np.testing.assert_array_equal(rule_b, np.zeros((1, 3)))

    def test_anchor_column_exempt(self):
        rule_b = scan_rule_b(_grid([[1.3, 1.0, 0.8], [1.2, 0.5, 0.9]]))
        assert rule_b[1, 1] == 0.0

    def test_non_fixed_all_increase(self):
        rule_b = scan_rule_b(_grid([[0.9], [0.85]], deductibles=(100,), fixed=False))
        assert rule_b[1, 0] == pytest.approx(-0.05)


class TestWorstViolation:
    """Tests for global ranking and tie-breaking."""

    def test_clean_grid(self):
        rule_a = np.zeros((2, 2))
        rule_b = np.ones((2, 2))
        assert worst_violation(rule_a, rule_b) is None
        assert not has_violation(rule_a, rule_b)

    def test_most_negative_wins(self):
        rule_a = np.array([[0.0, -0.2], [0.0, 0.0]])
        rule_b = np.array([[0.0, 0.0], [-0.3, 0.0]])
        v = worst_violation(rule_a, rule_b)
        assert (v.rule, v.row, v.col) == (Rule.B, 1, 0)
        assert v.score == pytest.approx(-0.3)

    def test_column_major_tie_break(self):
        """Row varies fastest: (1, 0) comes before (0, 1)."""
        rule_a = np.array([[0.0, -0.5], [-0.5, 0.0]])
        rule_b = np.zeros((2, 2))
        v = worst_violation(rule_a, rule_b)
        assert (v.rule, v.row, v.col) == (Rule.A, 1, 0)

    def test_earlier_cell_wins_across_rules(self):
        """A Rule B tie in an earlier column beats a Rule A tie further right."""
        rule_a = np.array([[0.0, 0.0], [0.0, -0.5]])
        rule_b = np.array([[0.0, 0.0], [-0.5, 0.0]])
        v = worst_violation(rule_a, rule_b)
        assert (v.rule, v.row, v.col) == (Rule.B, 1, 0)

    def test_rule_a_first_within_a_cell(self):
        rule_a = np.array([[0.0, 0.0], [0.0, -0.5]])
        rule_b = np.array([[0.0, 0.0], [0.0, -0.5]])
        v = worst_violation(rule_a, rule_b)
        assert (v.rule, v.row, v.col) == (Rule.A, 1, 1)

    def test_tie_break_on_scanned_grid(self):
        """Rule B at (1, 0) comes before Rule A at (0, 1) in column-major order."""
        rule_a, rule_b = scan(_grid([[1.0, 1.5], [0.5, 1.0]], deductibles=(100, 500), fixed=False))
        assert rule_a[0, 1] == rule_b[1, 0] == -0.5
        v = worst_violation(rule_a, rule_b)
        assert (v.rule, v.row, v.col) == (Rule.B, 1, 0)


class TestCountViolations:
    def test_counts(self):
        grid = _grid([[1.3, 1.0, 0.8], [1.4, 1.0, 0.9]])
        counts = count_violations(grid)
        assert counts == {"rule_a": 0, "rule_b": 1, "total": 1}

    def test_scan_returns_both(self):
        rule_a, rule_b = scan(_grid([[1.2, 1.0, 0.8]]))
        assert rule_a.shape == rule_b.shape == (1, 3)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
