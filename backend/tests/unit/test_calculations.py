"""
Unit Tests: Payout Calculator

Test cases:
- Pool, fee and winnings figures
- Worked examples (balanced fee, empty sides)
- Symmetry and monotonicity of potentials
- Degenerate entry amounts (NaN/inf, no exceptions)
- Display formatting
"""

import math

import pytest

from wagr.calculations import (
    calculate_potential_returns,
    format_return_multiplier,
    format_return_percentage,
)


def test_pool_figures_include_entry() -> None:
    returns = calculate_potential_returns(100, 400, 600, 0.05)

    assert returns.total_pool == pytest.approx(1100)
    assert returns.platform_fee == pytest.approx(55)
    assert returns.winnings_pool == pytest.approx(1045)
    assert returns.winnings_pool == pytest.approx(returns.total_pool - returns.platform_fee)


def test_side_a_worked_example() -> None:
    returns = calculate_potential_returns(100, 400, 600, 0.05)

    assert returns.side_a_potential == pytest.approx(229.0)
    assert returns.side_a_return_multiplier == pytest.approx(2.29)
    assert returns.side_a_return_percentage == pytest.approx(129.0)
    assert returns.side_b_potential == pytest.approx(100 / 700 * 1145)


def test_derived_values_are_consistent() -> None:
    returns = calculate_potential_returns(37.5, 120, 980, 0.08)

    assert returns.side_a_return_multiplier == pytest.approx(returns.side_a_potential / 37.5)
    assert returns.side_b_return_multiplier == pytest.approx(returns.side_b_potential / 37.5)
    assert returns.side_a_return_percentage == pytest.approx(
        (returns.side_a_return_multiplier - 1) * 100, abs=1e-9
    )
    assert returns.side_b_return_percentage == pytest.approx(
        (returns.side_b_return_multiplier - 1) * 100, abs=1e-9
    )


def test_empty_pool_entrant_takes_everything() -> None:
    returns = calculate_potential_returns(50, 0, 0, 0.05)

    assert returns.side_a_potential == pytest.approx(97.5)
    assert returns.side_b_potential == pytest.approx(97.5)
    assert returns.side_a_return_multiplier == pytest.approx(1.95)
    assert returns.side_b_return_multiplier == pytest.approx(1.95)


def test_empty_side_collapses_to_whole_pool() -> None:
    returns = calculate_potential_returns(80, 0, 500, 0.05)

    assert returns.side_a_potential == pytest.approx(returns.winnings_pool + 80)


def test_equal_sides_without_fee_are_symmetric() -> None:
    returns = calculate_potential_returns(200, 300, 300, 0.0)

    assert returns.side_a_potential == returns.side_b_potential
    assert returns.platform_fee == 0


def test_more_competition_dilutes_own_side() -> None:
    thin = calculate_potential_returns(100, 100, 500, 0.05)
    crowded = calculate_potential_returns(100, 900, 500, 0.05)

    assert crowded.side_a_potential < thin.side_a_potential
    # Side A's extra stake only grows the shared pool for side B
    assert crowded.side_b_potential >= thin.side_b_potential


def test_higher_fee_lowers_both_sides() -> None:
    low = calculate_potential_returns(100, 400, 600, 0.01)
    high = calculate_potential_returns(100, 400, 600, 0.10)

    assert high.side_a_potential < low.side_a_potential
    assert high.side_b_potential < low.side_b_potential


def test_multiplier_below_one_is_not_clamped() -> None:
    returns = calculate_potential_returns(10, 1000, 0, 0.5)

    assert returns.side_a_return_multiplier < 1
    assert returns.side_a_return_percentage < 0


def test_zero_entry_yields_nan_without_raising() -> None:
    returns = calculate_potential_returns(0, 100, 0, 0.05)

    assert returns.side_a_potential == 0
    assert math.isnan(returns.side_a_return_multiplier)
    assert math.isnan(returns.side_b_potential)
    assert math.isnan(returns.side_b_return_percentage)


def test_best_return_picks_larger_side() -> None:
    returns = calculate_potential_returns(100, 400, 600, 0.05)

    assert returns.best_return_multiplier == returns.side_a_return_multiplier
    assert returns.best_return_percentage == returns.side_a_return_percentage


def test_format_return_multiplier() -> None:
    assert format_return_multiplier(2.29) == "2.29x"
    assert format_return_multiplier(1) == "1.00x"
    assert format_return_multiplier(0.51) == "1.0x"


def test_format_return_percentage() -> None:
    assert format_return_percentage(129.0) == "+129.0%"
    assert format_return_percentage(0) == "+0.0%"
    assert format_return_percentage(-20) == "-20.0%"
