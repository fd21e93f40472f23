"""
Payout Calculator

Prospective returns for joining either side of a two-sided wager, using a
proportional (pari-mutuel) pool.

Formulas:
- total_pool     = side_a_total + side_b_total + entry_amount
- platform_fee   = total_pool * fee_percentage
- winnings_pool  = total_pool * (1 - fee_percentage)
- side_potential = entry_amount / (side_total + entry_amount)
                   * (winnings_pool + entry_amount)
- multiplier     = side_potential / entry_amount
- percentage     = (multiplier - 1) * 100

Inputs are trusted. Validate with WagerPoolSnapshot before calling; an
entry_amount of 0 produces NaN/inf values instead of raising.
"""

import math

from pydantic import BaseModel, ConfigDict


class PotentialReturn(BaseModel):
    """What an entrant stands to win on each side."""

    model_config = ConfigDict(frozen=True)

    total_pool: float
    platform_fee: float
    winnings_pool: float
    side_a_potential: float
    side_b_potential: float
    side_a_return_multiplier: float
    side_b_return_multiplier: float
    side_a_return_percentage: float
    side_b_return_percentage: float

    @property
    def best_return_multiplier(self) -> float:
        return max(self.side_a_return_multiplier, self.side_b_return_multiplier)

    @property
    def best_return_percentage(self) -> float:
        return max(self.side_a_return_percentage, self.side_b_return_percentage)


def _divide(numerator: float, denominator: float) -> float:
    """Float division with IEEE results for a zero denominator."""
    try:
        return numerator / denominator
    except ZeroDivisionError:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)


def _side_potential(entry_amount: float, side_total: float, winnings_pool: float) -> float:
    share = _divide(entry_amount, side_total + entry_amount)
    return share * (winnings_pool + entry_amount)


def calculate_potential_returns(
    entry_amount: float,
    side_a_total: float,
    side_b_total: float,
    fee_percentage: float,
) -> PotentialReturn:
    """
    Calculate potential returns for joining a wager with ``entry_amount``.

    Uses the staked amounts on each side rather than participant counts, so
    entries of different sizes are weighted correctly.

    Args:
        entry_amount: Stake being considered, > 0
        side_a_total: Sum of existing stakes on side A, >= 0
        side_b_total: Sum of existing stakes on side B, >= 0
        fee_percentage: Platform cut as a fraction, 0 <= fee < 1

    Returns:
        PotentialReturn with pool figures (including the entry) and the
        unclamped potential, multiplier and percentage for each side.
    """
    total_pool = side_a_total + side_b_total + entry_amount
    platform_fee = total_pool * fee_percentage
    winnings_pool = total_pool * (1 - fee_percentage)

    side_a_potential = _side_potential(entry_amount, side_a_total, winnings_pool)
    side_b_potential = _side_potential(entry_amount, side_b_total, winnings_pool)

    side_a_multiplier = _divide(side_a_potential, entry_amount)
    side_b_multiplier = _divide(side_b_potential, entry_amount)

    return PotentialReturn(
        total_pool=total_pool,
        platform_fee=platform_fee,
        winnings_pool=winnings_pool,
        side_a_potential=side_a_potential,
        side_b_potential=side_b_potential,
        side_a_return_multiplier=side_a_multiplier,
        side_b_return_multiplier=side_b_multiplier,
        side_a_return_percentage=(side_a_multiplier - 1) * 100,
        side_b_return_percentage=(side_b_multiplier - 1) * 100,
    )


def format_return_multiplier(multiplier: float) -> str:
    """Format a multiplier for display, never below "1.0x"."""
    if multiplier < 1:
        return "1.0x"
    return f"{multiplier:.2f}x"


def format_return_percentage(percentage: float) -> str:
    """Format a percentage with an explicit sign ("+150.0%", "-20.0%")."""
    sign = "+" if percentage >= 0 else ""
    return f"{sign}{percentage:.1f}%"
