"""Wager, entry and pool snapshot models shared by the API, CLI and settlement."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Iterable, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from wagr.calculations import PotentialReturn, calculate_potential_returns
from wagr.currency import DEFAULT_CURRENCY, Currency
from wagr.exceptions import InvalidWagerInputError

logger = logging.getLogger(__name__)

Side = Literal["a", "b"]

# Upper bound for any single stake or side total; keeps pool sums finite
MAX_STAKE_AMOUNT = 1e15


class WagerStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    SETTLED = "SETTLED"


class WagerEntry(BaseModel):
    """A single stake placed by a user on one side."""

    user_id: str
    side: Side
    amount: Decimal = Field(gt=0)


class Wager(BaseModel):
    """A two-sided proposition users stake money on."""

    id: str
    title: str
    side_a: str = "Yes"
    side_b: str = "No"
    status: WagerStatus = WagerStatus.OPEN
    winning_side: Side | None = None
    fee_percentage: Decimal = Field(default=Decimal("0.05"), ge=0, lt=1)
    deadline: datetime | None = None
    currency: Currency = DEFAULT_CURRENCY

    @field_validator("deadline", mode="after")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Treat naive deadlines as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def side_label(self, side: Side) -> str:
        return self.side_a if side == "a" else self.side_b


class WagerWithEntries(BaseModel):
    """A wager together with every entry placed on it."""

    wager: Wager
    entries: list[WagerEntry] = Field(default_factory=list)


def sum_side_totals(entries: Iterable[WagerEntry]) -> tuple[Decimal, Decimal]:
    """Sum staked amounts per side, returning (side_a_total, side_b_total)."""
    side_a_total = Decimal("0")
    side_b_total = Decimal("0")
    for entry in entries:
        if entry.side == "a":
            side_a_total += entry.amount
        else:
            side_b_total += entry.amount
    return side_a_total, side_b_total


class WagerPoolSnapshot(BaseModel):
    """
    Validated input for the payout calculator.

    The calculator trusts its inputs; this model is where bad values
    (non-positive entries, negative totals, NaN, fees of 100% or more)
    get rejected.
    """

    entry_amount: float = Field(gt=0, le=MAX_STAKE_AMOUNT, allow_inf_nan=False)
    side_a_total: float = Field(default=0.0, ge=0, le=MAX_STAKE_AMOUNT, allow_inf_nan=False)
    side_b_total: float = Field(default=0.0, ge=0, le=MAX_STAKE_AMOUNT, allow_inf_nan=False)
    fee_percentage: float = Field(ge=0, lt=1, allow_inf_nan=False)

    @classmethod
    def from_entries(
        cls,
        entry_amount: float,
        entries: Iterable[WagerEntry],
        fee_percentage: float,
    ) -> WagerPoolSnapshot:
        side_a_total, side_b_total = sum_side_totals(entries)
        return cls(
            entry_amount=entry_amount,
            side_a_total=float(side_a_total),
            side_b_total=float(side_b_total),
            fee_percentage=fee_percentage,
        )

    def calculate(self) -> PotentialReturn:
        return calculate_potential_returns(
            entry_amount=self.entry_amount,
            side_a_total=self.side_a_total,
            side_b_total=self.side_b_total,
            fee_percentage=self.fee_percentage,
        )


def load_wager_file(path: Path) -> WagerWithEntries:
    """Load a wager and its entries from a YAML file."""
    if not path.is_file():
        raise InvalidWagerInputError(f"Wager file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidWagerInputError(f"Invalid YAML in {path}: {e}") from e

    try:
        loaded = WagerWithEntries.model_validate(data)
    except ValidationError as e:
        raise InvalidWagerInputError(
            f"Invalid wager file {path}",
            details=e.errors(include_url=False),
        ) from e

    logger.debug(f"Loaded wager {loaded.wager.id} with {len(loaded.entries)} entries")
    return loaded
