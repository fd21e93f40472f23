"""
Wager Settlement

Distributes a resolved wager's pool to the winning side.

Rules:
- Only OPEN wagers with a winning side, past their deadline, can be settled
- Single participant: full refund, wager RESOLVED with no winning side
- Nobody on the winning side: everyone refunded in full, wager SETTLED
- Otherwise: winnings_pool = total_pool * (1 - fee_percentage), split among
  winners in proportion to their stake, rounded down to the cent

Results are ledger transactions to apply; nothing here touches balances.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field, computed_field

from wagr.exceptions import SettlementError
from wagr.models import Side, Wager, WagerEntry, WagerStatus, sum_side_totals

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class TransactionType(str, Enum):
    WAGER_WIN = "wager_win"
    WAGER_REFUND = "wager_refund"


class SettlementOutcome(str, Enum):
    WINNERS_PAID = "winners_paid"
    NO_WINNERS_REFUND = "no_winners_refund"
    SINGLE_PARTICIPANT_REFUND = "single_participant_refund"


class LedgerTransaction(BaseModel):
    """Credit owed to a user. Unique per (reference, type, user_id)."""

    user_id: str
    type: TransactionType
    amount: Decimal
    reference: str
    description: str


class SettlementResult(BaseModel):
    wager_id: str
    outcome: SettlementOutcome
    status: WagerStatus
    winning_side: Side | None
    total_pool: Decimal
    platform_fee: Decimal
    winnings_pool: Decimal
    transactions: list[LedgerTransaction] = Field(default_factory=list)
    undistributed: Decimal = Decimal("0")

    @computed_field
    @property
    def total_distributed(self) -> Decimal:
        return sum((t.amount for t in self.transactions), Decimal("0"))


def _participant_count(entries: list[WagerEntry]) -> int:
    return len({entry.user_id for entry in entries})


def _refund_all(
    wager: Wager,
    entries: list[WagerEntry],
    outcome: SettlementOutcome,
    status: WagerStatus,
    reason: str,
) -> SettlementResult:
    """Refund every user the full amount they staked."""
    staked: dict[str, Decimal] = defaultdict(Decimal)
    for entry in entries:
        staked[entry.user_id] += entry.amount

    transactions = [
        LedgerTransaction(
            user_id=user_id,
            type=TransactionType.WAGER_REFUND,
            amount=amount,
            reference=wager.id,
            description=f'Refund: "{wager.title}" - {reason}',
        )
        for user_id, amount in staked.items()
    ]
    total_pool = sum(staked.values(), Decimal("0"))

    logger.info(
        f"Refunded wager {wager.id}: {reason} "
        f"({len(transactions)} users, {total_pool} total)"
    )

    return SettlementResult(
        wager_id=wager.id,
        outcome=outcome,
        status=status,
        winning_side=(
            None
            if outcome == SettlementOutcome.SINGLE_PARTICIPANT_REFUND
            else wager.winning_side
        ),
        total_pool=total_pool,
        platform_fee=Decimal("0"),
        winnings_pool=total_pool,
        transactions=transactions,
    )


def settle_wager(
    wager: Wager,
    entries: list[WagerEntry],
    now: datetime | None = None,
) -> SettlementResult:
    """
    Settle a wager whose winning side has been declared.

    Raises:
        SettlementError: wager is not open, has no winning side, or its
            deadline has not passed yet
    """
    now = now or datetime.now(timezone.utc)

    if wager.status != WagerStatus.OPEN:
        raise SettlementError(f"Wager {wager.id} is {wager.status.value}, not OPEN")

    if wager.winning_side is None:
        raise SettlementError(f"Wager {wager.id} has no winning side declared")

    if wager.deadline is not None and wager.deadline > now:
        raise SettlementError(
            f"Cannot settle wager {wager.id} before deadline",
            details={"deadline": wager.deadline.isoformat(), "now": now.isoformat()},
        )

    if _participant_count(entries) == 1:
        return _refund_all(
            wager,
            entries,
            SettlementOutcome.SINGLE_PARTICIPANT_REFUND,
            WagerStatus.RESOLVED,
            "Only participant, wager cancelled",
        )

    side_a_total, side_b_total = sum_side_totals(entries)
    total_pool = side_a_total + side_b_total
    platform_fee = total_pool * wager.fee_percentage
    winnings_pool = total_pool - platform_fee
    winning_side_total = side_a_total if wager.winning_side == "a" else side_b_total

    if winning_side_total == 0:
        return _refund_all(
            wager,
            entries,
            SettlementOutcome.NO_WINNERS_REFUND,
            WagerStatus.SETTLED,
            "No winners declared",
        )

    winning_stakes: dict[str, Decimal] = defaultdict(Decimal)
    for entry in entries:
        if entry.side == wager.winning_side:
            winning_stakes[entry.user_id] += entry.amount

    label = wager.side_label(wager.winning_side)
    transactions = []
    for user_id, stake in winning_stakes.items():
        winnings = (stake / winning_side_total * winnings_pool).quantize(
            CENT, rounding=ROUND_DOWN
        )
        transactions.append(
            LedgerTransaction(
                user_id=user_id,
                type=TransactionType.WAGER_WIN,
                amount=winnings,
                reference=wager.id,
                description=(
                    f'Wager Win: "{wager.title}" - Won {label} '
                    f"(Entry: {stake}, Winnings: {winnings})"
                ),
            )
        )

    distributed = sum((t.amount for t in transactions), Decimal("0"))

    logger.info(
        f"Settled wager {wager.id}: side {wager.winning_side} won "
        f"({len(transactions)} winners, pool {total_pool}, fee {platform_fee})"
    )

    return SettlementResult(
        wager_id=wager.id,
        outcome=SettlementOutcome.WINNERS_PAID,
        status=WagerStatus.SETTLED,
        winning_side=wager.winning_side,
        total_pool=total_pool,
        platform_fee=platform_fee,
        winnings_pool=winnings_pool,
        transactions=transactions,
        undistributed=winnings_pool - distributed,
    )


def refund_single_participant(
    wager: Wager,
    entries: list[WagerEntry],
    now: datetime | None = None,
) -> SettlementResult | None:
    """Refund an expired OPEN wager that only one user joined."""
    now = now or datetime.now(timezone.utc)

    if wager.status != WagerStatus.OPEN or wager.deadline is None:
        return None
    if wager.deadline > now or _participant_count(entries) != 1:
        return None

    return _refund_all(
        wager,
        entries,
        SettlementOutcome.SINGLE_PARTICIPANT_REFUND,
        WagerStatus.RESOLVED,
        "Only participant, deadline passed",
    )


def settle_expired_wagers(
    candidates: Iterable[tuple[Wager, list[WagerEntry]]],
    now: datetime | None = None,
) -> list[SettlementResult]:
    """
    Process every OPEN wager whose deadline has passed.

    Lone participants are refunded whether or not a winner was declared;
    other wagers are settled once a winning side is set. A failure on one
    wager is logged and the batch continues.
    """
    now = now or datetime.now(timezone.utc)
    results = []

    for wager, entries in candidates:
        if wager.status != WagerStatus.OPEN:
            continue
        if wager.deadline is None or wager.deadline > now:
            continue

        try:
            refund = refund_single_participant(wager, entries, now)
            if refund is not None:
                results.append(refund)
            elif wager.winning_side is not None:
                results.append(settle_wager(wager, entries, now))
        except SettlementError as e:
            logger.warning(f"Skipping wager {wager.id}: {e}")
        except Exception as e:
            logger.error(f"Failed to settle wager {wager.id}: {e}", exc_info=True)

    logger.info(f"Expired wager sweep complete: {len(results)} wagers processed")
    return results
