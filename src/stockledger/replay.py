from datetime import date
from decimal import Decimal
from typing import Iterable

from .transactions import Transaction


def ordered(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Return transactions in date order, keeping insertion order for equal dates."""
    # sorted() is stable, so same-day transactions keep their original order
    return sorted(transactions, key=lambda t: t.date)


def replay(transactions: Iterable[Transaction], as_of: date) -> dict[str, Decimal]:
    """
    Rebuild the holdings of a ledger as of a date.

    Transactions dated after ``as_of`` are ignored; the rest are applied in
    date order starting from empty holdings.

    Args:
        transactions: The ledger in insertion order.
        as_of: The cutoff date (inclusive).

    Returns:
        Ticker to share count. Empty if nothing happened on or before ``as_of``.

    Raises:
        InsufficientSharesError: If a sell in the ledger exceeds the holdings.
        ProportionsInvalidError, UnknownTickerError, TickerNotHeldError: If a
            rebalance in the ledger no longer fits the holdings it sees.
    """
    holdings: dict[str, Decimal] = {}
    for txn in ordered(t for t in transactions if t.date <= as_of):
        holdings = txn.apply(holdings)
    return holdings


def replay_all(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Replay an entire ledger, checking that every step is valid."""
    return replay(transactions, date.max)
