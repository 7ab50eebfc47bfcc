"""Ledger transactions and their one-line text format.

A transaction is one of three frozen dataclasses, ``Buy``, ``Sell`` and
``Rebalance``. Each knows how to apply itself to a holdings snapshot and how to
write itself as a single line::

    BUY:MM/DD/YYYY,ticker,shares
    SELL:MM/DD/YYYY,ticker,shares
    REBALANCE:MM/DD/YYYY,t1=>price1;t2=>price2,t1=>prop1;t2=>prop2

``parse_transaction`` reads such a line back.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Union

from .dates import format_date, parse_date
from .errors import (
    InsufficientSharesError,
    InvalidTickerError,
    LedgerValidationError,
    MalformedRecordError,
    NonPositiveSharesError,
    UnknownTickerError,
)
from .rebalance import rebalance

Holdings = dict[str, Decimal]

_TICKER_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-]*$")
_NUMBER_PATTERN = re.compile(r"^\d+(\.\d+)?$")
_SHARES_PATTERN = re.compile(r"^\d+$")


class TransactionType(Enum):
    """Enumeration of supported ledger transaction types."""

    BUY = "BUY"
    SELL = "SELL"
    REBALANCE = "REBALANCE"


def normalize_ticker(ticker: str) -> str:
    """Upper-case a ticker and check that it is a plain stock symbol.

    Raises:
        InvalidTickerError: If the ticker is empty or has characters other than
            letters, digits, ``.`` and ``-``.
    """
    normalized = ticker.strip().upper()
    if not _TICKER_PATTERN.match(normalized):
        raise InvalidTickerError(f"Invalid ticker: '{ticker}'")
    return normalized


def to_decimal(value: Union[Decimal, float, int, str]) -> Decimal:
    """Convert a number to Decimal via str() so floats keep their short form."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_number(value: Decimal | int) -> str:
    """Write a number in plain decimal notation (no exponent, no separators)."""
    if isinstance(value, int):
        return str(value)
    return format(value, "f")


def _parse_number(text: str) -> Decimal:
    if not _NUMBER_PATTERN.match(text):
        raise MalformedRecordError(f"Not a decimal number: '{text}'")
    return Decimal(text)


def _parse_shares(text: str) -> int:
    if not _SHARES_PATTERN.match(text):
        raise MalformedRecordError(f"Not a whole number of shares: '{text}'")
    return int(text)


def _format_mapping(mapping: Mapping[str, Decimal]) -> str:
    return ";".join(f"{ticker}=>{format_number(mapping[ticker])}" for ticker in sorted(mapping))


def _parse_mapping(text: str) -> dict[str, Decimal]:
    mapping: dict[str, Decimal] = {}
    if text == "":
        return mapping
    for entry in text.split(";"):
        key, separator, value = entry.partition("=>")
        if not separator:
            raise MalformedRecordError(f"Expected 'ticker=>value', got '{entry}'")
        ticker = normalize_ticker(key)
        if ticker in mapping:
            raise MalformedRecordError(f"Ticker {ticker} listed twice in '{text}'")
        mapping[ticker] = _parse_number(value)
    return mapping


@dataclass(frozen=True)
class Buy:
    """Buy a whole number of shares of one stock on a date."""

    ticker: str
    shares: int
    date: date
    transaction_type: TransactionType = field(default=TransactionType.BUY, init=False)

    def __post_init__(self):
        object.__setattr__(self, "ticker", normalize_ticker(self.ticker))
        if self.shares <= 0:
            raise NonPositiveSharesError(f"Shares must be positive, got {self.shares}")

    def apply(self, holdings: Mapping[str, Decimal]) -> Holdings:
        updated = dict(holdings)
        updated[self.ticker] = updated.get(self.ticker, Decimal("0")) + self.shares
        return updated

    def serialize(self) -> str:
        return f"BUY:{format_date(self.date)},{self.ticker},{self.shares}"


@dataclass(frozen=True)
class Sell:
    """Sell a whole number of shares of one stock on a date."""

    ticker: str
    shares: int
    date: date
    transaction_type: TransactionType = field(default=TransactionType.SELL, init=False)

    def __post_init__(self):
        object.__setattr__(self, "ticker", normalize_ticker(self.ticker))
        if self.shares <= 0:
            raise NonPositiveSharesError(f"Shares must be positive, got {self.shares}")

    def apply(self, holdings: Mapping[str, Decimal]) -> Holdings:
        held = holdings.get(self.ticker, Decimal("0"))
        remaining = held - self.shares
        if remaining < 0:
            raise InsufficientSharesError(
                f"Cannot sell {self.shares} shares of {self.ticker} on {self.date}: only {held} held"
            )
        updated = dict(holdings)
        if remaining == 0:
            del updated[self.ticker]
        else:
            updated[self.ticker] = remaining
        return updated

    def serialize(self) -> str:
        return f"SELL:{format_date(self.date)},{self.ticker},{self.shares}"


@dataclass(frozen=True)
class Rebalance:
    """Move holdings to target value proportions at the prices of a date.

    ``prices`` is the snapshot of closing prices used for the rebalance, kept
    with the transaction so replaying it never needs price data again.
    """

    date: date
    prices: Mapping[str, Decimal]
    proportions: Mapping[str, Decimal]
    transaction_type: TransactionType = field(default=TransactionType.REBALANCE, init=False)

    def __post_init__(self):
        prices = {normalize_ticker(t): to_decimal(p) for t, p in self.prices.items()}
        proportions = {normalize_ticker(t): to_decimal(p) for t, p in self.proportions.items()}
        for ticker, price in prices.items():
            if not price.is_finite() or price <= 0:
                raise UnknownTickerError(f"No usable price for {ticker}: {price}")
        object.__setattr__(self, "prices", {t: prices[t] for t in sorted(prices)})
        object.__setattr__(self, "proportions", {t: proportions[t] for t in sorted(proportions)})

    def apply(self, holdings: Mapping[str, Decimal]) -> Holdings:
        return rebalance(holdings, self.prices, self.proportions)

    def serialize(self) -> str:
        return (
            f"REBALANCE:{format_date(self.date)},"
            f"{_format_mapping(self.prices)},{_format_mapping(self.proportions)}"
        )


Transaction = Union[Buy, Sell, Rebalance]


def parse_transaction(line: str) -> Transaction:
    """Parse one persisted line back into a transaction.

    Args:
        line: A line produced by ``serialize()``; a trailing newline is allowed.

    Returns:
        The Buy, Sell or Rebalance the line describes.

    Raises:
        MalformedRecordError: If the line deviates from the format in any way.
    """
    text = line.rstrip("\r\n")
    kind, separator, body = text.partition(":")
    if not separator:
        raise MalformedRecordError(f"Missing transaction kind in '{text}'")

    try:
        transaction_type = TransactionType(kind)
    except ValueError:
        raise MalformedRecordError(f"Unknown transaction kind '{kind}' in '{text}'") from None

    fields = body.split(",")
    if len(fields) != 3:
        raise MalformedRecordError(f"Expected 3 fields after '{kind}:', got {len(fields)} in '{text}'")

    try:
        when = parse_date(fields[0])
    except ValueError as e:
        raise MalformedRecordError(f"Bad date in '{text}': {e}") from e

    try:
        if transaction_type == TransactionType.BUY:
            return Buy(ticker=fields[1], shares=_parse_shares(fields[2]), date=when)

        elif transaction_type == TransactionType.SELL:
            return Sell(ticker=fields[1], shares=_parse_shares(fields[2]), date=when)

        elif transaction_type == TransactionType.REBALANCE:
            prices = _parse_mapping(fields[1])
            proportions = _parse_mapping(fields[2])
            if set(prices) != set(proportions):
                raise MalformedRecordError(f"Price and proportion tickers differ in '{text}'")
            return Rebalance(date=when, prices=prices, proportions=proportions)

    except MalformedRecordError:
        raise
    except (LedgerValidationError, InvalidOperation) as e:
        raise MalformedRecordError(f"Invalid transaction '{text}': {e}") from e

    raise MalformedRecordError(f"Unhandled transaction kind '{kind}'")
