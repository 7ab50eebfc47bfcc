import concurrent.futures
from datetime import date
from decimal import Decimal
from typing import Iterable

from .dates import iter_days
from .errors import DataFetchFailureError, EmptyPortfolioError, InvalidRangeError
from .pricingdata import PricingDataManager
from .replay import ordered, replay, replay_all
from .transactions import Transaction


class Position():
    """A snapshot of a held stock at a specific date."""

    def __init__(self, symbol: str, quantity: Decimal, position_date: date, total_value: Decimal, unit_price: Decimal):
        """Initialize a Position.

        Args:
            symbol: Ticker symbol of the held stock.
            quantity: Number of shares held (may be fractional after a rebalance).
            position_date: The date this position snapshot represents.
            total_value: Market value of the position.
            unit_price: Closing price per share used for the valuation.
        """
        self.symbol: str = symbol
        self.quantity: Decimal = quantity
        self.position_date: date = position_date
        self.total_value: Decimal = total_value
        self.unit_price: Decimal = unit_price

    def __repr__(self):
        return f"Position(ticker={self.symbol}, quantity={self.quantity}, unit_price={self.unit_price})"


class Portfolio():
    """A named, append-only ledger of transactions.

    The ledger is the only state. Holdings are never stored; they are rebuilt
    by replaying the transactions up to the date of interest.
    """

    def __init__(self, name: str, transactions: Iterable[Transaction] | None = None):
        """Initialize a Portfolio.

        Args:
            name: The portfolio's name.
            transactions: Existing ledger entries in insertion order. They are
                replayed once to make sure they form a valid ledger.
        """
        self.name: str = name
        self._transactions: list[Transaction] = list(transactions or [])
        replay_all(self._transactions)

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """The ledger in insertion order."""
        return tuple(self._transactions)

    def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Append a transaction after checking the ledger stays valid.

        The whole ledger is replayed with the new entry in place, so a
        back-dated sell or rebalance that would break a later entry is caught
        too. On any error the ledger is left unchanged.

        Returns:
            The appended transaction.
        """
        candidate = self._transactions + [transaction]
        replay_all(candidate)
        self._transactions = candidate
        return transaction

    def replace_transactions(self, transactions: Iterable[Transaction]) -> None:
        """Swap in a whole new ledger, after checking it replays cleanly."""
        candidate = list(transactions)
        replay_all(candidate)
        self._transactions = candidate

    def get_holdings(self, as_of: date) -> dict[str, Decimal]:
        return replay(self._transactions, as_of)

    def serialize(self) -> list[str]:
        """Return the ledger as persisted lines, in insertion order."""
        return [txn.serialize() for txn in self._transactions]

    def __repr__(self):
        return f"Portfolio(name={self.name!r}, transactions={len(self._transactions)})"


def get_closing_price(pricing_manager: PricingDataManager, symbol: str, price_date: date) -> Decimal:
    """
    Look up the closing price needed to value a holding.

    Raises:
        DataFetchFailureError: If the pricing manager has no price on or
            shortly before the date, or fails to fetch one.
    """
    price_point = pricing_manager.get_price_point(symbol, price_date)
    if price_point is None:
        raise DataFetchFailureError(f"No price data available for {symbol} on {price_date}.")
    return price_point.price


def _value_holdings(
    holdings: dict[str, Decimal],
    valuation_date: date,
    pricing_manager: PricingDataManager,
) -> Decimal:
    total = Decimal("0")
    for symbol, quantity in holdings.items():
        total += quantity * get_closing_price(pricing_manager, symbol, valuation_date)
    return total


def get_positions(
    portfolio: Portfolio,
    position_date: date,
    pricing_manager: PricingDataManager,
) -> list[Position]:
    """
    Get all held positions at a date, valued at that date's closing prices.

    Returns:
        One Position per held ticker, sorted by symbol.
    """
    positions: list[Position] = []
    holdings = portfolio.get_holdings(position_date)
    for symbol in sorted(holdings):
        quantity = holdings[symbol]
        unit_price = get_closing_price(pricing_manager, symbol, position_date)
        positions.append(Position(
            symbol=symbol,
            quantity=quantity,
            position_date=position_date,
            total_value=quantity * unit_price,
            unit_price=unit_price,
        ))
    return positions


def calculate_portfolio_value_on_date(
    portfolio: Portfolio,
    valuation_date: date,
    pricing_manager: PricingDataManager,
) -> Decimal:
    """
    Calculate the market value of a portfolio on a specific date.

    Holdings are replayed up to and including the valuation date, then each
    holding is valued at its closing price on that date.

    Args:
        portfolio: The portfolio to value.
        valuation_date: The date to calculate the value for.
        pricing_manager: Source of closing prices.

    Returns:
        The total value. ``Decimal("0")`` if nothing is held on that date.

    Raises:
        DataFetchFailureError: If any held ticker has no price at the date.
    """
    holdings = portfolio.get_holdings(valuation_date)
    return _value_holdings(holdings, valuation_date, pricing_manager)


def calculate_portfolio_distribution(
    portfolio: Portfolio,
    valuation_date: date,
    pricing_manager: PricingDataManager,
) -> dict[str, Decimal]:
    """
    Calculate each holding's share of the portfolio's total value.

    Returns:
        Ticker to fraction of total value; the fractions add up to 1.

    Raises:
        EmptyPortfolioError: If the portfolio is worth nothing on the date.
        DataFetchFailureError: If any held ticker has no price at the date.
    """
    values = {
        position.symbol: position.total_value
        for position in get_positions(portfolio, valuation_date, pricing_manager)
    }
    total = sum(values.values(), Decimal("0"))
    if total == 0:
        raise EmptyPortfolioError(
            f"Portfolio '{portfolio.name}' has no value on {valuation_date}."
        )
    return {symbol: value / total for symbol, value in values.items()}


def calculate_portfolio_value_by_day(
    portfolio: Portfolio,
    start_date: date,
    end_date: date,
    pricing_manager: PricingDataManager,
    max_workers: int = 1,
) -> list[tuple[date, Decimal]]:
    """
    Calculate the portfolio value for each calendar day in a range.

    Holdings are rebuilt by walking the ledger once in date order. With
    ``max_workers`` above 1 the daily valuations (which are price lookups)
    run in a thread pool; the result is in date order either way.

    Args:
        portfolio: The portfolio to value.
        start_date: First day of the range (inclusive).
        end_date: Last day of the range (inclusive).
        pricing_manager: Source of closing prices.
        max_workers: Size of the valuation thread pool.

    Returns:
        A list of (date, value) pairs, one per day from start to end.

    Raises:
        InvalidRangeError: If end_date comes before start_date.
        DataFetchFailureError: If a held ticker has no price on some day.
    """
    if end_date < start_date:
        raise InvalidRangeError(f"End date {end_date} is before start date {start_date}.")

    sorted_transactions = ordered(portfolio.transactions)
    holdings: dict[str, Decimal] = {}
    txn_index = 0

    daily_holdings: list[tuple[date, dict[str, Decimal]]] = []
    for current_date in iter_days(start_date, end_date):
        # Apply everything that happened on or before current_date
        while txn_index < len(sorted_transactions) and sorted_transactions[txn_index].date <= current_date:
            holdings = sorted_transactions[txn_index].apply(holdings)
            txn_index += 1
        daily_holdings.append((current_date, holdings))

    if max_workers <= 1:
        return [(day, _value_holdings(held, day, pricing_manager)) for day, held in daily_holdings]

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
        values = pool.map(
            lambda entry: _value_holdings(entry[1], entry[0], pricing_manager),
            daily_holdings,
        )
        return [(day, value) for (day, _), value in zip(daily_holdings, values)]
