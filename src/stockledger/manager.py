from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Mapping, Union

from .errors import (
    DuplicatePortfolioNameError,
    InvalidDateError,
    InvalidPortfolioNameError,
    InvalidTickerError,
    LedgerError,
    MalformedRecordError,
    NonPositiveSharesError,
    PortfolioNotFoundError,
    ProportionsInvalidError,
    TickerNotHeldError,
)
from .portfolio import (
    Portfolio,
    calculate_portfolio_distribution,
    calculate_portfolio_value_by_day,
    calculate_portfolio_value_on_date,
)
from .pricingdata import PricingDataManager
from .rebalance import validate_proportions
from .storage import PortfolioSaveStore, portfolio_name_from_save
from .transactions import Buy, Rebalance, Sell, normalize_ticker, to_decimal


class PortfolioManagement(ABC):
    """Ledger-based portfolio operations."""

    @abstractmethod
    def create_portfolio(self, name: str) -> None: ...

    @abstractmethod
    def delete_portfolio(self, name: str) -> None: ...

    @abstractmethod
    def rename_portfolio(self, old_name: str, new_name: str) -> None: ...

    @abstractmethod
    def list_portfolios(self) -> list[str]: ...

    @abstractmethod
    def buy(self, name: str, ticker: str, shares: int, trade_date: date) -> Buy: ...

    @abstractmethod
    def sell(self, name: str, ticker: str, shares: int, trade_date: date) -> Sell: ...

    @abstractmethod
    def rebalance(self, name: str, rebalance_date: date, proportions: Mapping[str, Union[Decimal, float, str]]) -> Rebalance: ...

    @abstractmethod
    def get_holdings(self, name: str, as_of: date) -> dict[str, Decimal]: ...

    @abstractmethod
    def get_value(self, name: str, valuation_date: date) -> Decimal: ...

    @abstractmethod
    def get_distribution(self, name: str, valuation_date: date) -> dict[str, Decimal]: ...

    @abstractmethod
    def get_performance(self, name: str, start_date: date, end_date: date) -> list[tuple[date, Decimal]]: ...

    @abstractmethod
    def save(self, name: str) -> str: ...

    @abstractmethod
    def list_saves(self, name: str) -> list[str]: ...

    @abstractmethod
    def load(self, file_identifier: str) -> None: ...


class PortfolioManager(PortfolioManagement):
    """A collection of named portfolios plus the operations on their ledgers.

    Every mutating operation validates against the pricing data and a trial
    replay of the ledger first; a rejected operation changes nothing.
    """

    def __init__(
        self,
        pricing_manager: PricingDataManager,
        save_store: PortfolioSaveStore | None = None,
        max_workers: int = 1,
    ):
        """Initialize a PortfolioManager.

        Args:
            pricing_manager: Source of closing prices and known tickers.
            save_store: Where saves are written. Defaults to a store rooted at
                ``get_default_save_dir()``.
            max_workers: Thread pool size for performance queries.
        """
        self.pricing_manager = pricing_manager
        self.save_store = save_store if save_store is not None else PortfolioSaveStore()
        self.max_workers = max_workers
        self._portfolios: dict[str, Portfolio] = {}

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or not name.strip():
            raise InvalidPortfolioNameError("Portfolio name cannot be empty.")
        if "/" in name or "\\" in name:
            raise InvalidPortfolioNameError(f"Portfolio name cannot contain a path separator: '{name}'")
        if name in (".", ".."):
            raise InvalidPortfolioNameError(f"Portfolio name cannot be '{name}'")

    def get_portfolio(self, name: str) -> Portfolio:
        portfolio = self._portfolios.get(name)
        if portfolio is None:
            raise PortfolioNotFoundError(f"Portfolio '{name}' does not exist.")
        return portfolio

    def create_portfolio(self, name: str) -> None:
        self._check_name(name)
        if name in self._portfolios:
            raise DuplicatePortfolioNameError(f"Portfolio '{name}' already exists.")
        self._portfolios[name] = Portfolio(name)

    def delete_portfolio(self, name: str) -> None:
        self.get_portfolio(name)
        del self._portfolios[name]

    def rename_portfolio(self, old_name: str, new_name: str) -> None:
        portfolio = self.get_portfolio(old_name)
        self._check_name(new_name)
        if new_name in self._portfolios:
            raise DuplicatePortfolioNameError(f"Portfolio '{new_name}' already exists.")
        del self._portfolios[old_name]
        portfolio.name = new_name
        self._portfolios[new_name] = portfolio

    def list_portfolios(self) -> list[str]:
        """Return the portfolio names in creation order."""
        return list(self._portfolios)

    @staticmethod
    def _check_shares(shares: int) -> None:
        if shares <= 0:
            raise NonPositiveSharesError(f"Shares must be positive, got {shares}")

    def _check_tradable(self, ticker: str, trade_date: date) -> str:
        """Normalize a ticker and make sure it can be priced on the date."""
        symbol = normalize_ticker(ticker)
        if not self.pricing_manager.ticker_known(symbol):
            raise InvalidTickerError(f"Invalid ticker: {symbol} is not in the data source.")
        if self.pricing_manager.get_price_point(symbol, trade_date) is None:
            raise InvalidDateError(f"No recorded price for {symbol} on or before {trade_date}.")
        return symbol

    def buy(self, name: str, ticker: str, shares: int, trade_date: date) -> Buy:
        """
        Record a purchase of whole shares on a date.

        Raises:
            PortfolioNotFoundError: If the portfolio does not exist.
            NonPositiveSharesError: If shares is zero or negative.
            InvalidTickerError: If the ticker is unknown to the pricing data.
            InvalidDateError: If the ticker has no price on or before the date.
            DataFetchFailureError: If the pricing data cannot be fetched.
        """
        portfolio = self.get_portfolio(name)
        self._check_shares(shares)
        symbol = self._check_tradable(ticker, trade_date)
        return portfolio.add_transaction(Buy(ticker=symbol, shares=shares, date=trade_date))

    def sell(self, name: str, ticker: str, shares: int, trade_date: date) -> Sell:
        """
        Record a sale of whole shares on a date.

        The sale must not drive the holding negative, neither on its own date
        nor at any later entry of the ledger.

        Raises:
            PortfolioNotFoundError: If the portfolio does not exist.
            NonPositiveSharesError: If shares is zero or negative.
            InvalidTickerError: If the ticker is unknown to the pricing data.
            InvalidDateError: If the ticker has no price on or before the date.
            InsufficientSharesError: If fewer shares are held than sold.
        """
        portfolio = self.get_portfolio(name)
        self._check_shares(shares)
        symbol = self._check_tradable(ticker, trade_date)
        return portfolio.add_transaction(Sell(ticker=symbol, shares=shares, date=trade_date))

    def rebalance(self, name: str, rebalance_date: date, proportions: Mapping[str, Union[Decimal, float, str]]) -> Rebalance:
        """
        Rebalance a portfolio to target value proportions at a date's prices.

        The closing prices of the date are fetched once and stored in the
        transaction, so later replays do not depend on price data.

        Args:
            name: The portfolio name.
            rebalance_date: The date to rebalance on.
            proportions: Ticker to target share of value; must cover every
                stock held at the date and add up to 1.

        Raises:
            PortfolioNotFoundError: If the portfolio does not exist.
            ProportionsInvalidError: If the proportions are invalid or leave
                out a held stock.
            TickerNotHeldError: If a ticker in the proportions is not held.
            InvalidDateError: If a ticker has no price on or before the date.
        """
        portfolio = self.get_portfolio(name)
        try:
            targets = {normalize_ticker(t): to_decimal(p) for t, p in proportions.items()}
        except InvalidOperation as e:
            raise ProportionsInvalidError(f"Proportions must be numbers: {dict(proportions)}") from e
        validate_proportions(targets)

        holdings = portfolio.get_holdings(rebalance_date)
        for symbol in targets:
            if symbol not in holdings:
                raise TickerNotHeldError(f"{symbol} is not held in '{name}' on {rebalance_date}.")

        prices: dict[str, Decimal] = {}
        for symbol in targets:
            price_point = self.pricing_manager.get_price_point(symbol, rebalance_date)
            if price_point is None:
                raise InvalidDateError(f"No recorded price for {symbol} on or before {rebalance_date}.")
            prices[symbol] = price_point.price

        transaction = Rebalance(date=rebalance_date, prices=prices, proportions=targets)
        return portfolio.add_transaction(transaction)

    def get_holdings(self, name: str, as_of: date) -> dict[str, Decimal]:
        return self.get_portfolio(name).get_holdings(as_of)

    def get_value(self, name: str, valuation_date: date) -> Decimal:
        return calculate_portfolio_value_on_date(self.get_portfolio(name), valuation_date, self.pricing_manager)

    def get_distribution(self, name: str, valuation_date: date) -> dict[str, Decimal]:
        return calculate_portfolio_distribution(self.get_portfolio(name), valuation_date, self.pricing_manager)

    def get_performance(self, name: str, start_date: date, end_date: date) -> list[tuple[date, Decimal]]:
        return calculate_portfolio_value_by_day(
            self.get_portfolio(name),
            start_date,
            end_date,
            self.pricing_manager,
            max_workers=self.max_workers,
        )

    def save(self, name: str) -> str:
        """Write a new save of the portfolio's ledger and return its identifier."""
        portfolio = self.get_portfolio(name)
        return self.save_store.save(name, portfolio.transactions)

    def list_saves(self, name: str) -> list[str]:
        """List the portfolio's saves from earliest to latest."""
        self.get_portfolio(name)
        return self.save_store.list_saves(name)

    def load(self, file_identifier: str) -> None:
        """
        Replace a portfolio's ledger with the contents of a save.

        Nothing changes unless every line parses and the whole ledger replays
        cleanly.

        Raises:
            PortfolioNotFoundError: If the save belongs to a portfolio that
                does not exist.
            MalformedRecordError: If a line is unparsable or the saved ledger
                is inconsistent.
            FileNotFoundError: If the save does not exist.
        """
        try:
            name = portfolio_name_from_save(file_identifier)
        except ValueError as e:
            raise MalformedRecordError(str(e)) from e
        portfolio = self.get_portfolio(name)
        _, transactions = self.save_store.read(file_identifier)
        try:
            portfolio.replace_transactions(transactions)
        except LedgerError as e:
            raise MalformedRecordError(f"{file_identifier} is not a consistent ledger: {e}") from e
