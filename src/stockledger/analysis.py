from abc import ABC, abstractmethod
from datetime import date, timedelta
from decimal import Decimal

import pandas as pd

from .errors import InvalidDateError, InvalidRangeError, InvalidTickerError
from .pricingdata import PricingDataManager
from .transactions import normalize_ticker

# Calendar days of history fetched per requested trading day when looking back
# for a moving average (covers weekends and holidays).
_HISTORY_DAYS_PER_TRADING_DAY = 2
_HISTORY_PADDING_DAYS = 10


class StockAnalysis(ABC):
    """Single-stock price analysis, independent of any portfolio."""

    @abstractmethod
    def stock_exists(self, ticker: str) -> bool: ...

    @abstractmethod
    def get_gain_over_time(self, ticker: str, start_date: date, end_date: date) -> Decimal: ...

    @abstractmethod
    def get_moving_day_average(self, ticker: str, end_date: date, days: int) -> Decimal: ...

    @abstractmethod
    def get_crossovers(self, ticker: str, start_date: date, end_date: date, days: int) -> list[date]: ...


class StockAnalyzer(StockAnalysis):
    """Stock analysis on top of a pricing data manager."""

    def __init__(self, pricing_manager: PricingDataManager):
        self.pricing_manager = pricing_manager

    def _known_symbol(self, ticker: str) -> str:
        symbol = normalize_ticker(ticker)
        if not self.pricing_manager.ticker_known(symbol):
            raise InvalidTickerError(f"Invalid ticker: {symbol} is not in the data source.")
        return symbol

    def _history(self, symbol: str, end_date: date, days: int, start_date: date | None = None) -> pd.Series:
        """Closes from far enough before start_date to cover a days-long window."""
        first_day = start_date if start_date is not None else end_date
        lookback = timedelta(days=days * _HISTORY_DAYS_PER_TRADING_DAY + _HISTORY_PADDING_DAYS)
        return self.pricing_manager.get_price_history(symbol, first_day - lookback, end_date).sort_index()

    def stock_exists(self, ticker: str) -> bool:
        try:
            return self.pricing_manager.ticker_known(normalize_ticker(ticker))
        except InvalidTickerError:
            return False

    def get_gain_over_time(self, ticker: str, start_date: date, end_date: date) -> Decimal:
        """
        Calculate the change in closing price between two dates.

        Each date uses the close on that day, or the last trading day before it.

        Returns:
            close(end_date) - close(start_date); negative for a loss.

        Raises:
            InvalidRangeError: If end_date is before start_date.
            InvalidTickerError: If the ticker is unknown.
            InvalidDateError: If either date has no recorded close.
        """
        if end_date < start_date:
            raise InvalidRangeError(f"End date {end_date} is before start date {start_date}.")
        symbol = self._known_symbol(ticker)

        start_point = self.pricing_manager.get_price_point(symbol, start_date)
        end_point = self.pricing_manager.get_price_point(symbol, end_date)
        if start_point is None:
            raise InvalidDateError(f"No recorded price for {symbol} on or before {start_date}.")
        if end_point is None:
            raise InvalidDateError(f"No recorded price for {symbol} on or before {end_date}.")
        return end_point.price - start_point.price

    def get_moving_day_average(self, ticker: str, end_date: date, days: int) -> Decimal:
        """
        Calculate the x-day moving average ending on a date.

        The average is taken over the last ``days`` recorded closes on or
        before ``end_date``.

        Raises:
            ValueError: If days is not positive.
            InvalidTickerError: If the ticker is unknown.
            InvalidDateError: If fewer than ``days`` closes are recorded.
        """
        if days <= 0:
            raise ValueError(f"Number of days must be positive, got {days}")
        symbol = self._known_symbol(ticker)

        closes = self._history(symbol, end_date, days)
        if len(closes) < days:
            raise InvalidDateError(
                f"Only {len(closes)} recorded closes for {symbol} up to {end_date}; {days} needed."
            )
        return Decimal(str(closes.iloc[-days:].mean())).quantize(Decimal("0.0001"))

    def get_crossovers(self, ticker: str, start_date: date, end_date: date, days: int) -> list[date]:
        """
        Find the trading days whose close is above the x-day moving average.

        Args:
            ticker: The stock symbol.
            start_date: First day to report (inclusive).
            end_date: Last day to report (inclusive).
            days: Length of the moving average window in trading days.

        Returns:
            Trading dates in the range, ascending, where the close is strictly
            greater than the moving average ending on that date. Days without
            a full window of history are skipped.

        Raises:
            ValueError: If days is not positive.
            InvalidRangeError: If end_date is before start_date.
            InvalidTickerError: If the ticker is unknown.
        """
        if days <= 0:
            raise ValueError(f"Number of days must be positive, got {days}")
        if end_date < start_date:
            raise InvalidRangeError(f"End date {end_date} is before start date {start_date}.")
        symbol = self._known_symbol(ticker)

        closes = self._history(symbol, end_date, days, start_date=start_date)
        averages = closes.rolling(window=days).mean()
        above = (closes > averages) & averages.notna()

        return [day for day, is_above in above.items() if is_above and start_date <= day <= end_date]
