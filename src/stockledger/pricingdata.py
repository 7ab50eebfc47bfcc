from abc import ABC, abstractmethod
from decimal import Decimal
from datetime import date, timedelta
from pathlib import Path
import os
import sys
import threading
import warnings

import yfinance as yf  # type: ignore[import-untyped]
import pandas as pd

from .dates import iter_days
from .errors import DataFetchFailureError

# When True, print status messages during data fetching (e.g. "Fetching AAPL …").
# Defaults to False so CLI commands aren't polluted.
verbose: bool = False

# Weekends and holidays have no close; look back this many days for the last one.
LOOKBACK_DAYS = 7

PRICE_COLUMNS = ['Date', 'Open', 'High', 'Low', 'Close', 'Adj Close', 'Volume']


def get_yfinance_cache_dir() -> Path:
    """Get the directory holding cached yfinance prices.

    Uses ``STOCKLEDGER_CACHE_DIR`` when set, otherwise ``.cache/yfinance_prices/``
    under the current working directory.
    """
    configured = os.getenv("STOCKLEDGER_CACHE_DIR")
    if configured:
        return Path(configured)
    return Path.cwd() / ".cache" / "yfinance_prices"


def normalize_price_frame(df: pd.DataFrame, source: str) -> pd.DataFrame:
    """Reduce a daily price table to sorted ``Date``/``Close`` columns.

    Accepts the yfinance layout (``Date``, ``Close``) as well as the
    AlphaVantage CSV layout (``timestamp``, ``close``).

    Args:
        df: The raw price table.
        source: Description of where the table came from, for error messages.

    Returns:
        DataFrame with a ``Date`` column of ``datetime.date`` values and a float
        ``Close`` column, one row per date, sorted ascending.

    Raises:
        DataFetchFailureError: If the date or close column is missing.
    """
    columns = {str(c).strip().lower(): c for c in df.columns}
    date_column = columns.get("date", columns.get("timestamp"))
    close_column = columns.get("close")
    if date_column is None or close_column is None:
        raise DataFetchFailureError(f"Price data in {source} needs a date and a close column")

    if df.empty:
        return pd.DataFrame({'Date': pd.Series(dtype=object), 'Close': pd.Series(dtype=float)})

    prices = pd.DataFrame({
        'Date': pd.to_datetime(df[date_column]).dt.date,
        'Close': pd.to_numeric(df[close_column], errors='coerce'),
    })
    prices = prices.dropna()
    prices = prices[prices['Close'] > 0]
    prices = prices.drop_duplicates(subset=['Date'], keep='last')
    return prices.sort_values('Date').reset_index(drop=True)


class PricePoint:
    """A single closing price observation for a stock."""

    def __init__(self, symbol: str, price_date: date, price: Decimal):
        """Initialize a PricePoint.

        Args:
            symbol: Ticker symbol (e.g., "AAPL").
            price_date: The trading day the close was recorded on. This may be
                earlier than the date that was asked for.
            price: The closing price as a Decimal.
        """
        self.symbol: str = symbol
        self.price_date: date = price_date
        self.price: Decimal = price

    def __repr__(self):
        return f"PricePoint(ticker={self.symbol}, date={self.price_date}, price={self.price})"


class PricingDataManager(ABC):
    """Abstract base class for all pricing data providers.

    Implementations raise ``DataFetchFailureError`` when the underlying data
    cannot be read; a missing price is reported as ``None``, not an error.
    """

    @abstractmethod
    def get_price_point(self, symbol: str, price_date: date) -> PricePoint | None:
        raise NotImplementedError("This method should be overridden by subclasses.")

    @abstractmethod
    def ticker_known(self, symbol: str) -> bool:
        raise NotImplementedError("This method should be overridden by subclasses.")

    def get_price_history(self, symbol: str, start: date, end: date) -> pd.Series:
        """Return the recorded closes between two dates (inclusive).

        The default implementation asks ``get_price_point`` for every day and
        keeps the days that had their own close.

        Returns:
            Float Series of closing prices indexed by date, ascending.
        """
        closes: dict[date, float] = {}
        for day in iter_days(start, end):
            point = self.get_price_point(symbol, day)
            if point is not None and point.price_date == day:
                closes[day] = float(point.price)
        return pd.Series(closes, dtype=float)


class FixedPricingDataManager(PricingDataManager):
    """Pricing manager that returns a fixed price for any symbol/date."""

    def __init__(self, price_for_everything: Decimal = Decimal("1.0"), known_symbols: set[str] | None = None):
        """Initialize with a fixed price.

        Args:
            price_for_everything: The constant price returned for every query.
            known_symbols: Symbols reported as known. None means every symbol.
        """
        self.price = price_for_everything
        self.known_symbols = known_symbols

    def ticker_known(self, symbol: str) -> bool:
        return self.known_symbols is None or symbol in self.known_symbols

    def get_price_point(self, symbol: str, price_date: date) -> PricePoint | None:
        """Return a PricePoint with the fixed price, or None for unknown symbols."""
        if not self.ticker_known(symbol):
            return None
        return PricePoint(symbol=symbol, price_date=price_date, price=self.price)


class CSVPricingDataManager(PricingDataManager):
    """Pricing manager backed by a directory of ``<SYMBOL>.csv`` daily price files."""

    def __init__(self, prices_dir: str | Path):
        """Initialize the CSV pricing manager.

        Args:
            prices_dir: Directory containing one CSV file per symbol.
        """
        self.prices_dir = Path(prices_dir)
        # Normalized Date/Close frames, loaded on first access.
        self._frames: dict[str, pd.DataFrame] = {}

    def _get_csv_path(self, symbol: str) -> Path:
        return self.prices_dir / f"{symbol}.csv"

    def _to_price(self, close: float) -> Decimal:
        return Decimal(str(close))

    def _read_csv(self, symbol: str) -> pd.DataFrame | None:
        """Read and normalize a symbol's CSV file; None if there is no file."""
        csv_path = self._get_csv_path(symbol)
        if not csv_path.exists():
            return None
        try:
            raw = pd.read_csv(csv_path)
            return normalize_price_frame(raw, str(csv_path))
        except DataFetchFailureError:
            raise
        except (OSError, ValueError) as e:
            raise DataFetchFailureError(f"Could not read price data for {symbol} from {csv_path}: {e}") from e

    def _get_frame(self, symbol: str) -> pd.DataFrame | None:
        if symbol not in self._frames:
            frame = self._read_csv(symbol)
            if frame is None:
                return None
            self._frames[symbol] = frame
        return self._frames[symbol]

    def _lookup(self, symbol: str, frame: pd.DataFrame | None, target_date: date) -> PricePoint | None:
        """Find the close on target_date or the most recent trading day before it."""
        if frame is None or frame.empty:
            return None
        earliest = target_date - timedelta(days=LOOKBACK_DAYS)
        window = frame[(frame['Date'] <= target_date) & (frame['Date'] >= earliest)]
        if window.empty:
            return None
        row = window.iloc[-1]
        return PricePoint(symbol=symbol, price_date=row['Date'], price=self._to_price(float(row['Close'])))

    def ticker_known(self, symbol: str) -> bool:
        return self._get_csv_path(symbol).exists()

    def get_price_point(self, symbol: str, price_date: date) -> PricePoint | None:
        return self._lookup(symbol, self._get_frame(symbol), price_date)

    def get_price_history(self, symbol: str, start: date, end: date) -> pd.Series:
        frame = self._get_frame(symbol)
        if frame is None or frame.empty:
            return pd.Series(dtype=float)
        window = frame[(frame['Date'] >= start) & (frame['Date'] <= end)]
        return pd.Series(window['Close'].to_numpy(dtype=float), index=list(window['Date']), dtype=float)


class YFinancePricingDataManager(CSVPricingDataManager):
    """Pricing manager that downloads from Yahoo Finance into a local CSV cache.

    The cache directory uses the same ``<SYMBOL>.csv`` layout the CSV manager
    reads, so cached symbols are served without touching the network.
    """

    def __init__(self, cache_dir: str | Path | None = None, force_cache_refresh: bool = False):
        """Initialize the YFinance pricing manager.

        Args:
            cache_dir: Where to keep the CSV cache. Defaults to
                ``get_yfinance_cache_dir()``.
            force_cache_refresh: If True, bypass the disk cache and fetch
                fresh data from Yahoo Finance (once per symbol per session).
        """
        super().__init__(cache_dir if cache_dir is not None else get_yfinance_cache_dir())
        self.force_cache_refresh = force_cache_refresh
        self._lock = threading.Lock()
        # Symbols already force-refreshed this session.
        self._refreshed_symbols: set[str] = set()
        # Date ranges already requested from Yahoo this session, per symbol.
        self._fetched_ranges: dict[str, tuple[date, date]] = {}

    def _to_price(self, close: float) -> Decimal:
        return Decimal(str(close)).quantize(Decimal("0.01"))

    def _read_cached(self, symbol: str) -> pd.DataFrame | None:
        """Read the raw cache file, ignoring it if it is unreadable."""
        cache_path = self._get_csv_path(symbol)
        if not cache_path.exists():
            return None
        try:
            cached_df = pd.read_csv(cache_path)
            normalize_price_frame(cached_df, str(cache_path))
        except (OSError, ValueError) as e:
            # If cache is corrupted, we'll just refetch
            warnings.warn(f"Ignoring unreadable price cache {cache_path}: {e}", UserWarning)
            return None
        return cached_df

    def _needs_fetch(self, symbol: str, min_date: date, max_date: date, cached: pd.DataFrame | None) -> tuple[bool, date, date]:
        """Decide whether to hit the network and which range to request."""
        fetch_start, fetch_end = min_date, max_date
        cached_frame = normalize_price_frame(cached, symbol) if cached is not None else None

        if cached_frame is not None and not cached_frame.empty:
            cached_min = cached_frame['Date'].min()
            cached_max = cached_frame['Date'].max()
        else:
            cached_min = cached_max = None

        if self.force_cache_refresh and symbol not in self._refreshed_symbols:
            # Refresh everything the cache holds as well as what was asked for
            if cached_min is not None and cached_max is not None:
                fetch_start = min(min_date, cached_min)
                fetch_end = max(max_date, cached_max)
            return True, fetch_start, fetch_end

        fetched = self._fetched_ranges.get(symbol)
        if fetched is not None and fetched[0] <= min_date and max_date <= fetched[1]:
            return False, fetch_start, fetch_end

        if cached_min is None or cached_max is None:
            return True, fetch_start, fetch_end
        if min_date < cached_min or max_date > cached_max:
            return True, min(min_date, cached_min), max(max_date, cached_max)
        return False, fetch_start, fetch_end

    def _download(self, symbol: str, fetch_start: date, fetch_end: date) -> pd.DataFrame:
        # yfinance end date is exclusive, so add 1 day
        fetch_end_exclusive = fetch_end + timedelta(days=1)
        if verbose:
            print(f"  Fetching {symbol} ({fetch_start} to {fetch_end}) …", flush=True)
        ticker = yf.Ticker(symbol)
        new_df: pd.DataFrame = ticker.history(  # type: ignore[call-arg]
            start=fetch_start.isoformat(),
            end=fetch_end_exclusive.isoformat(),
            auto_adjust=False,
        )
        if new_df.empty:
            return pd.DataFrame(columns=PRICE_COLUMNS)

        # Reset index to make Date a column
        new_df = new_df.reset_index()
        new_df['Date'] = pd.to_datetime(new_df['Date']).dt.date
        available_columns = [c for c in PRICE_COLUMNS if c in new_df.columns]
        return new_df[available_columns]

    def _ensure_range(self, symbol: str, min_date: date, max_date: date) -> pd.DataFrame | None:
        """Make sure the cache covers a date range and return the normalized frame.

        Raises:
            DataFetchFailureError: If Yahoo Finance fails and nothing is cached.
        """
        with self._lock:
            cached_df = self._read_cached(symbol)
            need_fetch, fetch_start, fetch_end = self._needs_fetch(symbol, min_date, max_date, cached_df)

            if need_fetch:
                self._refreshed_symbols.add(symbol)
                try:
                    new_df = self._download(symbol, fetch_start, fetch_end)
                except Exception as e:
                    # yfinance can fail on rate limiting or network issues
                    if cached_df is None or cached_df.empty:
                        raise DataFetchFailureError(f"yfinance request failed for {symbol}: {e}") from e
                    warnings.warn(
                        f"yfinance request failed for {symbol}, using cached prices: {e}",
                        UserWarning,
                    )
                    new_df = pd.DataFrame(columns=PRICE_COLUMNS)

                self._fetched_ranges[symbol] = (fetch_start, fetch_end)

                if new_df.empty:
                    print(f"Warning: yfinance returned no data for {symbol}", file=sys.stderr)
                else:
                    # Merge with cached data if we had any, keeping newer rows
                    if cached_df is not None and not cached_df.empty:
                        cached_df['Date'] = pd.to_datetime(cached_df['Date']).dt.date
                        combined_df = pd.concat([cached_df, new_df], ignore_index=True)
                        combined_df = combined_df.drop_duplicates(subset=['Date'], keep='last')
                    else:
                        combined_df = new_df
                    cached_df = combined_df.sort_values('Date').reset_index(drop=True)

                    cache_path = self._get_csv_path(symbol)
                    cache_path.parent.mkdir(parents=True, exist_ok=True)
                    cached_df.to_csv(cache_path, index=False)

            if cached_df is None:
                self._frames.pop(symbol, None)
                return None
            frame = normalize_price_frame(cached_df, symbol)
            self._frames[symbol] = frame
            return frame

    def ticker_known(self, symbol: str) -> bool:
        """Check whether Yahoo Finance (or the cache) has any recent prices for the symbol."""
        if super().ticker_known(symbol) and not self.force_cache_refresh:
            return True
        today = date.today()
        frame = self._ensure_range(symbol, today - timedelta(days=14), today)
        return frame is not None and not frame.empty

    def get_price_point(self, symbol: str, price_date: date) -> PricePoint | None:
        """Get the close for a symbol on a date, or the last trading day before it."""
        # Ask for a window so a Monday after a long weekend still finds a close
        frame = self._ensure_range(symbol, price_date - timedelta(days=LOOKBACK_DAYS + 3), price_date)
        return self._lookup(symbol, frame, price_date)

    def get_price_history(self, symbol: str, start: date, end: date) -> pd.Series:
        self._ensure_range(symbol, start, end)
        return super().get_price_history(symbol, start, end)
