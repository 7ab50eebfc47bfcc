"""Tests for single-stock analysis: gain, moving average and crossovers."""

from datetime import date
from decimal import Decimal

import pytest

from stockledger.analysis import StockAnalysis, StockAnalyzer
from stockledger.errors import InvalidDateError, InvalidRangeError, InvalidTickerError
from stockledger.manager import PortfolioManagement
from stockledger.pricingdata import CSVPricingDataManager

# Ten business days, Mon 01/01/2024 to Fri 01/12/2024
CLOSES = [
    ("2024-01-01", 10.0),
    ("2024-01-02", 11.0),
    ("2024-01-03", 12.0),
    ("2024-01-04", 13.0),
    ("2024-01-05", 14.0),
    ("2024-01-08", 15.0),
    ("2024-01-09", 14.0),
    ("2024-01-10", 13.0),
    ("2024-01-11", 12.0),
    ("2024-01-12", 11.0),
]


@pytest.fixture
def analyzer(tmp_path):
    lines = ["Date,Close"] + [f"{day},{close}" for day, close in CLOSES]
    (tmp_path / "AAPL.csv").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return StockAnalyzer(CSVPricingDataManager(tmp_path))


def test_analyzer_offers_only_stock_operations(analyzer):
    assert isinstance(analyzer, StockAnalysis)
    assert not isinstance(analyzer, PortfolioManagement)


def test_stock_exists(analyzer):
    assert analyzer.stock_exists("aapl")
    assert not analyzer.stock_exists("MSFT")
    assert not analyzer.stock_exists("not a ticker")


class TestGainOverTime:
    """Tests for the change in close between two dates."""

    def test_gain(self, analyzer):
        assert analyzer.get_gain_over_time("AAPL", date(2024, 1, 1), date(2024, 1, 12)) == Decimal("1")

    def test_loss_is_negative(self, analyzer):
        assert analyzer.get_gain_over_time("AAPL", date(2024, 1, 8), date(2024, 1, 12)) == Decimal("-4")

    def test_weekend_uses_previous_close(self, analyzer):
        assert analyzer.get_gain_over_time("AAPL", date(2024, 1, 1), date(2024, 1, 7)) == Decimal("4")

    def test_end_before_start_raises(self, analyzer):
        with pytest.raises(InvalidRangeError):
            analyzer.get_gain_over_time("AAPL", date(2024, 1, 12), date(2024, 1, 1))

    def test_unknown_ticker_raises(self, analyzer):
        with pytest.raises(InvalidTickerError):
            analyzer.get_gain_over_time("MSFT", date(2024, 1, 1), date(2024, 1, 12))

    def test_date_without_data_raises(self, analyzer):
        with pytest.raises(InvalidDateError):
            analyzer.get_gain_over_time("AAPL", date(2023, 12, 1), date(2024, 1, 12))


class TestMovingAverage:
    """Tests for the x-day moving average."""

    def test_average_of_last_closes(self, analyzer):
        assert analyzer.get_moving_day_average("AAPL", date(2024, 1, 12), 3) == Decimal("12.0000")

    def test_average_on_weekend(self, analyzer):
        """Verify a weekend end date averages the closes up to the Friday before."""
        assert analyzer.get_moving_day_average("AAPL", date(2024, 1, 7), 2) == Decimal("13.5000")

    def test_not_enough_history_raises(self, analyzer):
        with pytest.raises(InvalidDateError):
            analyzer.get_moving_day_average("AAPL", date(2024, 1, 12), 20)

    @pytest.mark.parametrize("days", [0, -3])
    def test_non_positive_days_raises(self, analyzer, days):
        with pytest.raises(ValueError):
            analyzer.get_moving_day_average("AAPL", date(2024, 1, 12), days)


class TestCrossovers:
    """Tests for closes above the moving average."""

    def test_crossovers(self, analyzer):
        assert analyzer.get_crossovers("AAPL", date(2024, 1, 1), date(2024, 1, 12), 3) == [
            date(2024, 1, 3),
            date(2024, 1, 4),
            date(2024, 1, 5),
            date(2024, 1, 8),
        ]

    def test_crossovers_limited_to_range(self, analyzer):
        assert analyzer.get_crossovers("AAPL", date(2024, 1, 4), date(2024, 1, 5), 3) == [
            date(2024, 1, 4),
            date(2024, 1, 5),
        ]

    def test_end_before_start_raises(self, analyzer):
        with pytest.raises(InvalidRangeError):
            analyzer.get_crossovers("AAPL", date(2024, 1, 12), date(2024, 1, 1), 3)
