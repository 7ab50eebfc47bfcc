"""Tests for rebuilding holdings by replaying a ledger."""

import random
from datetime import date
from decimal import Decimal

import pytest

from stockledger.errors import InsufficientSharesError, ProportionsInvalidError
from stockledger.replay import ordered, replay, replay_all
from stockledger.transactions import Buy, Rebalance, Sell, parse_transaction


def _ledger():
    # Insertion order differs from date order on purpose
    return [
        Buy(ticker="AAPL", shares=10, date=date(2023, 1, 5)),
        Sell(ticker="AAPL", shares=4, date=date(2023, 1, 10)),
        Buy(ticker="AAPL", shares=1, date=date(2023, 1, 3)),
        Buy(ticker="MSFT", shares=2, date=date(2023, 1, 7)),
    ]


def test_replay_before_first_transaction_is_empty():
    """Verify a date before every entry gives empty holdings."""
    assert replay(_ledger(), date(2023, 1, 2)) == {}


def test_replay_follows_dates_not_insertion_order():
    """Verify entries apply by date even when inserted out of order."""
    ledger = _ledger()
    assert replay(ledger, date(2023, 1, 4)) == {"AAPL": Decimal("1")}
    assert replay(ledger, date(2023, 1, 7)) == {"AAPL": Decimal("11"), "MSFT": Decimal("2")}
    assert replay(ledger, date(2023, 1, 10)) == {"AAPL": Decimal("7"), "MSFT": Decimal("2")}


def test_replay_includes_as_of_date():
    """Verify entries dated exactly on the cutoff are applied."""
    assert replay(_ledger(), date(2023, 1, 3)) == {"AAPL": Decimal("1")}


def test_replay_is_deterministic():
    """Verify replaying the same ledger twice gives the same holdings."""
    ledger = _ledger()
    assert replay(ledger, date(2023, 2, 1)) == replay(ledger, date(2023, 2, 1))


def test_same_day_entries_keep_insertion_order():
    """Verify entries on the same date apply in the order they were added."""
    day = date(2023, 3, 1)
    buy_then_sell = [Buy(ticker="A", shares=5, date=day), Sell(ticker="A", shares=5, date=day)]
    assert replay_all(buy_then_sell) == {}

    sell_then_buy = [Sell(ticker="A", shares=5, date=day), Buy(ticker="A", shares=5, date=day)]
    with pytest.raises(InsufficientSharesError):
        replay_all(sell_then_buy)


def test_ordered_is_stable():
    day = date(2023, 3, 1)
    first = Buy(ticker="A", shares=1, date=day)
    second = Buy(ticker="B", shares=1, date=day)
    earlier = Buy(ticker="C", shares=1, date=date(2023, 2, 1))
    assert ordered([first, second, earlier]) == [earlier, first, second]


def test_replay_applies_stored_rebalance_prices():
    """Verify a rebalance replays from its own price snapshot."""
    ledger = [
        Buy(ticker="A", shares=10, date=date(2023, 1, 1)),
        Buy(ticker="B", shares=10, date=date(2023, 1, 1)),
        Rebalance(
            date=date(2023, 1, 2),
            prices={"A": Decimal("10"), "B": Decimal("30")},
            proportions={"A": Decimal("0.5"), "B": Decimal("0.5")},
        ),
    ]
    holdings = replay_all(ledger)
    assert holdings["A"] == Decimal("20")
    assert abs(holdings["B"] - Decimal("6.666666666666666666666666667")) < Decimal("1e-20")


def test_back_dated_buy_before_rebalance_rejected():
    """Verify a ticker bought before a rebalance that does not name it breaks the replay."""
    ledger = [
        Buy(ticker="A", shares=10, date=date(2023, 1, 1)),
        Rebalance(
            date=date(2023, 1, 5),
            prices={"A": Decimal("10")},
            proportions={"A": Decimal("1")},
        ),
        Buy(ticker="B", shares=1, date=date(2023, 1, 3)),
    ]
    with pytest.raises(ProportionsInvalidError):
        replay_all(ledger)


def _random_ledger(rng):
    tickers = ["AAPL", "AMZN", "MSFT", "NFLX"]
    ledger = [Buy(ticker=t, shares=rng.randint(1, 97), date=date(2024, 1, 2)) for t in rng.sample(tickers, 4)]
    for offset in range(3):
        weights = [rng.randint(1, 400) for _ in tickers]
        total = sum(weights)
        order = rng.sample(range(4), 4)
        prices = {tickers[i]: Decimal(rng.randint(100, 99999)) / 100 for i in order}
        proportions = {tickers[i]: Decimal(weights[i]) / Decimal(total) for i in order}
        ledger.append(Rebalance(date=date(2024, 2, 1 + offset), prices=prices, proportions=proportions))
    return ledger


def test_reloaded_ledger_replays_identically():
    """Verify chained rebalances give the exact same holdings after a write and read of every line."""
    rng = random.Random(20240613)
    for _ in range(100):
        ledger = _random_ledger(rng)
        reloaded = [parse_transaction(txn.serialize()) for txn in ledger]

        assert reloaded == ledger
        assert replay_all(reloaded) == replay_all(ledger)


def test_rebalance_result_does_not_depend_on_holdings_order():
    """Verify the order stocks were bought in does not change a rebalance's rounding."""
    rebalance_txn = Rebalance(
        date=date(2024, 1, 5),
        prices={"A": Decimal("3.07"), "B": Decimal("7.13"), "C": Decimal("11.9")},
        proportions={"C": Decimal("0.37"), "A": Decimal("0.41"), "B": Decimal("0.22")},
    )
    forward = [Buy(ticker=t, shares=s, date=date(2024, 1, 2)) for t, s in [("A", 7), ("B", 13), ("C", 29)]]
    backward = list(reversed(forward))

    assert replay_all(forward + [rebalance_txn]) == replay_all(backward + [rebalance_txn])
    assert list(rebalance_txn.proportions) == ["A", "B", "C"]
