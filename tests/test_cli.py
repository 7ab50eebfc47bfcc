"""Tests for the stockledger command line."""

import sys

import pytest

from stockledger.cli.main import main


@pytest.fixture
def run_cli(tmp_path, monkeypatch):
    """Run the CLI with saves and prices kept under tmp_path."""
    prices_dir = tmp_path / "prices"
    prices_dir.mkdir()
    (prices_dir / "AAPL.csv").write_text(
        "Date,Close\n2024-01-03,181.91\n2024-01-04,183.00\n", encoding="utf-8"
    )
    (prices_dir / "MSFT.csv").write_text(
        "Date,Close\n2024-01-03,370.60\n2024-01-04,367.94\n", encoding="utf-8"
    )
    save_dir = tmp_path / "saves"

    def run(*args):
        argv = ["stockledger", *args, "--save-dir", str(save_dir), "--prices-dir", str(prices_dir)]
        monkeypatch.setattr(sys, "argv", argv)
        return main()

    run.save_dir = save_dir
    return run


def test_buy_writes_a_save(run_cli):
    assert run_cli("buy", "retirement", "AAPL", "10", "01/03/2024") == 0
    assert len(list((run_cli.save_dir / "retirement").glob("*.txt"))) == 1


def test_each_trade_writes_a_new_save(run_cli):
    run_cli("buy", "retirement", "AAPL", "10", "01/03/2024")
    run_cli("sell", "retirement", "AAPL", "4", "01/04/2024")

    saves = sorted((run_cli.save_dir / "retirement").glob("*.txt"))
    assert len(saves) == 2
    assert saves[-1].read_text(encoding="utf-8") == "BUY:01/03/2024,AAPL,10\nSELL:01/04/2024,AAPL,4\n"


def test_rejected_trade_returns_error(run_cli, capsys):
    run_cli("buy", "retirement", "AAPL", "10", "01/03/2024")
    capsys.readouterr()

    assert run_cli("sell", "retirement", "AAPL", "11", "01/04/2024") == 1
    assert "Error:" in capsys.readouterr().err
    assert len(list((run_cli.save_dir / "retirement").glob("*.txt"))) == 1


def test_sell_from_missing_portfolio_returns_error(run_cli):
    assert run_cli("sell", "nobody", "AAPL", "1", "01/04/2024") == 1


def test_report_shows_total_value(run_cli, capsys):
    run_cli("buy", "retirement", "AAPL", "10", "01/03/2024")
    capsys.readouterr()

    assert run_cli("report", "retirement", "--date", "01/03/2024") == 0
    assert "1,819.10" in capsys.readouterr().out


def test_rebalance_and_performance(run_cli, capsys):
    run_cli("buy", "retirement", "AAPL", "10", "01/03/2024")
    run_cli("buy", "retirement", "MSFT", "5", "01/03/2024")

    assert run_cli("rebalance", "retirement", "01/04/2024", "AAPL=0.5", "MSFT=0.5") == 0
    assert run_cli("performance", "retirement", "01/03/2024", "01/04/2024") == 0

    saves = sorted((run_cli.save_dir / "retirement").glob("*.txt"))
    assert saves[-1].read_text(encoding="utf-8").splitlines()[-1].startswith("REBALANCE:01/04/2024,AAPL=>183.0;MSFT=>367.94,")


def test_non_finite_proportion_is_rejected_by_parser(run_cli):
    run_cli("buy", "retirement", "AAPL", "10", "01/03/2024")
    with pytest.raises(SystemExit):
        run_cli("rebalance", "retirement", "01/04/2024", "AAPL=nan")


def test_stock_gain(run_cli, capsys):
    assert run_cli("stock", "gain", "AAPL", "01/03/2024", "01/04/2024") == 0
    assert "+1.09" in capsys.readouterr().out


def test_bad_date_is_rejected_by_parser(run_cli):
    with pytest.raises(SystemExit):
        run_cli("buy", "retirement", "AAPL", "10", "2024-01-03")
