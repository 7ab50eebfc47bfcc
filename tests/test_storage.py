"""Tests for versioned portfolio saves on disk."""

from datetime import date

import pytest

from stockledger.errors import MalformedRecordError
from stockledger.storage import PortfolioSaveStore, get_default_save_dir, portfolio_name_from_save
from stockledger.transactions import Buy, Sell

LEDGER = [
    Buy(ticker="AAPL", shares=10, date=date(2023, 1, 3)),
    Sell(ticker="AAPL", shares=4, date=date(2023, 2, 1)),
]


def test_save_writes_one_line_per_transaction(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("retirement", LEDGER)

    content = (tmp_path / "retirement" / identifier).read_text(encoding="utf-8")
    assert content == "BUY:01/03/2023,AAPL,10\nSELL:02/01/2023,AAPL,4\n"


def test_save_never_overwrites(tmp_path):
    """Verify saving the same ledger twice leaves two separate files."""
    store = PortfolioSaveStore(tmp_path)
    first = store.save("retirement", LEDGER)
    second = store.save("retirement", LEDGER)

    assert first != second
    assert store.list_saves("retirement") == [first, second]
    assert "_000001_" in first
    assert "_000002_" in second


def test_save_leaves_no_temporary_files(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    store.save("retirement", LEDGER)
    assert [p.name for p in (tmp_path / "retirement").iterdir() if p.name.startswith(".")] == []


def test_read_round_trip(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("retirement", LEDGER)

    name, transactions = store.read(identifier)
    assert name == "retirement"
    assert transactions == LEDGER


def test_empty_ledger_saves_and_reads(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("empty", [])
    assert store.read(identifier) == ("empty", [])


def test_name_with_special_characters(tmp_path):
    """Verify names with spaces and underscores survive the file name."""
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("my_big portfolio", LEDGER)

    assert portfolio_name_from_save(identifier) == "my_big portfolio"
    assert store.list_saves("my_big portfolio") == [identifier]
    assert store.read(identifier)[0] == "my_big portfolio"


def test_list_saves_of_unknown_portfolio_is_empty(tmp_path):
    assert PortfolioSaveStore(tmp_path).list_saves("nobody") == []


def test_list_saves_ignores_other_files(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("retirement", LEDGER)
    (tmp_path / "retirement" / "notes.txt").write_text("hello", encoding="utf-8")

    assert store.list_saves("retirement") == [identifier]


def test_read_skips_blank_lines(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("retirement", LEDGER)
    path = tmp_path / "retirement" / identifier
    path.write_text("BUY:01/03/2023,AAPL,10\n\nSELL:02/01/2023,AAPL,4\n", encoding="utf-8")

    assert store.read(identifier)[1] == LEDGER


def test_read_reports_malformed_line_number(tmp_path):
    store = PortfolioSaveStore(tmp_path)
    identifier = store.save("retirement", LEDGER)
    path = tmp_path / "retirement" / identifier
    path.write_text("BUY:01/03/2023,AAPL,10\nBUY:01/03/2023,AAPL\n", encoding="utf-8")

    with pytest.raises(MalformedRecordError, match="line 2"):
        store.read(identifier)


def test_read_missing_save_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        PortfolioSaveStore(tmp_path).read("retirement_000001_20240101T000000000000Z.txt")


@pytest.mark.parametrize("identifier", ["retirement.txt", "retirement_1_20240101T000000000000Z.txt", ""])
def test_bad_identifier_rejected(identifier):
    with pytest.raises(ValueError):
        portfolio_name_from_save(identifier)


def test_default_save_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("STOCKLEDGER_SAVE_DIR", str(tmp_path / "saves"))
    assert get_default_save_dir() == tmp_path / "saves"
    assert PortfolioSaveStore().root == tmp_path / "saves"


def test_default_save_dir_fallback(tmp_path, monkeypatch):
    monkeypatch.delenv("STOCKLEDGER_SAVE_DIR", raising=False)
    monkeypatch.chdir(tmp_path)
    assert get_default_save_dir() == tmp_path / "res" / "portfolios"


@pytest.mark.parametrize("name", [".", ".."])
def test_dot_names_cannot_escape_the_root(tmp_path, name):
    """Verify '.' and '..' never become save directories."""
    store = PortfolioSaveStore(tmp_path / "saves")
    with pytest.raises(ValueError):
        store.save(name, LEDGER)
    assert list(tmp_path.iterdir()) == []


def test_saves_ordered_by_sequence_number(tmp_path):
    """Verify a seven-digit sequence number sorts after a six-digit one."""
    directory = tmp_path / "retirement"
    directory.mkdir()
    later = "retirement_1000000_20240101T000000000000Z.txt"
    earlier = "retirement_999999_20240102T000000000000Z.txt"
    for identifier in (later, earlier):
        (directory / identifier).write_text("BUY:01/03/2023,AAPL,10\n", encoding="utf-8")
    store = PortfolioSaveStore(tmp_path)

    assert store.list_saves("retirement") == [earlier, later]
    assert "_1000001_" in store.save("retirement", LEDGER)
