"""Shared setup for CLI subcommands: price source, save store, and loading portfolios."""

import argparse
import os
from datetime import date

from dotenv import load_dotenv

load_dotenv()

from ..dates import parse_date
from ..errors import PortfolioNotFoundError
from ..manager import PortfolioManager
from ..pricingdata import CSVPricingDataManager, PricingDataManager, YFinancePricingDataManager
from ..storage import PortfolioSaveStore


def add_common_arguments(parser):
    """Add the price source and save directory options to a subcommand parser.

    Args:
        parser: The argparse parser of a subcommand.
    """
    parser.add_argument(
        "--save-dir",
        default=None,
        help="Directory holding portfolio saves (default: $STOCKLEDGER_SAVE_DIR or ./res/portfolios)",
    )
    parser.add_argument(
        "--prices-dir",
        default=None,
        help="Read prices from <TICKER>.csv files in this directory instead of Yahoo Finance "
             "(default: $STOCKLEDGER_PRICES_DIR)",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass the yfinance cache and fetch fresh pricing data",
    )


def cli_date(text: str) -> date:
    """argparse type for MM/DD/YYYY dates."""
    try:
        return parse_date(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_pricing_manager(args) -> PricingDataManager:
    """Pick the pricing data manager requested on the command line or in the environment."""
    prices_dir = args.prices_dir or os.getenv("STOCKLEDGER_PRICES_DIR")
    if prices_dir:
        return CSVPricingDataManager(prices_dir)
    return YFinancePricingDataManager(force_cache_refresh=args.no_cache)


def open_portfolio(args, name: str, create_if_missing: bool = False) -> PortfolioManager:
    """Create a manager holding one portfolio, loaded from its latest save.

    Args:
        args: Parsed CLI arguments with the common options.
        name: The portfolio name.
        create_if_missing: If True, start an empty portfolio when there are
            no saves; otherwise raise.

    Raises:
        PortfolioNotFoundError: If there are no saves and create_if_missing is False.
    """
    manager = PortfolioManager(
        build_pricing_manager(args),
        PortfolioSaveStore(args.save_dir) if args.save_dir else None,
    )
    saves = manager.save_store.list_saves(name)
    if not saves and not create_if_missing:
        raise PortfolioNotFoundError(f"Portfolio '{name}' has no saves in {manager.save_store.root}.")
    manager.create_portfolio(name)
    if saves:
        manager.load(saves[-1])
    return manager
