#!/usr/bin/env python3
"""Trade subcommands - Buy, sell and rebalance, writing a new save each time."""

import argparse
from decimal import Decimal, InvalidOperation

from rich.console import Console

from ..dates import format_date
from .common import add_common_arguments, cli_date, open_portfolio


def parse_proportion(text: str) -> tuple[str, Decimal]:
    """Parse a ``TICKER=PROPORTION`` argument such as ``AAPL=0.4``."""
    ticker, separator, value = text.partition("=")
    if not separator or not ticker:
        raise argparse.ArgumentTypeError(f"Expected TICKER=PROPORTION, got '{text}'")
    try:
        proportion = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Not a number: '{value}'") from None
    if not proportion.is_finite():
        raise argparse.ArgumentTypeError(f"Not a finite number: '{value}'")
    return ticker, proportion


def register_subcommand(subparsers):
    """Register the buy, sell and rebalance subcommands.

    Args:
        subparsers: The argparse subparsers action to add the commands to.
    """
    for action in ("buy", "sell"):
        parser = subparsers.add_parser(
            action,
            help=f"{action.capitalize()} shares in a portfolio",
            description=f"{action.capitalize()} whole shares of a stock on a date and save the portfolio.",
        )
        parser.add_argument("name", help="Portfolio name")
        parser.add_argument("ticker", help="Stock ticker symbol")
        parser.add_argument("shares", type=int, help="Number of shares")
        parser.add_argument("date", type=cli_date, help="Trade date (MM/DD/YYYY)")
        add_common_arguments(parser)
        parser.set_defaults(func=run_trade, action=action)

    parser = subparsers.add_parser(
        "rebalance",
        help="Rebalance a portfolio to target proportions",
        description="Rebalance a portfolio on a date so each stock holds the given share of total value.",
    )
    parser.add_argument("name", help="Portfolio name")
    parser.add_argument("date", type=cli_date, help="Rebalance date (MM/DD/YYYY)")
    parser.add_argument(
        "proportions",
        nargs="+",
        type=parse_proportion,
        help="Target proportions as TICKER=PROPORTION, e.g. AAPL=0.6 MSFT=0.4",
    )
    add_common_arguments(parser)
    parser.set_defaults(func=run_rebalance)


def run_trade(args):
    """Record a buy or sell and write a new save.

    Args:
        args: Parsed argparse namespace with name, ticker, shares, date and action.

    Returns:
        int: Exit code (0 for success).
    """
    manager = open_portfolio(args, args.name, create_if_missing=(args.action == "buy"))
    if args.action == "buy":
        txn = manager.buy(args.name, args.ticker, args.shares, args.date)
    else:
        txn = manager.sell(args.name, args.ticker, args.shares, args.date)
    save_name = manager.save(args.name)

    console = Console()
    console.print(
        f"[green]{args.action.capitalize()} {txn.shares} {txn.ticker} on {format_date(txn.date)}[/green]"
        f" recorded in '{args.name}' ({save_name})"
    )
    return 0


def run_rebalance(args):
    """Rebalance a portfolio and write a new save.

    Args:
        args: Parsed argparse namespace with name, date and proportions.

    Returns:
        int: Exit code (0 for success).
    """
    manager = open_portfolio(args, args.name)
    txn = manager.rebalance(args.name, args.date, dict(args.proportions))
    save_name = manager.save(args.name)

    console = Console()
    console.print(f"[green]Rebalanced '{args.name}' on {format_date(txn.date)}[/green] ({save_name})")
    return 0
