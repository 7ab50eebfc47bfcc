#!/usr/bin/env python3
"""Report subcommands - Display portfolio holdings and list saves."""

from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..dates import format_date
from ..errors import EmptyPortfolioError
from ..portfolio import get_positions
from .common import add_common_arguments, cli_date, open_portfolio


def register_subcommand(subparsers):
    """Register the report and saves subcommands with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the commands to.
    """
    parser = subparsers.add_parser(
        "report",
        help="Display portfolio holdings report",
        description="Display the holdings, their values and the value distribution of a saved portfolio.",
    )
    parser.add_argument("name", help="Portfolio name")
    parser.add_argument(
        "--date",
        "-d",
        type=cli_date,
        default=None,
        help="Valuation date as MM/DD/YYYY (default: today)",
    )
    add_common_arguments(parser)
    parser.set_defaults(func=run)

    parser = subparsers.add_parser(
        "saves",
        help="List the saves of a portfolio",
        description="List the save files of a portfolio from earliest to latest.",
    )
    parser.add_argument("name", help="Portfolio name")
    add_common_arguments(parser)
    parser.set_defaults(func=run_saves)


def run(args):
    """Display positions, distribution and total value on a date.

    Args:
        args: Parsed argparse namespace with name, date and the common options.

    Returns:
        int: Exit code (0 for success).
    """
    manager = open_portfolio(args, args.name)
    portfolio = manager.get_portfolio(args.name)
    valuation_date = args.date or date.today()

    console = Console()
    positions = get_positions(portfolio, valuation_date, manager.pricing_manager)
    total_value = sum((p.total_value for p in positions), start=0)

    try:
        distribution = manager.get_distribution(args.name, valuation_date)
    except EmptyPortfolioError:
        distribution = {}

    holdings_table = Table(title=f"Holdings of '{args.name}' on {format_date(valuation_date)}")
    holdings_table.add_column("Symbol", style="cyan", justify="left")
    holdings_table.add_column("Shares", style="magenta", justify="right")
    holdings_table.add_column("Close", justify="right")
    holdings_table.add_column("Market Value", style="green", justify="right")
    holdings_table.add_column("Weight", justify="right")

    for position in positions:
        weight = distribution.get(position.symbol)
        holdings_table.add_row(
            position.symbol,
            f"{position.quantity:,.4f}".rstrip("0").rstrip("."),
            f"${position.unit_price:,.2f}",
            f"${position.total_value:,.2f}",
            f"{weight * 100:.2f}%" if weight is not None else "N/A",
        )

    console.print(holdings_table)
    console.print(
        Panel(
            f"[bold green]Total Portfolio Value: ${total_value:,.2f}[/bold green]",
            title="Summary",
        )
    )
    return 0


def run_saves(args):
    """List the saves of a portfolio, earliest first.

    Args:
        args: Parsed argparse namespace with name and the common options.

    Returns:
        int: Exit code (0 for success).
    """
    manager = open_portfolio(args, args.name)
    console = Console()

    saves_table = Table(title=f"Saves of '{args.name}'")
    saves_table.add_column("#", style="cyan", justify="right")
    saves_table.add_column("File", justify="left")
    for index, file_identifier in enumerate(manager.list_saves(args.name), start=1):
        saves_table.add_row(str(index), file_identifier)

    console.print(saves_table)
    return 0
