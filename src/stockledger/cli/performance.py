#!/usr/bin/env python3
"""Performance subcommand - Display a portfolio's value for each day of a range."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..dates import format_date
from .common import add_common_arguments, cli_date, open_portfolio


def register_subcommand(subparsers):
    """Register the performance subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "performance",
        help="Display portfolio value over a date range",
        description="Display the value of a saved portfolio on every day between two dates.",
    )
    parser.add_argument("name", help="Portfolio name")
    parser.add_argument("start", type=cli_date, help="First day (MM/DD/YYYY)")
    parser.add_argument("end", type=cli_date, help="Last day (MM/DD/YYYY)")
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        default=4,
        help="Threads used to value the days (default: 4)",
    )
    add_common_arguments(parser)
    parser.set_defaults(func=run)


def run(args):
    """Display one row per day with the value and the change from the day before.

    Args:
        args: Parsed argparse namespace with name, start, end and workers.

    Returns:
        int: Exit code (0 for success).
    """
    manager = open_portfolio(args, args.name)
    manager.max_workers = args.workers
    performance = manager.get_performance(args.name, args.start, args.end)

    console = Console()
    table = Table(title=f"Performance of '{args.name}'")
    table.add_column("Date", style="cyan", justify="left")
    table.add_column("Value", style="green", justify="right")
    table.add_column("Change", justify="right")

    previous = None
    for day, value in performance:
        if previous is None:
            change_str = ""
        elif value >= previous:
            change_str = f"[green]+{value - previous:,.2f}[/green]"
        else:
            change_str = f"[red]{value - previous:,.2f}[/red]"
        table.add_row(format_date(day), f"${value:,.2f}", change_str)
        previous = value

    console.print(table)

    first_value = performance[0][1]
    last_value = performance[-1][1]
    console.print(
        Panel(
            f"{format_date(args.start)}: ${first_value:,.2f}  →  {format_date(args.end)}: ${last_value:,.2f}",
            title="Summary",
        )
    )
    return 0
