#!/usr/bin/env python3
"""Stock subcommand - Price analysis for a single ticker."""

from rich.console import Console
from rich.table import Table

from ..analysis import StockAnalyzer
from ..dates import format_date
from .common import add_common_arguments, build_pricing_manager, cli_date


def register_subcommand(subparsers):
    """Register the stock subcommand and its actions.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "stock",
        help="Analyze a single stock",
        description="Price gain, moving average and moving-average crossovers for one stock.",
    )
    actions = parser.add_subparsers(title="actions", dest="action", required=True)

    gain = actions.add_parser("gain", help="Change in closing price between two dates")
    gain.add_argument("ticker", help="Stock ticker symbol")
    gain.add_argument("start", type=cli_date, help="First day (MM/DD/YYYY)")
    gain.add_argument("end", type=cli_date, help="Last day (MM/DD/YYYY)")
    add_common_arguments(gain)
    gain.set_defaults(func=run_gain)

    average = actions.add_parser("average", help="Moving average of the closing price")
    average.add_argument("ticker", help="Stock ticker symbol")
    average.add_argument("date", type=cli_date, help="Last day of the window (MM/DD/YYYY)")
    average.add_argument("--days", type=int, default=30, help="Window length in trading days (default: 30)")
    add_common_arguments(average)
    average.set_defaults(func=run_average)

    crossovers = actions.add_parser("crossovers", help="Days closing above the moving average")
    crossovers.add_argument("ticker", help="Stock ticker symbol")
    crossovers.add_argument("start", type=cli_date, help="First day (MM/DD/YYYY)")
    crossovers.add_argument("end", type=cli_date, help="Last day (MM/DD/YYYY)")
    crossovers.add_argument("--days", type=int, default=30, help="Window length in trading days (default: 30)")
    add_common_arguments(crossovers)
    crossovers.set_defaults(func=run_crossovers)


def run_gain(args):
    analyzer = StockAnalyzer(build_pricing_manager(args))
    gain = analyzer.get_gain_over_time(args.ticker, args.start, args.end)

    style = "green" if gain >= 0 else "red"
    Console().print(
        f"{args.ticker.upper()} from {format_date(args.start)} to {format_date(args.end)}: "
        f"[{style}]{gain:+,.2f}[/{style}]"
    )
    return 0


def run_average(args):
    analyzer = StockAnalyzer(build_pricing_manager(args))
    average = analyzer.get_moving_day_average(args.ticker, args.date, args.days)

    Console().print(
        f"{args.ticker.upper()} {args.days}-day moving average on {format_date(args.date)}: ${average:,.2f}"
    )
    return 0


def run_crossovers(args):
    analyzer = StockAnalyzer(build_pricing_manager(args))
    days = analyzer.get_crossovers(args.ticker, args.start, args.end, args.days)

    table = Table(title=f"{args.ticker.upper()} closes above the {args.days}-day moving average")
    table.add_column("Date", style="cyan", justify="left")
    for day in days:
        table.add_row(format_date(day))

    console = Console()
    console.print(table)
    if not days:
        console.print("No crossovers in this range.")
    return 0
