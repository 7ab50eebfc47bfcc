#!/usr/bin/env python3
"""Main entry point for the stockledger CLI."""

import argparse
import sys

from ..errors import LedgerError

INVESTING_WARNING = (
    " \033[33m⚠  Portfolio values are computed from recorded closing prices.\n"
    "    Nothing here should be construed as investment advice.\033[0m"
)


def main():
    """Parse CLI arguments and dispatch to the appropriate subcommand.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="stockledger",
        description="stockledger - Ledger-based stock portfolios with replayable history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stockledger buy retirement AAPL 10 01/03/2023        Record a purchase and save
  stockledger sell retirement AAPL 5 02/01/2023        Record a sale and save
  stockledger rebalance retirement 03/01/2023 AAPL=0.6 MSFT=0.4
  stockledger report retirement --date 03/01/2023      Show holdings and value
  stockledger performance retirement 01/01/2023 01/31/2023
  stockledger stock average AAPL 03/01/2023 --days 50
        """,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        help="Available commands",
    )

    # Import subcommand modules and register them
    from .trade import register_subcommand as register_trade
    from .report import register_subcommand as register_report
    from .performance import register_subcommand as register_performance
    from .stock import register_subcommand as register_stock
    from .version import register_subcommand as register_version

    register_trade(subparsers)
    register_report(subparsers)
    register_performance(subparsers)
    register_stock(subparsers)
    register_version(subparsers)

    args = parser.parse_args()

    if args.command is None:
        print(INVESTING_WARNING)
        print()
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (LedgerError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
