"""Calendar-date helpers for the ledger.

The ledger works in whole days only, so every date is a ``datetime.date``.
Persisted lines and the command line use ``MM/DD/YYYY``.
"""

import re
from collections.abc import Iterator
from datetime import date, timedelta

_DATE_PATTERN = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


def format_date(value: date) -> str:
    """Format a date as ``MM/DD/YYYY``."""
    return f"{value.month:02d}/{value.day:02d}/{value.year:04d}"


def parse_date(text: str) -> date:
    """Parse a ``MM/DD/YYYY`` string.

    Args:
        text: The date text, e.g. ``"06/13/2024"``.

    Returns:
        The parsed date.

    Raises:
        ValueError: If the text is not exactly ``MM/DD/YYYY`` or names a day
            that does not exist (e.g. ``02/30/2024``).
    """
    match = _DATE_PATTERN.match(text.strip())
    if match is None:
        raise ValueError(f"Expected a date in MM/DD/YYYY format, got '{text}'")
    month, day, year = (int(part) for part in match.groups())
    return date(year, month, day)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current = current + timedelta(days=1)
