"""Versioned on-disk saves of portfolio ledgers.

Each save is a text file with one serialized transaction per line, stored
under ``<root>/<quoted name>/``. Saves are never overwritten; every call to
``save`` writes a new file whose name carries an increasing sequence number,
so listing a directory in name order lists the saves from earliest to latest.
"""

import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable
from urllib.parse import quote, unquote

from .errors import MalformedRecordError
from .transactions import Transaction, parse_transaction

DEFAULT_SAVE_DIR = Path("res") / "portfolios"

_SAVE_NAME_PATTERN = re.compile(r"^(?P<name>.+)_(?P<seq>\d{6,})_(?P<stamp>\d{8}T\d{12}Z)\.txt$")


def get_default_save_dir() -> Path:
    """Directory for saves: ``STOCKLEDGER_SAVE_DIR`` if set, else ``./res/portfolios``."""
    configured = os.getenv("STOCKLEDGER_SAVE_DIR")
    if configured:
        return Path(configured)
    return Path.cwd() / DEFAULT_SAVE_DIR


def portfolio_name_from_save(file_identifier: str) -> str:
    """
    Recover the portfolio name a save file belongs to.

    Raises:
        ValueError: If the identifier is not a save file name.
    """
    match = _SAVE_NAME_PATTERN.match(file_identifier)
    if match is None:
        raise ValueError(f"'{file_identifier}' is not a portfolio save file name.")
    return unquote(match.group("name"))


class PortfolioSaveStore():
    """Writes, lists, and reads ledger saves under a root directory."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root) if root is not None else get_default_save_dir()

    def _portfolio_dir(self, name: str) -> Path:
        if name in (".", ".."):
            raise ValueError(f"'{name}' cannot be used as a portfolio directory.")
        return self.root / quote(name, safe="")

    def list_saves(self, name: str) -> list[str]:
        """Return the save identifiers of a portfolio, earliest first."""
        directory = self._portfolio_dir(name)
        if not directory.is_dir():
            return []
        saves = []
        for path in directory.iterdir():
            match = _SAVE_NAME_PATTERN.match(path.name)
            if path.is_file() and match is not None:
                saves.append((int(match.group("seq")), path.name))
        return [file_identifier for _, file_identifier in sorted(saves)]

    def _next_sequence(self, name: str) -> int:
        saves = self.list_saves(name)
        if not saves:
            return 1
        return int(_SAVE_NAME_PATTERN.match(saves[-1]).group("seq")) + 1

    def save(self, name: str, transactions: Iterable[Transaction]) -> str:
        """
        Write a new save of a ledger.

        The file is written to a temporary file in the target directory and
        moved into place only once it is complete, so an interrupted save
        leaves nothing behind.

        Args:
            name: The portfolio name.
            transactions: The ledger in insertion order.

        Returns:
            The identifier (file name) of the new save.
        """
        directory = self._portfolio_dir(name)
        directory.mkdir(parents=True, exist_ok=True)

        content = "".join(f"{txn.serialize()}\n" for txn in transactions)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        file_identifier = f"{quote(name, safe='')}_{self._next_sequence(name):06d}_{stamp}.txt"
        target = directory / file_identifier
        if target.exists():
            raise FileExistsError(f"Save {target} already exists.")

        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".saving-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, target)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        return file_identifier

    def read(self, file_identifier: str) -> tuple[str, list[Transaction]]:
        """
        Read a save back into transactions.

        Returns:
            The portfolio name and its ledger in insertion order.

        Raises:
            ValueError: If the identifier is not a save file name.
            FileNotFoundError: If the save does not exist.
            MalformedRecordError: On the first line that cannot be parsed.
        """
        name = portfolio_name_from_save(file_identifier)
        path = self._portfolio_dir(name) / file_identifier
        if not path.is_file():
            raise FileNotFoundError(f"Save file not found: {path}")

        transactions: list[Transaction] = []
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    transactions.append(parse_transaction(line))
                except MalformedRecordError as e:
                    raise MalformedRecordError(f"{file_identifier}, line {line_number}: {e}") from e
        return name, transactions
