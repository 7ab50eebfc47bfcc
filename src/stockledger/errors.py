"""Exception types raised by the ledger.

Every error derives from ``LedgerError`` so callers can catch the whole family,
and each failure has its own class so callers can branch on the kind. Bad input
also derives from ``ValueError``; price data failures derive from ``OSError``.
"""


class LedgerError(Exception):
    """Base class for all stockledger errors."""


class LedgerValidationError(LedgerError, ValueError):
    """An operation was rejected before anything was changed."""


class InvalidTickerError(LedgerValidationError):
    """The ticker is malformed or unknown to the pricing data source."""


class InvalidDateError(LedgerValidationError):
    """No price is recorded on or before the date for a ticker that needs one."""


class NonPositiveSharesError(LedgerValidationError):
    """A buy or sell was requested with zero or negative shares."""


class InsufficientSharesError(LedgerValidationError):
    """A sell would leave a negative number of shares."""


class ProportionsInvalidError(LedgerValidationError):
    """Rebalance proportions are out of range, do not sum to 1, or miss a holding."""


class UnknownTickerError(LedgerValidationError):
    """A rebalance names a ticker that has no price in its snapshot."""


class TickerNotHeldError(LedgerValidationError):
    """A rebalance names a ticker that is not held at the rebalance date."""


class PortfolioNotFoundError(LedgerValidationError):
    """No portfolio with the given name exists."""


class DuplicatePortfolioNameError(LedgerValidationError):
    """A portfolio with the given name already exists."""


class InvalidPortfolioNameError(LedgerValidationError):
    """The portfolio name is empty or contains a path separator."""


class MalformedRecordError(LedgerValidationError):
    """A persisted transaction line (or a whole saved ledger) could not be parsed."""


class InvalidRangeError(LedgerValidationError):
    """The end of a date range comes before its start."""


class EmptyPortfolioError(LedgerValidationError):
    """The portfolio has no value, so a distribution cannot be computed."""


class DataFetchFailureError(LedgerError, OSError):
    """Price data could not be fetched, read, or was missing for a valuation."""
