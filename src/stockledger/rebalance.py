from decimal import Decimal
from typing import Mapping

from .errors import ProportionsInvalidError, TickerNotHeldError, UnknownTickerError

# Proportions must add up to 1 within this tolerance.
PROPORTION_TOLERANCE = Decimal("1e-9")


def validate_proportions(proportions: Mapping[str, Decimal]) -> None:
    """
    Check that target proportions are usable for a rebalance.

    Args:
        proportions: Mapping of ticker to its target share of total value,
            in decimal form (50% is ``Decimal("0.5")``).

    Raises:
        ProportionsInvalidError: If the mapping is empty, any proportion is
            outside (0, 1] (or not a finite number), or the proportions do not sum to 1.
    """
    if not proportions:
        raise ProportionsInvalidError("At least one proportion is required.")

    for ticker, proportion in proportions.items():
        if not proportion.is_finite() or proportion <= 0 or proportion > 1:
            raise ProportionsInvalidError(
                f"Proportion for {ticker} must be greater than 0 and at most 1, got {proportion}"
            )

    total = sum(proportions.values(), Decimal("0"))
    if abs(total - 1) > PROPORTION_TOLERANCE:
        raise ProportionsInvalidError(f"Proportions must add up to 1, got {total}")


def rebalance(
    holdings: Mapping[str, Decimal],
    prices: Mapping[str, Decimal],
    proportions: Mapping[str, Decimal],
) -> dict[str, Decimal]:
    """
    Redistribute the value of a holdings snapshot according to target proportions.

    The total value ``V = sum(holdings[t] * prices[t])`` is preserved and each
    ticker ends up with ``V * proportions[t] / prices[t]`` shares, which may be
    fractional. Every held ticker must appear in the proportions; a rebalance
    that leaves a holding out is rejected rather than guessing whether to keep
    or liquidate it.

    Args:
        holdings: Ticker to share count before the rebalance.
        prices: Ticker to price used for the rebalance.
        proportions: Ticker to target share of total value.

    Returns:
        A new holdings mapping. The input is not modified.

    Raises:
        ProportionsInvalidError: If the proportions are invalid or omit a held ticker.
        UnknownTickerError: If a ticker has no price.
        TickerNotHeldError: If a ticker in the proportions is not held.
    """
    validate_proportions(proportions)

    for ticker in proportions:
        if ticker not in prices:
            raise UnknownTickerError(f"No price for {ticker} in the rebalance snapshot.")
        if ticker not in holdings or holdings[ticker] < 0:
            raise TickerNotHeldError(f"{ticker} is not held in the portfolio at the rebalance date.")

    missing = sorted(set(holdings) - set(proportions))
    if missing:
        raise ProportionsInvalidError(
            f"Proportions must cover every held stock; missing: {', '.join(missing)}"
        )

    # Fixed ticker order keeps Decimal rounding identical on every replay
    total_value = sum((holdings[t] * prices[t] for t in sorted(holdings)), Decimal("0"))

    return {t: total_value * proportions[t] / prices[t] for t in sorted(proportions)}
