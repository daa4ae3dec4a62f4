"""Mapping between candle durations in seconds and Bittrex tick interval tokens."""

from typing import Dict

from .exceptions import InvalidArgument


PERIOD_TOKENS: Dict[int, str] = {
    60: "oneMin",
    300: "fiveMin",
    1800: "thirtyMin",
    3600: "hour",
    86400: "day",
    259200: "threeDay",
    604800: "week",
}

MONTH_TOKEN = "month"
MONTH_SECONDS = 2419200
LONGEST_FIXED_PERIOD = 604800

_TOKEN_PERIODS: Dict[str, int] = {
    token.lower(): seconds for seconds, token in PERIOD_TOKENS.items()
}
_TOKEN_PERIODS[MONTH_TOKEN] = MONTH_SECONDS


def to_token(seconds: int) -> str:
    """
    Convert a period in seconds to the exchange's tick interval token.

    Any period longer than a week maps to ``month``; the exchange has no
    other long-period granularity.

    Raises:
        InvalidArgument: If the period is not supported
    """
    token = PERIOD_TOKENS.get(seconds)
    if token is not None:
        return token
    if seconds > LONGEST_FIXED_PERIOD:
        return MONTH_TOKEN

    supported = ", ".join(f"{s} ({t})" for s, t in PERIOD_TOKENS.items())
    raise InvalidArgument(
        f"seconds must be one of {supported}, {MONTH_SECONDS} ({MONTH_TOKEN}); got {seconds}"
    )


def from_token(token: str) -> int:
    """Convert a tick interval token back to seconds (case-insensitive)."""
    seconds = _TOKEN_PERIODS.get((token or "").strip().lower())
    if seconds is None:
        raise InvalidArgument(f"Unknown tick interval token: {token!r}")
    return seconds
