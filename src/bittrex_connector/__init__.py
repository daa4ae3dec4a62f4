"""
Bittrex Connector - normalized market data and order state for Bittrex.

Reconstructs live order books from nonce-numbered deltas, backfills
historical trades through a paced cursor, and resolves raw order fields
into exchange-agnostic records.
"""

from .backfill import BackfillReason, BackfillResult, TradeBackfillEngine
from .order_book import ApplyResult, DeltaOrderBook
from .order_state import resolve
from .period_codec import from_token, to_token

__version__ = "1.0.0"

__all__ = [
    "ApplyResult",
    "BackfillReason",
    "BackfillResult",
    "DeltaOrderBook",
    "TradeBackfillEngine",
    "from_token",
    "resolve",
    "to_token",
]
