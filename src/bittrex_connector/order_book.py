"""Live order book reconstruction from a snapshot plus nonce-numbered deltas."""

import logging
import operator
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from sortedcontainers import SortedDict

from .models import BookSide, ChangeKind, LevelChange, OrderBookDelta, OrderBookSnapshot, PriceLevel

logger = logging.getLogger(__name__)


class ApplyResult(Enum):
    """Outcome of applying a delta."""
    APPLIED = "applied"
    STALE_IGNORED = "stale_ignored"
    GAP_DETECTED = "gap_detected"


class DepthSide:
    """
    One side of the book keyed by price.

    Bids iterate in descending price order, asks ascending. Levels with a
    zero or negative quantity are never stored.
    """

    def __init__(self, side: BookSide):
        self.side = side
        if side is BookSide.BID:
            self._levels = SortedDict(operator.neg)
        else:
            self._levels = SortedDict()

    def load(self, levels: Iterable[PriceLevel]):
        self._levels.clear()
        for level in levels:
            self.upsert(level.price, level.quantity)

    def upsert(self, price: Decimal, quantity: Decimal):
        if quantity <= 0:
            self._levels.pop(price, None)
        else:
            self._levels[price] = quantity

    def remove(self, price: Decimal):
        self._levels.pop(price, None)

    def best(self) -> Optional[PriceLevel]:
        if not self._levels:
            return None
        price, quantity = self._levels.peekitem(0)
        return PriceLevel(price, quantity)

    def levels(self, depth: Optional[int] = None) -> List[PriceLevel]:
        items = self._levels.items()
        if depth is not None:
            items = items[:depth]
        return [PriceLevel(price, quantity) for price, quantity in items]

    def quantity_at(self, price: Decimal) -> Decimal:
        return self._levels.get(price, Decimal("0"))

    def __len__(self) -> int:
        return len(self._levels)


class LiveOrderBook:
    """Mutable per-symbol book state. Owned by DeltaOrderBook."""

    def __init__(self, snapshot: OrderBookSnapshot):
        self.symbol = snapshot.symbol
        self.bids = DepthSide(BookSide.BID)
        self.asks = DepthSide(BookSide.ASK)
        self.bids.load(snapshot.bids)
        self.asks.load(snapshot.asks)
        self.last_nonce = snapshot.nonce
        self.stale = False

    def side(self, side: BookSide) -> DepthSide:
        return self.bids if side is BookSide.BID else self.asks

    def apply_change(self, change: LevelChange):
        depth_side = self.side(change.side)
        if change.kind is ChangeKind.REMOVE:
            depth_side.remove(change.price)
        else:
            depth_side.upsert(change.price, change.quantity)


@dataclass(frozen=True)
class OrderBookView:
    """Read-only copy of a book handed to callers."""
    symbol: str
    nonce: int
    stale: bool
    bids: Tuple[PriceLevel, ...]
    asks: Tuple[PriceLevel, ...]

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None


class DeltaOrderBook:
    """
    Maintains live depth for each tracked symbol.

    Every delta is checked against the last applied nonce before it may
    change state: replays and out-of-order deliveries are ignored, and a
    nonce jump is reported as a gap. A gapped book stays readable but is
    flagged stale until the next snapshot replaces it.

    Not thread-safe: exactly one writer per symbol is assumed.
    """

    def __init__(self, strict_contiguity: bool = False):
        self.strict_contiguity = strict_contiguity
        self._books: Dict[str, LiveOrderBook] = {}

        self.stats = {
            'snapshots_applied': 0,
            'deltas_applied': 0,
            'stale_ignored': 0,
            'gaps_detected': 0
        }

    def apply_snapshot(self, snapshot: OrderBookSnapshot):
        """Replace the book for ``snapshot.symbol`` wholesale."""
        self._books[snapshot.symbol] = LiveOrderBook(snapshot)
        self.stats['snapshots_applied'] += 1
        logger.debug(
            f"Snapshot applied for {snapshot.symbol} at nonce {snapshot.nonce}: "
            f"{len(snapshot.bids)} bids, {len(snapshot.asks)} asks"
        )

    def apply_delta(self, delta: OrderBookDelta) -> ApplyResult:
        """
        Apply one delta.

        Returns:
            STALE_IGNORED if ``delta.nonce`` is not newer than the last applied
            nonce (no mutation); GAP_DETECTED if nonces skipped or no snapshot
            is held; APPLIED otherwise.
        """
        book = self._books.get(delta.symbol)
        if book is None:
            self.stats['gaps_detected'] += 1
            logger.warning(f"Delta {delta.nonce} for {delta.symbol} received before any snapshot")
            return ApplyResult.GAP_DETECTED

        if delta.nonce <= book.last_nonce:
            self.stats['stale_ignored'] += 1
            logger.debug(f"Ignoring stale delta {delta.nonce} for {delta.symbol} (last {book.last_nonce})")
            return ApplyResult.STALE_IGNORED

        expected = book.last_nonce + 1
        gap = delta.nonce != expected
        if gap:
            self.stats['gaps_detected'] += 1
            book.stale = True
            logger.warning(
                f"Nonce gap for {delta.symbol}: expected {expected}, got {delta.nonce}; "
                f"book flagged stale until next snapshot"
            )
            if self.strict_contiguity:
                return ApplyResult.GAP_DETECTED

        for change in delta.changes:
            book.apply_change(change)
        book.last_nonce = delta.nonce
        self.stats['deltas_applied'] += 1

        return ApplyResult.GAP_DETECTED if gap else ApplyResult.APPLIED

    def best_bid(self, symbol: str) -> Optional[PriceLevel]:
        book = self._books.get(symbol)
        return book.bids.best() if book else None

    def best_ask(self, symbol: str) -> Optional[PriceLevel]:
        book = self._books.get(symbol)
        return book.asks.best() if book else None

    def book(self, symbol: str, depth: Optional[int] = None) -> Optional[OrderBookView]:
        """Read-only view of a symbol's book, or None if untracked."""
        book = self._books.get(symbol)
        if book is None:
            return None
        return OrderBookView(
            symbol=symbol,
            nonce=book.last_nonce,
            stale=book.stale,
            bids=tuple(book.bids.levels(depth)),
            asks=tuple(book.asks.levels(depth)),
        )

    def last_nonce(self, symbol: str) -> Optional[int]:
        book = self._books.get(symbol)
        return book.last_nonce if book else None

    def is_stale(self, symbol: str) -> bool:
        """True when the book needs a snapshot (untracked symbols included)."""
        book = self._books.get(symbol)
        return book is None or book.stale

    def request_resync(self, symbol: str):
        """Mark a book unreliable until the next snapshot."""
        book = self._books.get(symbol)
        if book is not None:
            book.stale = True
            logger.info(f"Resync requested for {symbol}")

    def discard(self, symbol: str):
        """Stop tracking a symbol."""
        if self._books.pop(symbol, None) is not None:
            logger.info(f"Stopped tracking order book for {symbol}")

    def symbols(self) -> List[str]:
        return list(self._books)
