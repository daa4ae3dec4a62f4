"""Deduplication of trades that carry no genuine identifier."""

import logging
from collections import defaultdict, deque
from datetime import datetime
from decimal import Decimal
from typing import Any, Deque, Dict, Iterable, List, Set, Tuple

from ..models import Trade

logger = logging.getLogger(__name__)

TradeKey = Tuple[datetime, Decimal, Decimal]


def trade_key(trade: Trade) -> TradeKey:
    """Synthetic trades share id -1, so identity is (timestamp, price, quantity)."""
    return (trade.timestamp, trade.price, trade.quantity)


class TradeDeduplicator:
    """
    Per-symbol set of seen trade keys with FIFO eviction.

    Features:
    - Keys on content, not id
    - Bounded memory per symbol
    """

    def __init__(self, max_records_per_symbol: int = 100000):
        self.max_records_per_symbol = max_records_per_symbol

        self._seen: Dict[str, Set[TradeKey]] = defaultdict(set)
        self._insertion_order: Dict[str, Deque[TradeKey]] = defaultdict(deque)

        self.stats = {
            'total_checks': 0,
            'duplicates_found': 0,
            'unique_records': 0,
            'records_evicted': 0
        }

    def is_unique(self, trade: Trade, symbol: str = "default") -> bool:
        """Record ``trade`` and return False if it was already seen."""
        self.stats['total_checks'] += 1
        key = trade_key(trade)

        if key in self._seen[symbol]:
            self.stats['duplicates_found'] += 1
            return False

        self._seen[symbol].add(key)
        self._insertion_order[symbol].append(key)
        if len(self._seen[symbol]) > self.max_records_per_symbol:
            self._trim_symbol_records(symbol)

        self.stats['unique_records'] += 1
        return True

    def filter(self, trades: Iterable[Trade], symbol: str = "default") -> List[Trade]:
        """Unique trades from ``trades``, order preserved."""
        unique = [trade for trade in trades if self.is_unique(trade, symbol)]
        return unique

    def _trim_symbol_records(self, symbol: str):
        """Remove oldest keys for a symbol to stay within memory limits."""
        queue = self._insertion_order[symbol]
        removed = 0
        while queue and len(self._seen[symbol]) > self.max_records_per_symbol:
            self._seen[symbol].discard(queue.popleft())
            removed += 1

        self.stats['records_evicted'] += removed
        logger.debug(f"Evicted {removed} old trade keys for {symbol}")

    def clear_symbol(self, symbol: str):
        """Clear all keys for a specific symbol."""
        if symbol in self._seen:
            count = len(self._seen[symbol])
            del self._seen[symbol]
            del self._insertion_order[symbol]
            logger.info(f"Cleared {count} trade keys for symbol {symbol}")

    def get_stats(self) -> Dict[str, Any]:
        """Get deduplication statistics."""
        duplicate_rate = 0.0
        if self.stats['total_checks'] > 0:
            duplicate_rate = self.stats['duplicates_found'] / self.stats['total_checks']

        return {
            **self.stats,
            'duplicate_rate': duplicate_rate,
            'symbol_counts': {symbol: len(keys) for symbol, keys in self._seen.items()}
        }
