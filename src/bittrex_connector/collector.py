"""Orchestrates order book synchronization and trade backfill for Bittrex."""

import inspect
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .backfill import BackfillReason, PageConsumer, TradeBackfillEngine
from .clients.bittrex_rest import BittrexRESTClient
from .clients.parsers import parse_delta, parse_stream_snapshot
from .config.settings import ConnectorSettings
from .models import Trade
from .order_book import ApplyResult, DeltaOrderBook
from .utils.deduplication import TradeDeduplicator
from .utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class DataCollector:
    """
    Wires the REST gateway to the order book and backfill engine.

    Stream payloads (exchange state snapshots and updates) are handed in by
    whatever subscription the caller runs; the collector parses them and
    keeps one live book per market.
    """

    def __init__(
        self,
        config: ConnectorSettings,
        client: BittrexRESTClient,
        on_resync_needed: Optional[Callable[[str], Any]] = None
    ):
        self.config = config
        self.client = client
        self.on_resync_needed = on_resync_needed
        self.order_book = DeltaOrderBook(strict_contiguity=config.order_book.strict_contiguity)
        self.backfill_engine = TradeBackfillEngine(
            client.fetch_backfill_page,
            page_delay_seconds=config.backfill.page_delay_seconds
        )
        self.deduplicator = TradeDeduplicator() if config.backfill.deduplicate else None

        logger.info("DataCollector initialized")

    def on_exchange_state(self, payload: Dict[str, Any]):
        """Apply a streamed full book state (the baseline for updates)."""
        snapshot = parse_stream_snapshot(payload)
        self.order_book.apply_snapshot(snapshot)

    async def on_exchange_delta(self, payload: Dict[str, Any]) -> ApplyResult:
        """Apply a streamed book update; ask for a resync on a nonce gap."""
        delta = parse_delta(payload)
        result = self.order_book.apply_delta(delta)

        if result is ApplyResult.GAP_DETECTED and self.on_resync_needed is not None:
            outcome = self.on_resync_needed(delta.symbol)
            if inspect.isawaitable(outcome):
                await outcome

        return result

    async def collect_historical_trades(
        self,
        symbol: str,
        start_time: Optional[datetime],
        consumer: PageConsumer,
        end_time: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Backfill trades for ``symbol`` and pass each page to ``consumer``.

        Pages are deduplicated across the run when configured; a page left
        empty by deduplication is not delivered or counted. Fetch failures
        propagate, and the run's dedup state is dropped either way.
        """
        logger.info(f"Collecting historical trades for {symbol} from {start_time} to {end_time}")

        stats = {
            "data_type": "trades",
            "symbol": symbol,
            "start_time": start_time.isoformat() if start_time else None,
            "end_time": end_time.isoformat() if end_time else None,
            "records_collected": 0,
            "duplicates_dropped": 0,
            "pages": 0
        }

        async def _deliver(page: List[Trade]):
            if self.deduplicator is not None:
                unique = self.deduplicator.filter(page, symbol)
                stats["duplicates_dropped"] += len(page) - len(unique)
                page = unique
            if not page:
                return True

            stats["pages"] += 1
            stats["records_collected"] += len(page)
            keep_going = consumer(page)
            if inspect.isawaitable(keep_going):
                keep_going = await keep_going
            return keep_going

        try:
            result = await self.backfill_engine.backfill(symbol, start_time, _deliver, end_date=end_time)
        finally:
            if self.deduplicator is not None:
                self.deduplicator.clear_symbol(symbol)

        stats["reason"] = result.reason.value
        stats["frontier"] = result.frontier.isoformat() if result.frontier else None
        return stats

    async def collect_recent_trades(self, symbol: str) -> List[Trade]:
        """One page of the most recent trades (genuine, with ids)."""
        return await self.client.get_recent_trades(symbol)

    async def collect_recent_synthetic_trades(self, symbol: str) -> List[Trade]:
        """One page of candle-synthesized trades via the backfill engine."""
        collected: List[Trade] = []

        def _keep(page: List[Trade]) -> bool:
            collected.extend(page)
            return True

        result = await self.backfill_engine.backfill(symbol, None, _keep)
        if result.reason is not BackfillReason.SINGLE_PAGE:
            logger.debug(f"No recent ticks for {symbol} ({result.reason.value})")
        return collected

    def health_check(self) -> Dict[str, Any]:
        """Report order book staleness per tracked market."""
        books = {
            symbol: {
                "stale": self.order_book.is_stale(symbol),
                "nonce": self.order_book.last_nonce(symbol)
            }
            for symbol in self.order_book.symbols()
        }
        status = "degraded" if any(book["stale"] for book in books.values()) else "healthy"

        return {
            "status": status,
            "timestamp": utcnow().isoformat(),
            "order_books": books,
            "order_book_stats": dict(self.order_book.stats),
            "gateway_stats": dict(self.client.stats)
        }
