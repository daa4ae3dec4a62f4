"""Cursor-driven paginated backfill of historical trade-like data."""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Union

from .models import Candle, Trade, TradeSide, SYNTHETIC_TRADE_ID
from .utils.timestamps import ensure_utc

logger = logging.getLogger(__name__)


PageRecord = Union[Candle, Trade]
PageFetcher = Callable[[str, Optional[datetime]], Awaitable[Sequence[PageRecord]]]
PageConsumer = Callable[[List[Trade]], Union[bool, Awaitable[bool]]]


class BackfillReason(Enum):
    """Why a backfill loop terminated."""
    END_OF_HISTORY = "end_of_history"
    CONSUMER_STOPPED = "consumer_stopped"
    SINGLE_PAGE = "single_page"
    END_DATE_REACHED = "end_date_reached"
    NO_PROGRESS = "no_progress"


@dataclass
class BackfillCursor:
    """Moving time boundary for one backfill run. Never persisted."""
    symbol: str
    frontier: Optional[datetime] = None

    def advance(self, timestamp: datetime) -> bool:
        """Move the frontier forward; returns False if it would move backwards."""
        if self.frontier is not None and timestamp <= self.frontier:
            return False
        self.frontier = timestamp
        return True


@dataclass
class BackfillResult:
    """Summary of a finished backfill run."""
    symbol: str
    reason: BackfillReason
    pages: int = 0
    records: int = 0
    frontier: Optional[datetime] = None


def synthesize_trade(candle: Candle) -> Trade:
    """
    Build a trade-shaped record from an aggregate bar.

    The exchange exposes no granular trade history, so each bar stands in for
    one trade: close as price, volume as quantity, open time as timestamp.
    The bar carries no aggressor side or trade id, so side is always BUY and
    the id is the sentinel -1. Deduplicate on (timestamp, price, quantity).
    """
    return Trade(
        price=candle.close,
        quantity=candle.volume,
        timestamp=candle.timestamp,
        side=TradeSide.BUY,
        trade_id=SYNTHETIC_TRADE_ID,
    )


def to_trades(records: Sequence[PageRecord]) -> List[Trade]:
    """Normalize a fetched page to trades, ascending by timestamp."""
    trades = [
        synthesize_trade(record) if isinstance(record, Candle) else record
        for record in records
    ]
    trades.sort(key=lambda trade: trade.timestamp)
    return trades


class TradeBackfillEngine:
    """
    Drives paginated historical retrieval through a moving cursor.

    With a start date the engine keeps fetching pages after the frontier until
    a page comes back empty, the consumer returns False, or the optional end
    date is reached. A page that cannot move the frontier forward ends the run
    with NO_PROGRESS. Without a start date it fetches the most recent page once.
    Fetch failures propagate; retrying is the gateway's job.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        page_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.fetch_page = fetch_page
        self.page_delay_seconds = page_delay_seconds
        self._sleep = sleep

    async def _next_page(self, cursor: BackfillCursor) -> List[Trade]:
        records = await self.fetch_page(cursor.symbol, cursor.frontier)
        return to_trades(records or [])

    async def backfill(
        self,
        symbol: str,
        start_date: Optional[datetime],
        consumer: PageConsumer,
        end_date: Optional[datetime] = None
    ) -> BackfillResult:
        """
        Stream pages to ``consumer`` until a terminal condition.

        Args:
            symbol: Exchange market name (e.g. BTC-ETH)
            start_date: Initial cursor frontier; None fetches one recent page
            consumer: Called with each sorted page; return False to stop
            end_date: Optional upper bound; records after it are not delivered

        Returns:
            BackfillResult with the terminal reason and counters
        """
        start_date = ensure_utc(start_date)
        end_date = ensure_utc(end_date)
        cursor = BackfillCursor(symbol=symbol, frontier=start_date)
        result = BackfillResult(symbol=symbol, reason=BackfillReason.END_OF_HISTORY)
        mode = "historical" if start_date is not None else "recent"

        logger.info(f"Starting {mode} backfill for {symbol} from {start_date or 'most recent'}")

        while True:
            page = await self._next_page(cursor)

            reached_end = False
            if end_date is not None:
                in_range = [trade for trade in page if trade.timestamp <= end_date]
                reached_end = len(in_range) < len(page)
                page = in_range

            if not page:
                result.reason = (
                    BackfillReason.END_DATE_REACHED if reached_end else BackfillReason.END_OF_HISTORY
                )
                break

            keep_going = consumer(page)
            if inspect.isawaitable(keep_going):
                keep_going = await keep_going

            result.pages += 1
            result.records += len(page)
            logger.debug(f"Delivered page {result.pages} for {symbol}: {len(page)} records")

            if not keep_going:
                result.reason = BackfillReason.CONSUMER_STOPPED
                break

            if start_date is None:
                result.reason = BackfillReason.SINGLE_PAGE
                break

            advanced = cursor.advance(page[-1].timestamp)

            if reached_end:
                result.reason = BackfillReason.END_DATE_REACHED
                break

            # Refetching the same frontier would return the same page forever
            if not advanced:
                logger.warning(
                    f"Page for {symbol} did not move the cursor past {cursor.frontier}; stopping"
                )
                result.reason = BackfillReason.NO_PROGRESS
                break

            await self._sleep(self.page_delay_seconds)

        result.frontier = cursor.frontier
        logger.info(
            f"Backfill for {symbol} finished ({result.reason.value}): "
            f"{result.pages} pages, {result.records} records"
        )
        return result

    async def iter_pages(
        self,
        symbol: str,
        start_date: Optional[datetime] = None
    ) -> AsyncIterator[List[Trade]]:
        """
        Yield pages lazily. Breaking out of the loop stops further fetches.
        """
        start_date = ensure_utc(start_date)
        cursor = BackfillCursor(symbol=symbol, frontier=start_date)

        while True:
            page = await self._next_page(cursor)
            if not page:
                return

            yield page

            if start_date is None:
                return

            if not cursor.advance(page[-1].timestamp):
                logger.warning(f"Page for {symbol} did not move the cursor past {cursor.frontier}; stopping")
                return
            await self._sleep(self.page_delay_seconds)
