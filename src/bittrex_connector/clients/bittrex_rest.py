"""Bittrex REST API client for market data and backfill pages."""

import asyncio
import functools
import json
import logging
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

import aiohttp

from ..config.settings import BittrexConfig, RetryConfig
from ..exceptions import InvalidArgument, TransportFailure
from ..models import Candle, Currency, Market, OrderBookSnapshot, Ticker, Trade
from ..period_codec import to_token
from ..utils.retry import exponential_backoff
from ..utils.timestamps import ensure_utc, utcnow
from .parsers import (
    parse_candle,
    parse_currency,
    parse_market,
    parse_order_book,
    parse_ticker,
    parse_trade,
    unwrap_envelope,
)

logger = logging.getLogger(__name__)

_decimal_loads = functools.partial(json.loads, parse_float=Decimal)


class BittrexRESTClient:
    """
    Bittrex public REST API client.

    Retries transient HTTP failures with exponential backoff; anything still
    failing surfaces as TransportFailure. Account endpoints need request
    signing and are not exposed here.
    """

    def __init__(
        self,
        config: BittrexConfig,
        retry_config: RetryConfig,
        tick_interval_seconds: int = 60
    ):
        self.config = config
        self.retry_config = retry_config
        self.tick_interval_seconds = tick_interval_seconds
        self.session: Optional[aiohttp.ClientSession] = None
        self.rate_limiter = RateLimiter(config.rate_limit_requests_per_minute)

        self.endpoints = {
            'market_summary': '/public/getmarketsummary',
            'market_summaries': '/public/getmarketsummaries',
            'order_book': '/public/getorderbook',
            'market_history': '/public/getmarkethistory',
            'currencies': '/public/getcurrencies',
            'markets': '/public/getmarkets',
            'ticks': '/pub/market/GetTicks'
        }

        self.stats = {
            'requests': 0,
            'failures': 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    async def _http_get(self, url: str, params: Dict[str, Any]) -> Any:
        """Rate-limited GET with retry; returns the decoded JSON body."""
        if not self.session:
            raise RuntimeError("Client not initialized. Use async context manager.")

        await self.rate_limiter.acquire()

        async def _request():
            async with self.session.get(url, params=params) as response:
                if response.status == 429:
                    retry_after = int(response.headers.get('Retry-After', 60))
                    logger.warning(f"Rate limit exceeded, waiting {retry_after}s")
                    await asyncio.sleep(retry_after)
                    raise aiohttp.ClientResponseError(
                        request_info=response.request_info,
                        history=response.history,
                        status=response.status,
                        message="Rate limit exceeded"
                    )

                response.raise_for_status()
                return await response.json(loads=_decimal_loads, content_type=None)

        self.stats['requests'] += 1
        try:
            return await exponential_backoff(
                _request,
                max_attempts=self.retry_config.max_attempts,
                initial_delay=self.retry_config.initial_backoff_seconds,
                max_delay=self.retry_config.max_backoff_seconds,
                backoff_factor=self.retry_config.backoff_multiplier,
                jitter=self.retry_config.jitter,
                exceptions=(aiohttp.ClientError, asyncio.TimeoutError)
            )
        except aiohttp.ClientResponseError as e:
            self.stats['failures'] += 1
            raise TransportFailure(f"HTTP {e.status} from {url}: {e.message}", endpoint=url, status=e.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.stats['failures'] += 1
            raise TransportFailure(f"Request to {url} failed: {e}", endpoint=url) from e

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        base_url: Optional[str] = None
    ) -> Any:
        """GET an endpoint and unwrap the Bittrex response envelope."""
        url = f"{base_url or self.config.rest_base_url}{endpoint}"
        payload = await self._http_get(url, params or {})
        return unwrap_envelope(payload, endpoint)

    async def get_ticker(self, symbol: str) -> Ticker:
        """Get the market summary for one market."""
        result = await self._make_request(self.endpoints['market_summary'], {'market': symbol})
        if not result:
            raise TransportFailure(f"Empty market summary for {symbol}", endpoint=self.endpoints['market_summary'])
        return parse_ticker(symbol, result[0])

    async def get_tickers(self) -> Dict[str, Ticker]:
        """Get market summaries for every market, keyed by market name."""
        result = await self._make_request(self.endpoints['market_summaries'])
        tickers = {}
        for entry in result or []:
            symbol = entry.get('MarketName')
            tickers[symbol] = parse_ticker(symbol, entry)
        return tickers

    async def get_order_book(self, symbol: str, max_count: Optional[int] = None) -> OrderBookSnapshot:
        """Get an order book snapshot (both sides)."""
        max_count = max_count or self.config.order_book_depth
        params = {
            'market': symbol,
            'type': 'both',
            'limit_bids': max_count,
            'limit_asks': max_count
        }

        logger.debug(f"Fetching order book for {symbol}")
        result = await self._make_request(self.endpoints['order_book'], params)
        snapshot = parse_order_book(symbol, result or {}, max_count=max_count)
        logger.info(f"Retrieved order book for {symbol} with {len(snapshot.bids)} bids and {len(snapshot.asks)} asks")
        return snapshot

    async def get_recent_trades(self, symbol: str) -> List[Trade]:
        """Get the latest trades for a market."""
        result = await self._make_request(self.endpoints['market_history'], {'market': symbol})
        trades = [parse_trade(entry) for entry in result or []]
        logger.debug(f"Retrieved {len(trades)} recent trades for {symbol}")
        return trades

    async def get_ticks(self, symbol: str, period_seconds: int, cache_bust: bool = False) -> List[Candle]:
        """Get every candle the v2.0 API returns for an interval."""
        params = {
            'marketName': symbol,
            'tickInterval': to_token(period_seconds)
        }
        if cache_bust:
            params['_'] = int(time.time() * 1000)

        result = await self._make_request(self.endpoints['ticks'], params, base_url=self.config.rest_v2_base_url)
        candles = [parse_candle(symbol, period_seconds, entry) for entry in result or []]
        logger.debug(f"Retrieved {len(candles)} {params['tickInterval']} ticks for {symbol}")
        return candles

    async def get_candles(
        self,
        symbol: str,
        period_seconds: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Candle]:
        """
        Get candles in [start_date, end_date].

        The endpoint has no window parameters, so the window is applied
        client side. Defaults to the last day.

        Raises:
            InvalidArgument: If ``limit`` is given or the period is unsupported
        """
        if limit is not None:
            raise InvalidArgument("Limit parameter not supported")

        end_date = ensure_utc(end_date) or utcnow()
        start_date = ensure_utc(start_date) or end_date - timedelta(days=1)

        candles = await self.get_ticks(symbol, period_seconds)
        return [c for c in candles if start_date <= c.timestamp <= end_date]

    async def fetch_backfill_page(self, symbol: str, frontier: Optional[datetime]) -> List[Candle]:
        """
        Page fetcher for TradeBackfillEngine.

        Bittrex has no trade history endpoint with a time parameter; the page
        is the tick series after ``frontier`` (all of it when None).
        """
        candles = await self.get_ticks(symbol, self.tick_interval_seconds, cache_bust=frontier is not None)
        if frontier is not None:
            frontier = ensure_utc(frontier)
            candles = [c for c in candles if c.timestamp > frontier]
        return candles

    async def get_currencies(self) -> Dict[str, Currency]:
        """Get the currency catalog keyed by uppercase currency name."""
        result = await self._make_request(self.endpoints['currencies'])
        currencies = {}
        for entry in result or []:
            currency = parse_currency(entry)
            currencies[currency.name] = currency
        return currencies

    async def get_markets(self) -> List[Market]:
        """Get market metadata."""
        result = await self._make_request(self.endpoints['markets'])
        return [parse_market(entry) for entry in result or []]

    async def get_symbols(self) -> List[str]:
        return [market.market_name for market in await self.get_markets()]


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_minute: int):
        self.requests_per_minute = requests_per_minute
        self.tokens = float(requests_per_minute)
        self.last_update = time.monotonic()
        self.lock = asyncio.Lock()

    async def acquire(self):
        """Acquire a token for making a request."""
        async with self.lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            rate_per_second = self.requests_per_minute / 60.0

            self.tokens = min(self.requests_per_minute, self.tokens + elapsed * rate_per_second)
            self.last_update = now

            if self.tokens >= 1:
                self.tokens -= 1
            else:
                wait_time = (1 - self.tokens) / rate_per_second
                await asyncio.sleep(wait_time)
                self.tokens = 0
                self.last_update = time.monotonic()
