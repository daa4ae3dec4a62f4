"""Deserialization of Bittrex JSON payloads into typed connector records.

This is the only module that inspects untyped payloads; everything downstream
works on the dataclasses in ``bittrex_connector.models``.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..exceptions import TransportFailure
from ..models import (
    BookSide,
    Candle,
    ChangeKind,
    Currency,
    DepositTransaction,
    LevelChange,
    Market,
    OrderBookDelta,
    OrderBookSnapshot,
    OrderRecord,
    PriceLevel,
    Ticker,
    Trade,
    TradeSide,
    WithdrawalResult,
)
from ..utils.timestamps import parse_iso8601

logger = logging.getLogger(__name__)


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Coerce a JSON number or numeric string to Decimal."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise TransportFailure(f"Malformed decimal value {value!r}") from e


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def to_timestamp(value: Any) -> Optional[datetime]:
    """Epoch milliseconds (stream payloads) or ISO 8601 text (REST payloads)."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float, Decimal)):
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    try:
        return parse_iso8601(str(value))
    except ValueError as e:
        raise TransportFailure(f"Malformed timestamp {value!r}") from e


def unwrap_envelope(payload: Any, endpoint: str = "") -> Any:
    """
    Return the ``result`` of a ``{"success", "message", "result"}`` envelope.

    Raises:
        TransportFailure: If the envelope reports failure or is malformed
    """
    if not isinstance(payload, dict) or "success" not in payload:
        raise TransportFailure(f"Malformed response envelope from {endpoint}", endpoint=endpoint)
    if not to_bool(payload.get("success")):
        message = payload.get("message") or "unknown error"
        raise TransportFailure(f"Bittrex error from {endpoint}: {message}", endpoint=endpoint)
    return payload.get("result")


def _levels(entries: Optional[List[Dict[str, Any]]], price_key: str, max_count: Optional[int]) -> List[PriceLevel]:
    levels = []
    for entry in entries or []:
        levels.append(PriceLevel(
            price=to_decimal(entry[price_key]),
            quantity=to_decimal(entry["Quantity" if "Quantity" in entry else "Q"])
        ))
        if max_count is not None and len(levels) >= max_count:
            break
    return levels


def parse_order_book(symbol: str, payload: Dict[str, Any], max_count: Optional[int] = None) -> OrderBookSnapshot:
    """
    Parse a REST ``getorderbook`` result.

    REST snapshots carry no nonce, so the result is stamped with nonce 0: any
    streamed delta will be newer. Prefer ``parse_stream_snapshot`` when
    reconstructing a live book.
    """
    return OrderBookSnapshot(
        symbol=symbol,
        nonce=0,
        bids=_levels(payload.get("buy"), "Rate", max_count),
        asks=_levels(payload.get("sell"), "Rate", max_count),
    )


def parse_stream_snapshot(payload: Dict[str, Any]) -> OrderBookSnapshot:
    """Parse a streamed exchange state query: ``{"N", "M", "Z", "S"}``."""
    return OrderBookSnapshot(
        symbol=payload["M"],
        nonce=int(payload["N"]),
        bids=_levels(payload.get("Z"), "R", None),
        asks=_levels(payload.get("S"), "R", None),
    )


def _changes(entries: Optional[List[Dict[str, Any]]], side: BookSide) -> List[LevelChange]:
    changes = []
    for entry in entries or []:
        try:
            kind = ChangeKind(int(entry["TY"]))
        except (KeyError, ValueError) as e:
            raise TransportFailure(f"Malformed order book change {entry!r}") from e
        changes.append(LevelChange(
            side=side,
            kind=kind,
            price=to_decimal(entry["R"]),
            quantity=to_decimal(entry.get("Q")),
        ))
    return changes


def _side_from_token(token: Any) -> TradeSide:
    return TradeSide.BUY if "BUY" in str(token or "").upper() else TradeSide.SELL


def parse_delta(payload: Dict[str, Any]) -> OrderBookDelta:
    """Parse a streamed exchange state update: ``{"N", "M", "Z", "S", "f"}``."""
    fills = [
        Trade(
            price=to_decimal(fill.get("R")),
            quantity=to_decimal(fill.get("Q")),
            timestamp=to_timestamp(fill.get("T")),
            side=_side_from_token(fill.get("OT")),
        )
        for fill in payload.get("f") or []
    ]
    return OrderBookDelta(
        symbol=payload["M"],
        nonce=int(payload["N"]),
        changes=_changes(payload.get("Z"), BookSide.BID) + _changes(payload.get("S"), BookSide.ASK),
        fills=fills,
    )


def parse_candle(symbol: str, period_seconds: int, payload: Dict[str, Any]) -> Candle:
    """Parse a v2.0 tick: ``{"O","H","L","C","V","T","BV"}``."""
    return Candle(
        symbol=symbol,
        period_seconds=period_seconds,
        open=to_decimal(payload.get("O")),
        high=to_decimal(payload.get("H")),
        low=to_decimal(payload.get("L")),
        close=to_decimal(payload.get("C")),
        volume=to_decimal(payload.get("V")),
        base_volume=to_decimal(payload.get("BV")),
        timestamp=to_timestamp(payload.get("T")),
    )


def parse_trade(payload: Dict[str, Any]) -> Trade:
    """Parse a ``getmarkethistory`` entry."""
    return Trade(
        price=to_decimal(payload.get("Price")),
        quantity=to_decimal(payload.get("Quantity")),
        timestamp=to_timestamp(payload.get("TimeStamp")),
        side=_side_from_token(payload.get("OrderType")),
        trade_id=int(payload.get("Id") or 0),
    )


def parse_ticker(symbol: str, payload: Dict[str, Any]) -> Ticker:
    """Parse a market summary. ``Volume`` is market currency, ``BaseVolume`` base currency."""
    return Ticker(
        symbol=symbol,
        bid=to_decimal(payload.get("Bid")),
        ask=to_decimal(payload.get("Ask")),
        last=to_decimal(payload.get("Last")),
        volume=to_decimal(payload.get("Volume")),
        base_volume=to_decimal(payload.get("BaseVolume")),
        timestamp=to_timestamp(payload.get("TimeStamp")),
    )


def parse_order(payload: Dict[str, Any]) -> OrderRecord:
    """Parse an open, completed or single order payload."""
    type_token = payload.get("OrderType") or payload.get("Type") or ""
    opened = to_timestamp(payload.get("Opened")) or to_timestamp(payload.get("TimeStamp"))
    return OrderRecord(
        order_id=str(payload.get("OrderUuid") or ""),
        quantity=to_decimal(payload.get("Quantity")),
        quantity_remaining=to_decimal(payload.get("QuantityRemaining")),
        limit_price=to_decimal(payload.get("Limit"), default=None),
        average_fill_price=to_decimal(payload.get("PricePerUnit"), default=None),
        cancelled=to_bool(payload.get("CancelInitiated")),
        type_token=str(type_token),
        opened_time=opened,
        exchange_symbol_pair=str(payload.get("Exchange") or ""),
        commission=to_decimal(payload.get("Commission")),
    )


def parse_currency(payload: Dict[str, Any]) -> Currency:
    return Currency(
        name=str(payload.get("Currency") or "").upper(),
        full_name=str(payload.get("CurrencyLong") or ""),
        coin_type=str(payload.get("CoinType") or ""),
        base_address=str(payload.get("BaseAddress") or ""),
        is_active=to_bool(payload.get("IsActive")),
        min_confirmations=int(payload.get("MinConfirmation") or 0),
        tx_fee=to_decimal(payload.get("TxFee")),
        notes=str(payload.get("Notice") or ""),
    )


def parse_market(payload: Dict[str, Any]) -> Market:
    return Market(
        market_name=str(payload.get("MarketName") or "").upper(),
        base_currency=str(payload.get("BaseCurrency") or "").upper(),
        market_currency=str(payload.get("MarketCurrency") or "").upper(),
        min_trade_size=to_decimal(payload.get("MinTradeSize")),
        is_active=to_bool(payload.get("IsActive")),
    )


def parse_balances(entries: Optional[List[Dict[str, Any]]], available_only: bool = False) -> Dict[str, Decimal]:
    """
    Parse ``getbalances`` into amounts keyed by uppercase currency.

    ``Balance`` is the total held; ``Available`` excludes funds locked in open
    orders. Only positive amounts are kept.
    """
    key = "Available" if available_only else "Balance"
    amounts: Dict[str, Decimal] = {}
    for entry in entries or []:
        amount = to_decimal(entry.get(key))
        if amount > 0:
            amounts[str(entry.get("Currency") or "").upper()] = amount
    return amounts


def parse_deposit(payload: Dict[str, Any]) -> DepositTransaction:
    """Parse a ``getdeposithistory`` entry."""
    return DepositTransaction(
        transaction_id=str(payload.get("Id") or ""),
        symbol=str(payload.get("Currency") or "").upper(),
        amount=to_decimal(payload.get("Amount")),
        address=str(payload.get("CryptoAddress") or ""),
        blockchain_tx_id=str(payload.get("TxId") or ""),
        timestamp=to_timestamp(payload.get("LastUpdated")),
    )


def parse_withdrawal_result(payload: Any) -> WithdrawalResult:
    """Parse the ``withdraw`` result; the exchange answers with the withdrawal uuid."""
    if not isinstance(payload, dict) or not payload.get("uuid"):
        raise TransportFailure(f"Withdrawal result has no uuid: {payload!r}")
    return WithdrawalResult(
        withdrawal_id=str(payload["uuid"]),
        message=str(payload.get("msg") or ""),
    )
