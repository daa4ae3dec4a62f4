"""Derive normalized order state from raw order quantity fields."""

from decimal import Decimal
from typing import Optional

from .models import OrderRecord, OrderResult, OrderStatus


ZERO = Decimal("0")


def resolve_status(amount: Decimal, remaining: Decimal, cancelled: bool) -> OrderStatus:
    """
    Resolve the order status. First match wins:
    cancelled, fully filled, untouched, partially filled.

    Cancellation takes precedence over any filled quantity (cancel after a
    partial fill is still CANCELED).
    """
    filled = amount - remaining
    if cancelled:
        return OrderStatus.CANCELED
    if filled >= amount:
        return OrderStatus.FILLED
    if filled == ZERO:
        return OrderStatus.PENDING
    return OrderStatus.PARTIALLY_FILLED


def is_buy_type(type_token: Optional[str]) -> bool:
    """True when the order type token contains BUY (e.g. LIMIT_BUY)."""
    return "BUY" in (type_token or "").upper()


def fees_currency_from_pair(pair: Optional[str]) -> Optional[str]:
    """Commission is charged in the base currency of a BASE-MARKET pair."""
    if not pair or not pair.strip():
        return None
    parts = pair.split("-")
    if len(parts) == 2:
        return parts[0]
    return None


def resolve(record: OrderRecord) -> OrderResult:
    """Resolve a raw OrderRecord into an OrderResult. Pure."""
    amount = record.quantity
    filled = amount - record.quantity_remaining
    fill_price = record.average_fill_price or ZERO
    limit_price = record.limit_price

    # No fills yet means no meaningful average; the limit price stands in.
    if fill_price != ZERO:
        average_price = fill_price
    else:
        average_price = limit_price if limit_price is not None else ZERO
    price = limit_price if limit_price is not None else fill_price

    return OrderResult(
        order_id=record.order_id,
        symbol=record.exchange_symbol_pair,
        status=resolve_status(amount, record.quantity_remaining, record.cancelled),
        amount=amount,
        filled_amount=filled,
        price=price,
        average_price=average_price,
        is_buy=is_buy_type(record.type_token),
        order_date=record.opened_time,
        fees=record.commission,
        fees_currency=fees_currency_from_pair(record.exchange_symbol_pair),
    )
