"""Order placement requests and order query helpers."""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .exceptions import InvalidArgument
from .models import Market, OrderRecord, OrderRequest, OrderResult, OrderStatus, OrderType
from .order_state import resolve
from .utils.timestamps import ensure_utc, utcnow

logger = logging.getLogger(__name__)


BUY_LIMIT_ENDPOINT = "/market/buylimit"
SELL_LIMIT_ENDPOINT = "/market/selllimit"
CANCEL_ENDPOINT = "/market/cancel"


def _clamp(value: Decimal, minimum: Decimal, step: Decimal) -> Decimal:
    value = max(value, minimum)
    if step > 0:
        value = (value / step).to_integral_value(rounding=ROUND_DOWN) * step
    return value


def clamp_quantity(market: Market, amount: Decimal) -> Decimal:
    """Raise ``amount`` to the market minimum, then round it down to the quantity step."""
    return _clamp(amount, market.min_trade_size, market.quantity_step_size)


def clamp_price(market: Market, price: Decimal) -> Decimal:
    """Raise ``price`` to the market minimum, then round it down to the price step."""
    return _clamp(price, market.min_price, market.price_step_size)


def clamp_request(request: OrderRequest, market: Market) -> OrderRequest:
    """Copy of ``request`` with amount and price fitted to ``market``."""
    amount = clamp_quantity(market, request.amount)
    price = clamp_price(market, request.price)
    if amount != request.amount or price != request.price:
        logger.debug(
            f"Clamped {request.symbol} order from {request.amount}@{request.price} to {amount}@{price}"
        )
    return replace(request, amount=amount, price=price)


def build_limit_order(request: OrderRequest, market: Optional[Market] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Endpoint and query parameters for placing ``request``.

    Bittrex only accepts limit orders; parameters go in the query string.
    When ``market`` is given, amount and price are clamped to its minimums
    and step sizes first.

    Raises:
        InvalidArgument: For market orders or non-positive amount/price
    """
    if request.order_type is not OrderType.LIMIT:
        raise InvalidArgument(f"Order type {request.order_type.value} not supported")
    if request.amount <= 0:
        raise InvalidArgument(f"Order amount must be positive, got {request.amount}")
    if request.price <= 0:
        raise InvalidArgument(f"Order price must be positive, got {request.price}")
    if market is not None:
        request = clamp_request(request, market)

    endpoint = BUY_LIMIT_ENDPOINT if request.is_buy else SELL_LIMIT_ENDPOINT
    params: Dict[str, Any] = {
        'market': request.symbol,
        'quantity': format(request.amount, 'f'),
        'rate': format(request.price, 'f')
    }
    for key, value in request.extra_parameters.items():
        params[key] = str(value)
    return endpoint, params


def build_cancel_order(order_id: str) -> Tuple[str, Dict[str, Any]]:
    if not order_id:
        raise InvalidArgument("Order id is required to cancel an order")
    return CANCEL_ENDPOINT, {'uuid': order_id}


def pending_result(request: OrderRequest, order_id: str, market: Optional[Market] = None) -> OrderResult:
    """Result returned right after the exchange accepts an order.

    Pass the same ``market`` used to build the order so the amount reported
    is the clamped one that was sent.
    """
    if market is not None:
        request = clamp_request(request, market)
    return OrderResult(
        order_id=order_id,
        symbol=request.symbol,
        status=OrderStatus.PENDING,
        amount=request.amount,
        filled_amount=Decimal("0"),
        price=request.price,
        average_price=request.price,
        is_buy=request.is_buy,
        order_date=utcnow(),
    )


def resolve_orders(records: Iterable[OrderRecord]) -> List[OrderResult]:
    return [resolve(record) for record in records]


def filter_completed(
    records: Iterable[OrderRecord],
    after_date: Optional[datetime] = None
) -> List[OrderResult]:
    """
    Resolve completed orders, keeping those opened at or after ``after_date``.

    The order history endpoint takes no timestamp parameter, so the filter
    is applied here.
    """
    after_date = ensure_utc(after_date)
    orders = []
    for result in resolve_orders(records):
        order_date = ensure_utc(result.order_date)
        if after_date is None or (order_date is not None and order_date >= after_date):
            orders.append(result)
    logger.debug(f"Kept {len(orders)} completed orders after {after_date}")
    return orders
