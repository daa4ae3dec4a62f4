"""Exchange-agnostic records produced by the Bittrex connector."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class BookSide(Enum):
    """Side of the order book a level belongs to."""
    BID = "bid"
    ASK = "ask"


class ChangeKind(Enum):
    """How a streamed level change is applied (wire values 0/1/2)."""
    NEW = 0
    REMOVE = 1
    UPDATE = 2


class TradeSide(Enum):
    """Aggressor side of a trade."""
    BUY = "buy"
    SELL = "sell"


class OrderStatus(Enum):
    """Normalized order state."""
    PENDING = "pending"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"


class OrderType(Enum):
    """Order types a caller may request."""
    LIMIT = "limit"
    MARKET = "market"


SYNTHETIC_TRADE_ID = -1


@dataclass(frozen=True)
class PriceLevel:
    """Aggregate resting size at one price."""
    price: Decimal
    quantity: Decimal


@dataclass(frozen=True)
class LevelChange:
    """A single price level change carried by a delta."""
    side: BookSide
    kind: ChangeKind
    price: Decimal
    quantity: Decimal


@dataclass
class Trade:
    """A trade, genuine or synthesized from a candle."""
    price: Decimal
    quantity: Decimal
    timestamp: datetime
    side: TradeSide
    trade_id: int = SYNTHETIC_TRADE_ID

    @property
    def is_buy(self) -> bool:
        return self.side is TradeSide.BUY

    @property
    def is_synthetic(self) -> bool:
        return self.trade_id == SYNTHETIC_TRADE_ID


@dataclass
class OrderBookSnapshot:
    """Complete point-in-time order book; the baseline for deltas."""
    symbol: str
    nonce: int
    bids: List[PriceLevel] = field(default_factory=list)
    asks: List[PriceLevel] = field(default_factory=list)


@dataclass
class OrderBookDelta:
    """Incremental, nonce-numbered set of level changes for one symbol."""
    symbol: str
    nonce: int
    changes: List[LevelChange] = field(default_factory=list)
    fills: List[Trade] = field(default_factory=list)


@dataclass
class Candle:
    """Aggregate OHLC bar. ``timestamp`` is the bar's open time.

    ``volume`` is in the market currency, ``base_volume`` in the base currency.
    """
    symbol: str
    period_seconds: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    base_volume: Decimal
    timestamp: datetime


@dataclass
class Ticker:
    """
    Top-of-book and 24h volume summary for a BASE-MARKET pair.

    ``volume`` is in the market currency (LTC for BTC-LTC); ``base_volume``
    is in the base currency (BTC), as in Candle.
    """
    symbol: str
    bid: Decimal
    ask: Decimal
    last: Decimal
    volume: Decimal
    base_volume: Decimal
    timestamp: Optional[datetime] = None


@dataclass
class OrderRecord:
    """Raw order fields as delivered by the gateway."""
    order_id: str
    quantity: Decimal
    quantity_remaining: Decimal
    limit_price: Optional[Decimal] = None
    average_fill_price: Optional[Decimal] = None
    cancelled: bool = False
    type_token: str = ""
    opened_time: Optional[datetime] = None
    exchange_symbol_pair: str = ""
    commission: Decimal = Decimal("0")


@dataclass
class OrderResult:
    """Normalized order state derived from an OrderRecord."""
    order_id: str
    symbol: str
    status: OrderStatus
    amount: Decimal
    filled_amount: Decimal
    price: Decimal
    average_price: Decimal
    is_buy: bool
    order_date: Optional[datetime] = None
    fees: Decimal = Decimal("0")
    fees_currency: Optional[str] = None
    message: str = ""


@dataclass
class OrderRequest:
    """Order placement request."""
    symbol: str
    amount: Decimal
    price: Decimal
    is_buy: bool
    order_type: OrderType = OrderType.LIMIT
    extra_parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Currency:
    """Currency metadata from the exchange catalog."""
    name: str
    full_name: str
    coin_type: str
    base_address: str = ""
    is_active: bool = True
    min_confirmations: int = 0
    tx_fee: Decimal = Decimal("0")
    notes: str = ""


@dataclass
class Market:
    """Market metadata. Bittrex uses an 8 decimal step size everywhere."""
    market_name: str
    base_currency: str
    market_currency: str
    min_trade_size: Decimal
    is_active: bool = True
    min_price: Decimal = Decimal("0.00000001")
    price_step_size: Decimal = Decimal("0.00000001")
    quantity_step_size: Decimal = Decimal("0.00000001")


@dataclass
class DepositDetails:
    """Where to send funds for a currency."""
    symbol: str
    address: str = ""
    address_tag: Optional[str] = None


@dataclass
class DepositTransaction:
    """One entry of the deposit history. Listed deposits are complete."""
    transaction_id: str
    symbol: str
    amount: Decimal
    address: str = ""
    blockchain_tx_id: str = ""
    timestamp: Optional[datetime] = None


@dataclass
class WithdrawalRequest:
    """Funds to send out; ``address_tag`` is the memo/payment id, if any."""
    currency: str
    amount: Decimal
    address: str
    address_tag: Optional[str] = None


@dataclass
class WithdrawalResult:
    withdrawal_id: str
    message: str = ""
