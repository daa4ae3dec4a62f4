"""Deposit addresses, deposit history and withdrawal requests."""

import logging
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from .exceptions import InvalidArgument, LookupMiss, Unsupported
from .models import Currency, DepositDetails, WithdrawalRequest

logger = logging.getLogger(__name__)


DEPOSIT_HISTORY_ENDPOINT = "/account/getdeposithistory"
WITHDRAW_ENDPOINT = "/account/withdraw"


# Coin types needing both an address and a tag (memo/payment id)
TWO_FIELD_COIN_TYPES = (
    "BITSHAREX",
    "CRYPTO_NOTE_PAYMENTID",
    "LUMEN",
    "NEM",
    "NXT",
    "NXT_MS",
    "RIPPLE",
    "STEEM",
)

# Coin types needing only an address
ONE_FIELD_COIN_TYPES = (
    "ADA",
    "ANTSHARES",
    "BITCOIN",
    "BITCOIN_PERCENTAGE_FEE",
    "BITCOIN_STEALTH",
    "BITCOINEX",
    "BYTEBALL",
    "COUNTERPARTY",
    "ETH",
    "ETH_CONTRACT",
    "FACTOM",
    "LISK",
    "OMNI",
    "SIA",
    "WAVES",
    "WAVES_ASSET",
)


def request_new_address(symbol: str):
    """Bittrex hands out one deposit address per currency and cannot rotate it."""
    raise Unsupported(f"Bittrex does not support regenerating the {symbol} deposit address")


def _canonical(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(value.strip().upper() for value in values)


class DepositAddressClassifier:
    """
    Decides which deposit fields a currency needs.

    Lookups are case-insensitive; tables are fixed at construction.
    """

    def __init__(
        self,
        two_field_coin_types: Iterable[str] = TWO_FIELD_COIN_TYPES,
        one_field_coin_types: Iterable[str] = ONE_FIELD_COIN_TYPES
    ):
        self.two_field_coin_types = _canonical(two_field_coin_types)
        self.one_field_coin_types = _canonical(one_field_coin_types)

    def field_count(self, coin_type: str) -> int:
        """
        Number of deposit fields for ``coin_type`` (1 or 2).

        Raises:
            LookupMiss: If the coin type is in neither table
        """
        key = (coin_type or "").strip().upper()
        if key in self.two_field_coin_types:
            return 2
        if key in self.one_field_coin_types:
            return 1
        raise LookupMiss(f"Unknown coin type {coin_type!r}")

    def resolve(
        self,
        address_payload: Mapping[str, Any],
        currencies: Mapping[str, Currency],
        force_regenerate: bool = False
    ) -> Optional[DepositDetails]:
        """
        Build deposit details from a ``getdepositaddress`` result.

        Two-field coins deposit to the currency's static base address with the
        returned address as tag. Unknown currencies or coin types log a
        warning and return None.
        """
        symbol = str(address_payload.get("Currency") or "").upper()
        if force_regenerate:
            try:
                request_new_address(symbol)
            except Unsupported as e:
                logger.warning(f"{e}; using the existing address for {symbol}")

        returned_address = str(address_payload.get("Address") or "")

        coin = currencies.get(symbol)
        if coin is None:
            logger.warning(f"Unable to find {symbol} in existing list of coins.")
            return None

        try:
            fields = self.field_count(coin.coin_type)
        except LookupMiss as e:
            logger.warning(
                f"{e}: must be registered as requiring one or two fields for {symbol}"
            )
            return None

        if fields == 2:
            return DepositDetails(symbol=symbol, address=coin.base_address, address_tag=returned_address)
        return DepositDetails(symbol=symbol, address=returned_address)


def index_currencies(currencies: Iterable[Currency]) -> Dict[str, Currency]:
    """Key currencies by uppercase name."""
    return {currency.name.upper(): currency for currency in currencies}


def build_deposit_history_query(symbol: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
    """Endpoint and parameters for the deposit history, optionally for one currency."""
    params: Dict[str, Any] = {}
    if symbol:
        params['currency'] = symbol.upper()
    return DEPOSIT_HISTORY_ENDPOINT, params


def build_withdrawal(request: WithdrawalRequest) -> Tuple[str, Dict[str, Any]]:
    """
    Endpoint and query parameters for sending funds out.

    The tag goes out as ``paymentid`` and only when present.

    Raises:
        InvalidArgument: For a non-positive amount or a missing address
    """
    if request.amount <= 0:
        raise InvalidArgument(f"Withdrawal amount must be positive, got {request.amount}")
    if not (request.address or "").strip():
        raise InvalidArgument(f"Withdrawal of {request.currency} needs an address")

    params: Dict[str, Any] = {
        'currency': request.currency.upper(),
        'quantity': format(request.amount, 'f'),
        'address': request.address
    }
    if request.address_tag and request.address_tag.strip():
        params['paymentid'] = request.address_tag
    return WITHDRAW_ENDPOINT, params
