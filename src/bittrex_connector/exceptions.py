"""Error taxonomy for the Bittrex connector."""


class ConnectorError(Exception):
    """Base class for all connector errors."""


class InvalidArgument(ConnectorError, ValueError):
    """Caller supplied input the exchange cannot accept. Never retried."""


class Unsupported(ConnectorError):
    """Operation not offered by the exchange."""


class LookupMiss(ConnectorError, KeyError):
    """Unknown coin or classification in a lookup table."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class TransportFailure(ConnectorError):
    """Any failure from the gateway: network, HTTP status or malformed payload."""

    def __init__(self, message: str, endpoint: str = "", status: int = 0):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status
