"""Bittrex gateway: REST transport and payload parsing."""
