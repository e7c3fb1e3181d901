"""Custom exceptions for the price store.

Every error carries an optional ``context`` dict of structured metadata so
callers can log it without parsing the message.

Propagation policy: single-item queries raise these to the caller as-is.
Batch operations (TVL sums, enriched listings) catch them per item and
substitute a fallback value instead.
"""

from typing import Any


class PriceStoreError(Exception):
    """Base exception for all price store errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class InvalidCurrency(PriceStoreError):
    """Raised when a currency symbol is not a configured partition.

    Always fatal to the call, even inside batch operations.
    """


class NoSeries(PriceStoreError):
    """Raised when no price series exists yet for an address."""


class NoPrice(PriceStoreError):
    """Raised when an address has never had a price observed."""


class InvalidInput(PriceStoreError):
    """Raised for negative start times, negative lengths, or empty address lists."""


class UpstreamFault(PriceStoreError):
    """Raised when an external collaborator (price API, metadata provider) fails."""


class UnknownPosition(PriceStoreError):
    """Raised when a position address is in neither the active nor the expired table."""
