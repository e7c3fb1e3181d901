"""Shared data models for the price store.

CRITICAL: All prices and aggregates use Decimal. Never use float for prices or TVL.
"""

import time
from dataclasses import dataclass
from decimal import Decimal

# (timestamp_ms, price) -- the compact shape returned by range and window queries
PricePoint = tuple[int, Decimal]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class PriceSample:
    """A single price observation for one asset in one currency."""

    timestamp: int  # Unix milliseconds
    price: Decimal

    def as_point(self) -> PricePoint:
        return (self.timestamp, self.price)


@dataclass(frozen=True)
class AssetMetadata:
    """Token metadata for an asset address (ERC20 decimals and display name)."""

    address: str
    decimals: int
    name: str


@dataclass(frozen=True)
class ContractPrice:
    """Current price for a contract as reported by the upstream price API.

    ``address`` keeps the caller's original casing even though the upstream
    API reports addresses lowercased.
    """

    address: str
    timestamp: int  # Unix seconds, as reported upstream
    price: Decimal
