"""Per-asset statistics records consumed by TVL aggregation.

Records are owned by external accounting logic; this module only defines
the shape the aggregation layer relies on plus an in-memory implementation.
A record is a plain dict, e.g. ``{"address": "0xAA", "tvl": "100.5"}``.
Fields that accounting has not written yet are simply absent.
"""

import asyncio
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from pricestore.exceptions import InvalidCurrency
from pricestore.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class StatsStore(Protocol):
    """Protocol for stats record backends."""

    async def get_or_create(self, currency: str, address: str) -> dict[str, Any]:
        """Return the record for (currency, address), creating an empty one if absent.

        Repeated calls for the same key return the same logical record.
        """
        ...


class InMemoryStatsStore:
    """Dict-backed StatsStore partitioned by currency."""

    def __init__(self, currencies: Iterable[str]) -> None:
        self._records: dict[str, dict[str, dict[str, Any]]] = {
            currency: {} for currency in currencies
        }
        self._lock = asyncio.Lock()

    def _partition(self, currency: str) -> dict[str, dict[str, Any]]:
        partition = self._records.get(currency)
        if partition is None:
            raise InvalidCurrency(
                f"invalid currency type: {currency}",
                context={"currency": currency},
            )
        return partition

    async def get_or_create(self, currency: str, address: str) -> dict[str, Any]:
        partition = self._partition(currency)
        async with self._lock:
            record = partition.get(address)
            if record is None:
                record = {"address": address}
                partition[address] = record
                logger.debug("stats_record_created", currency=currency, address=address)
            return record

    async def update(self, currency: str, address: str, **fields: Any) -> dict[str, Any]:
        """Merge fields into the record, creating it first if needed."""
        record = await self.get_or_create(currency, address)
        record.update(fields)
        return record

    def has(self, currency: str, address: str) -> bool:
        return address in self._partition(currency)
