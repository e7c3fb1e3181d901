"""Bounded-concurrency enrichment of position listings.

Each record is joined independently under a semaphore so at most
``concurrency`` metadata lookups are in flight. A record whose join fails
is returned unenriched; the batch always comes back complete and in input
order.
"""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from pricestore.logging import get_logger
from pricestore.positions.enrichment import EnrichmentJoiner

logger = get_logger(__name__)


class BulkListProjector:
    """Maps position records through an EnrichmentJoiner.

    Args:
        joiner: The per-record enrichment.
        concurrency: Max joins in flight at once.
    """

    def __init__(self, joiner: EnrichmentJoiner, concurrency: int = 10) -> None:
        self._joiner = joiner
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def project(self, records: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
        """Enrich every record; output[i] corresponds to records[i]."""
        records = list(records)
        return list(await asyncio.gather(*(self._join_one(r) for r in records)))

    async def _join_one(self, record: Mapping[str, Any]) -> Mapping[str, Any]:
        async with self._semaphore:
            try:
                return await self._joiner.join(record)
            except Exception as e:
                logger.warning(
                    "position_enrichment_failed",
                    address=record.get("address") if isinstance(record, Mapping) else None,
                    error=str(e),
                )
                return dict(record) if isinstance(record, Mapping) else record
