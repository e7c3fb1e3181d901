"""Query surface consumed by the API and reporting layer.

Joins the price book, stats aggregation, and position enrichment behind one
service. Single-item queries (prices, a single position) raise typed errors
to the caller. Batch queries (TVL sums, position listings) always return a
complete result, substituting fallbacks for per-item faults.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from pricestore.models import PricePoint
from pricestore.positions.enrichment import EnrichmentJoiner
from pricestore.positions.projector import BulkListProjector
from pricestore.positions.registry import PositionRegistry
from pricestore.prices.book import PriceBook
from pricestore.stats.aggregation import AggregationEngine


class QueryService:
    """Read-side facade over prices, stats, and positions.

    Usage:
        queries = QueryService(book, aggregation, joiner, projector, registry)
        points = await queries.historical_prices("0xAA", 0, 1500)
    """

    def __init__(
        self,
        book: PriceBook,
        aggregation: AggregationEngine,
        joiner: EnrichmentJoiner,
        projector: BulkListProjector,
        registry: PositionRegistry,
    ) -> None:
        self._book = book
        self._aggregation = aggregation
        self._joiner = joiner
        self._projector = projector
        self._registry = registry

    # ──────────────────────────────────────────────
    # Prices
    # ──────────────────────────────────────────────

    async def historical_prices(
        self,
        address: str,
        start: int = 0,
        end: int | None = None,
        currency: str = "usd",
    ) -> list[PricePoint]:
        """(timestamp, price) points with start <= timestamp <= end; end defaults to now."""
        return await self._book.range_by_timestamp(currency, address, start, end)

    async def windowed_prices(
        self,
        address: str,
        start: int = 0,
        length: int = 1,
        currency: str = "usd",
    ) -> list[PricePoint]:
        """Up to ``length`` (timestamp, price) points from the first at or after ``start``."""
        return await self._book.window_by_timestamp(currency, address, start, length)

    async def latest_price(self, address: str, currency: str = "usd") -> PricePoint:
        """Most recent (timestamp, price) for an address."""
        return self._book.latest(currency, address).as_point()

    # ──────────────────────────────────────────────
    # TVL
    # ──────────────────────────────────────────────

    async def sum_tvl(self, addresses: Iterable[str], currency: str = "usd") -> str:
        return await self._aggregation.sum(addresses, currency, "tvl")

    async def total_tvl(self, currency: str = "usd") -> str:
        return await self._aggregation.total_sum(currency, "tvl")

    # ──────────────────────────────────────────────
    # Positions
    # ──────────────────────────────────────────────

    async def get_any_position(self, address: str) -> dict[str, Any]:
        return await self._registry.get_any(address)

    async def get_full_position_state(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Enrich a single position record with token metadata and GCR."""
        return await self._joiner.join(record)

    async def list_enriched(
        self, records: Iterable[Mapping[str, Any]]
    ) -> list[Mapping[str, Any]]:
        return await self._projector.project(records)

    async def list_active_positions(self) -> list[Mapping[str, Any]]:
        return await self._projector.project(self._registry.active.values())

    async def list_expired_positions(self) -> list[Mapping[str, Any]]:
        return await self._projector.project(self._registry.expired.values())
