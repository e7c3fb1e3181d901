"""Shared test fixtures for the price store."""

import pytest

from pricestore.config import (
    AppSettings,
    ConcurrencySettings,
    IngestionSettings,
    PriceSettings,
    StorageSettings,
)
from pricestore.models import AssetMetadata
from pricestore.positions.enrichment import EnrichmentJoiner
from pricestore.positions.metadata import InMemoryAssetMetadataProvider
from pricestore.positions.projector import BulkListProjector
from pricestore.positions.registry import PositionRegistry
from pricestore.prices.book import PriceBook
from pricestore.queries import QueryService
from pricestore.stats.aggregation import AggregationEngine
from pricestore.stats.store import InMemoryStatsStore

TOKEN = "0xTOKEN"
COLLATERAL = "0xCOLLATERAL"


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (usd + eth partitions, no I/O)."""
    return AppSettings(
        log_level="DEBUG",
        prices=PriceSettings(currencies=["usd", "eth"]),
        concurrency=ConcurrencySettings(
            aggregation_concurrency=3,
            projection_concurrency=2,
        ),
        ingestion=IngestionSettings(
            enabled=False,
            max_retries=3,
            retry_base_delay=0.0,
        ),
        storage=StorageSettings(enabled=False),
    )


@pytest.fixture
def book() -> PriceBook:
    """Empty PriceBook with usd and eth partitions."""
    return PriceBook(["usd", "eth"])


@pytest.fixture
def metadata() -> InMemoryAssetMetadataProvider:
    """Metadata provider knowing an 18-decimal synthetic and a 6-decimal collateral."""
    return InMemoryAssetMetadataProvider(
        [
            AssetMetadata(address=TOKEN, decimals=18, name="Synthetic Gold"),
            AssetMetadata(address=COLLATERAL, decimals=6, name="USD Coin"),
        ]
    )


@pytest.fixture
def position_record() -> dict:
    """Position with 2 tokens outstanding backed by 3 USDC (GCR 1.5)."""
    return {
        "address": "0xPOSITION",
        "tokenCurrency": TOKEN,
        "collateralCurrency": COLLATERAL,
        "totalTokensOutstanding": str(2 * 10**18),
        "totalPositionCollateral": str(3 * 10**6),
    }


@pytest.fixture
def stats() -> InMemoryStatsStore:
    """Empty stats store with usd and eth partitions."""
    return InMemoryStatsStore(["usd", "eth"])


@pytest.fixture
def registry() -> PositionRegistry:
    return PositionRegistry()


@pytest.fixture
def queries(
    book: PriceBook,
    stats: InMemoryStatsStore,
    registry: PositionRegistry,
    metadata: InMemoryAssetMetadataProvider,
) -> QueryService:
    """QueryService wired over the in-memory book, stats, registry and metadata."""
    aggregation = AggregationEngine(stats, registry.registered, ["usd", "eth"], concurrency=3)
    joiner = EnrichmentJoiner(metadata)
    projector = BulkListProjector(joiner, concurrency=2)
    return QueryService(book, aggregation, joiner, projector, registry)
