"""Entry point for the price store service.

Wires all components together and serves the FastAPI app via uvicorn.
Ingestion runs in the same asyncio event loop, started and stopped by the
app's lifespan.

Component wiring order (in build_components):
1. PriceBook (currency partitions)
2. InMemoryStatsStore, PositionRegistry, InMemoryAssetMetadataProvider
3. AggregationEngine (TVL)
4. EnrichmentJoiner + BulkListProjector (position listings)
5. QueryService (read facade)
6. CoinGeckoClient + PriceDatabase/PriceHistoryStore + PriceIngestor
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from pricestore.api.app import create_app
from pricestore.config import AppSettings
from pricestore.logging import get_logger, setup_logging
from pricestore.positions.enrichment import EnrichmentJoiner
from pricestore.positions.metadata import InMemoryAssetMetadataProvider
from pricestore.positions.projector import BulkListProjector
from pricestore.positions.registry import PositionRegistry
from pricestore.prices.book import PriceBook
from pricestore.prices.database import PriceDatabase
from pricestore.prices.history import PriceHistoryStore
from pricestore.prices.ingest import PriceIngestor
from pricestore.queries import QueryService
from pricestore.stats.aggregation import AggregationEngine
from pricestore.stats.store import InMemoryStatsStore
from pricestore.upstream.coingecko import CoinGeckoClient


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Does NOT open the database or start ingestion -- that happens in the
    lifespan.

    Returns:
        Dict mapping component names to instances.
    """
    currencies = settings.prices.currencies

    book = PriceBook(currencies)
    stats = InMemoryStatsStore(currencies)
    registry = PositionRegistry()
    metadata = InMemoryAssetMetadataProvider()

    aggregation = AggregationEngine(
        stats,
        registry.registered,
        currencies,
        concurrency=settings.concurrency.aggregation_concurrency,
    )
    joiner = EnrichmentJoiner(metadata)
    projector = BulkListProjector(
        joiner, concurrency=settings.concurrency.projection_concurrency
    )
    queries = QueryService(book, aggregation, joiner, projector, registry)

    client = CoinGeckoClient(settings.coingecko)
    database = PriceDatabase(settings.storage.db_path) if settings.storage.enabled else None
    history = PriceHistoryStore(database) if database is not None else None
    ingestor = PriceIngestor(
        client,
        book,
        settings.ingestion,
        history=history,
        currency=settings.prices.default_currency,
    )

    return {
        "book": book,
        "stats": stats,
        "registry": registry,
        "metadata": metadata,
        "aggregation": aggregation,
        "joiner": joiner,
        "projector": projector,
        "queries": queries,
        "client": client,
        "database": database,
        "history": history,
        "ingestor": ingestor,
    }


async def start_components(settings: AppSettings, components: dict[str, Any]) -> None:
    """Open storage, restore persisted prices, backfill, and start polling."""
    logger = get_logger("pricestore.main")

    if components["database"] is not None:
        await components["database"].connect()
        await components["history"].restore(components["book"])

    if settings.ingestion.enabled and settings.ingestion.addresses:
        await components["ingestor"].backfill(settings.ingestion.addresses)
        await components["ingestor"].start()
    else:
        logger.info("price_ingestion_disabled")


async def stop_components(components: dict[str, Any]) -> None:
    """Stop polling and release network and database resources."""
    await components["ingestor"].stop()
    await components["client"].close()
    if components["database"] is not None:
        await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start components on app startup and stop them on shutdown."""
    logger = get_logger("pricestore.main")
    settings: AppSettings = app.state.settings
    components: dict[str, Any] = app.state.components

    app.state.queries = components["queries"]
    await start_components(settings, components)
    logger.info("lifespan_started", currencies=settings.prices.currencies)

    yield

    await stop_components(components)
    logger.info("price_store_stopped")


async def run() -> None:
    """Run the price store service.

    When the API is enabled (API_ENABLED=true, the default) ingestion and
    the API share uvicorn's event loop. Otherwise only ingestion runs,
    until cancelled.
    """
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("pricestore.main")

    components = build_components(settings)

    if settings.api.enabled:
        app = create_app(
            default_currency=settings.prices.default_currency,
            lifespan=lifespan,
        )
        app.state.settings = settings
        app.state.components = components

        logger.info("starting_with_api", host=settings.api.host, port=settings.api.port)

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        logger.info("starting_without_api")
        await start_components(settings, components)
        try:
            await asyncio.Event().wait()
        finally:
            await stop_components(components)
            logger.info("price_store_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
