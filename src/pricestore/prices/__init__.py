"""Price layer -- per-currency price series, latest-price cache, persistence, and ingestion."""

from pricestore.prices.book import CurrencyPartition, PriceBook
from pricestore.prices.database import PriceDatabase
from pricestore.prices.history import PriceHistoryStore
from pricestore.prices.ingest import PriceIngestor
from pricestore.prices.latest import LatestPriceCache
from pricestore.prices.series import PriceSeries, PriceSeriesStore

__all__ = [
    "CurrencyPartition",
    "LatestPriceCache",
    "PriceBook",
    "PriceDatabase",
    "PriceHistoryStore",
    "PriceIngestor",
    "PriceSeries",
    "PriceSeriesStore",
]
