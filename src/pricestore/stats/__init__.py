"""Stats layer -- per-asset stats records and exact-decimal TVL aggregation."""

from pricestore.stats.aggregation import AggregationEngine
from pricestore.stats.store import InMemoryStatsStore, StatsStore

__all__ = ["AggregationEngine", "InMemoryStatsStore", "StatsStore"]
