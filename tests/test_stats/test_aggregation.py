"""Tests for InMemoryStatsStore and AggregationEngine.

Tests verify:
- get_or_create is idempotent and lazily creates empty records
- sum() is exact over decimal strings and treats missing values as zero
- the result does not depend on the concurrency bound
- per-address faults contribute zero, unknown currency aborts
- total_sum() equals sum() over the registered set
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from pricestore.exceptions import InvalidCurrency, UpstreamFault
from pricestore.positions.registry import RegisteredAddressSet
from pricestore.stats.aggregation import AggregationEngine
from pricestore.stats.store import InMemoryStatsStore, StatsStore


@pytest.fixture
def registered() -> RegisteredAddressSet:
    return RegisteredAddressSet(["a1", "a2", "a3"])


@pytest.fixture
def engine(stats: InMemoryStatsStore, registered: RegisteredAddressSet) -> AggregationEngine:
    return AggregationEngine(stats, registered, ["usd", "eth"], concurrency=2)


class TestInMemoryStatsStore:
    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, stats: InMemoryStatsStore) -> None:
        first = await stats.get_or_create("usd", "a1")
        second = await stats.get_or_create("usd", "a1")
        assert first is second
        assert first == {"address": "a1"}

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, stats: InMemoryStatsStore) -> None:
        await stats.update("usd", "a1", tvl="100")
        record = await stats.update("usd", "a1", tvm="5")
        assert record == {"address": "a1", "tvl": "100", "tvm": "5"}

    @pytest.mark.asyncio
    async def test_unknown_currency(self, stats: InMemoryStatsStore) -> None:
        with pytest.raises(InvalidCurrency):
            await stats.get_or_create("gbp", "a1")

    def test_satisfies_protocol(self, stats: InMemoryStatsStore) -> None:
        assert isinstance(stats, StatsStore)


class TestSum:
    @pytest.mark.asyncio
    async def test_documented_example(
        self, engine: AggregationEngine, stats: InMemoryStatsStore
    ) -> None:
        await stats.update("usd", "a1", tvl="100")
        await stats.update("usd", "a2", tvl="250.5")
        assert await engine.sum(["a1", "a2", "a3"], "usd") == "350.5"
        # a3 was lazily created as a side effect
        assert stats.has("usd", "a3")

    @pytest.mark.asyncio
    async def test_empty_list_is_zero(self, engine: AggregationEngine) -> None:
        assert await engine.sum([], "usd") == "0"

    @pytest.mark.asyncio
    async def test_empty_string_field_is_zero(
        self, engine: AggregationEngine, stats: InMemoryStatsStore
    ) -> None:
        await stats.update("usd", "a1", tvl="")
        await stats.update("usd", "a2", tvl="7")
        assert await engine.sum(["a1", "a2"], "usd") == "7"

    @pytest.mark.asyncio
    async def test_exact_beyond_default_precision(
        self, engine: AggregationEngine, stats: InMemoryStatsStore
    ) -> None:
        """Sums exceed the 28-digit default Decimal context without rounding."""
        big = "123456789012345678901234567890.000000000000000001"
        await stats.update("usd", "a1", tvl=big)
        await stats.update("usd", "a2", tvl=big)
        assert await engine.sum(["a1", "a2"], "usd") == (
            "246913578024691357802469135780.000000000000000002"
        )

    @pytest.mark.asyncio
    async def test_no_float_drift_over_many_assets(
        self, stats: InMemoryStatsStore, registered: RegisteredAddressSet
    ) -> None:
        addresses = [f"a{i}" for i in range(1000)]
        for address in addresses:
            await stats.update("usd", address, tvl="0.1")
        engine = AggregationEngine(stats, registered, ["usd"], concurrency=7)
        assert await engine.sum(addresses, "usd") == "100.0"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [1, 2, 5, 50])
    async def test_independent_of_concurrency(
        self,
        stats: InMemoryStatsStore,
        registered: RegisteredAddressSet,
        concurrency: int,
    ) -> None:
        addresses = [f"a{i}" for i in range(20)]
        for i, address in enumerate(addresses):
            await stats.update("usd", address, tvl=f"{i}.{i}")
        engine = AggregationEngine(stats, registered, ["usd"], concurrency=concurrency)
        assert await engine.sum(addresses, "usd") == "195.95"

    @pytest.mark.asyncio
    async def test_concurrency_bound_is_respected(
        self, registered: RegisteredAddressSet
    ) -> None:
        in_flight = 0
        peak = 0

        async def _get_or_create(currency: str, address: str) -> dict:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return {"tvl": "1"}

        slow_stats = AsyncMock()
        slow_stats.get_or_create = _get_or_create
        engine = AggregationEngine(slow_stats, registered, ["usd"], concurrency=3)

        assert await engine.sum([f"a{i}" for i in range(12)], "usd") == "12"
        assert peak <= 3

    @pytest.mark.asyncio
    async def test_fetch_fault_contributes_zero(
        self, registered: RegisteredAddressSet
    ) -> None:
        async def _get_or_create(currency: str, address: str) -> dict:
            if address == "bad":
                raise UpstreamFault("stats backend timeout")
            return {"tvl": "10"}

        flaky_stats = AsyncMock()
        flaky_stats.get_or_create = _get_or_create
        engine = AggregationEngine(flaky_stats, registered, ["usd"])

        assert await engine.sum(["a1", "bad", "a2"], "usd") == "20"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "bad", ["not-a-number", "NaN", "sNaN", "Infinity", "-Infinity", "1e1000000"]
    )
    async def test_malformed_value_contributes_zero(
        self, engine: AggregationEngine, stats: InMemoryStatsStore, bad: str
    ) -> None:
        await stats.update("usd", "a1", tvl="100")
        await stats.update("usd", "a2", tvl=bad)
        assert await engine.sum(["a1", "a2"], "usd") == "100"

    @pytest.mark.asyncio
    async def test_unknown_currency_raises(self, engine: AggregationEngine) -> None:
        with pytest.raises(InvalidCurrency):
            await engine.sum(["a1"], "gbp")

    @pytest.mark.asyncio
    async def test_custom_field(
        self, engine: AggregationEngine, stats: InMemoryStatsStore
    ) -> None:
        await stats.update("eth", "a1", tvl="1", tvm="2.5")
        await stats.update("eth", "a2", tvm="0.5")
        assert await engine.sum(["a1", "a2"], "eth", field="tvm") == "3.0"


class TestTotalSum:
    @pytest.mark.asyncio
    async def test_matches_sum_over_registered(
        self,
        engine: AggregationEngine,
        stats: InMemoryStatsStore,
        registered: RegisteredAddressSet,
    ) -> None:
        await stats.update("usd", "a1", tvl="1.25")
        await stats.update("usd", "a3", tvl="2")
        await stats.update("usd", "unregistered", tvl="1000")

        total = await engine.total_sum("usd")
        assert total == "3.25"
        assert total == await engine.sum(registered.values(), "usd")

    @pytest.mark.asyncio
    async def test_follows_registry_changes(
        self,
        engine: AggregationEngine,
        stats: InMemoryStatsStore,
        registered: RegisteredAddressSet,
    ) -> None:
        await stats.update("usd", "a4", tvl="4")
        assert await engine.total_sum("usd") == "0"
        registered.add("a4")
        assert await engine.total_sum("usd") == "4"
