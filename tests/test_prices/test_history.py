"""Tests for PriceDatabase and PriceHistoryStore against a temporary SQLite file."""

from decimal import Decimal
from pathlib import Path

import pytest

from pricestore.models import PriceSample
from pricestore.prices.book import PriceBook
from pricestore.prices.database import PriceDatabase
from pricestore.prices.history import PriceHistoryStore


def _sample(timestamp: int, price: str) -> PriceSample:
    return PriceSample(timestamp=timestamp, price=Decimal(price))


@pytest.fixture
async def database(tmp_path: Path):
    async with PriceDatabase(str(tmp_path / "nested" / "prices.db")) as db:
        yield db


@pytest.fixture
def history(database: PriceDatabase) -> PriceHistoryStore:
    return PriceHistoryStore(database)


class TestPriceDatabase:
    def test_db_before_connect_raises(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            PriceDatabase(str(tmp_path / "prices.db")).db

    @pytest.mark.asyncio
    async def test_creates_parent_directory(
        self, tmp_path: Path, database: PriceDatabase
    ) -> None:
        assert (tmp_path / "nested" / "prices.db").exists()

    @pytest.mark.asyncio
    async def test_in_memory(self) -> None:
        async with PriceDatabase(":memory:") as database:
            inserted = await PriceHistoryStore(database).insert_samples(
                "usd", "0xAA", [_sample(1000, "1")]
            )
            assert inserted == 1

    @pytest.mark.asyncio
    async def test_reopen_keeps_schema_version(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "prices.db")
        async with PriceDatabase(db_path):
            pass
        async with PriceDatabase(db_path) as database:
            cursor = await database.db.execute("SELECT version FROM schema_version")
            assert await cursor.fetchall() == [(1,)]

    @pytest.mark.asyncio
    async def test_newer_schema_version_rejected(self, tmp_path: Path) -> None:
        db_path = str(tmp_path / "prices.db")
        async with PriceDatabase(db_path) as database:
            await database.db.execute("INSERT INTO schema_version (version) VALUES (99)")
            await database.db.commit()

        database = PriceDatabase(db_path)
        with pytest.raises(RuntimeError, match="schema version 99"):
            await database.connect()
        with pytest.raises(RuntimeError):
            database.db


class TestPriceHistoryStore:
    @pytest.mark.asyncio
    async def test_insert_and_load_preserves_decimal(
        self, history: PriceHistoryStore
    ) -> None:
        samples = [_sample(1000, "400.123456789012345678"), _sample(2000, "420")]
        assert await history.insert_samples("usd", "0xAA", samples) == 2

        loaded = await history.load_samples("usd", "0xAA")
        assert loaded == samples
        assert str(loaded[0].price) == "400.123456789012345678"

    @pytest.mark.asyncio
    async def test_duplicates_ignored(self, history: PriceHistoryStore) -> None:
        await history.insert_samples("usd", "0xAA", [_sample(1000, "400")])
        inserted = await history.insert_samples(
            "usd", "0xAA", [_sample(1000, "999"), _sample(2000, "420")]
        )
        assert inserted == 1
        loaded = await history.load_samples("usd", "0xAA")
        assert [s.price for s in loaded] == [Decimal("400"), Decimal("420")]

    @pytest.mark.asyncio
    async def test_insert_empty_is_noop(self, history: PriceHistoryStore) -> None:
        assert await history.insert_samples("usd", "0xAA", []) == 0

    @pytest.mark.asyncio
    async def test_load_with_time_bounds(self, history: PriceHistoryStore) -> None:
        await history.insert_samples(
            "usd", "0xAA", [_sample(t, "1") for t in (1000, 2000, 3000)]
        )
        loaded = await history.load_samples("usd", "0xAA", since_ms=1500, until_ms=3000)
        assert [s.timestamp for s in loaded] == [2000, 3000]

    @pytest.mark.asyncio
    async def test_get_pairs(self, history: PriceHistoryStore) -> None:
        await history.insert_samples("usd", "0xBB", [_sample(1000, "1")])
        await history.insert_samples("eth", "0xAA", [_sample(1000, "1")])
        await history.insert_samples("usd", "0xAA", [_sample(1000, "1")])
        assert await history.get_pairs() == [
            ("eth", "0xAA"),
            ("usd", "0xAA"),
            ("usd", "0xBB"),
        ]

    @pytest.mark.asyncio
    async def test_restore_into_book(self, history: PriceHistoryStore) -> None:
        await history.insert_samples(
            "usd", "0xAA", [_sample(1000, "400"), _sample(2000, "420")]
        )
        await history.insert_samples("gbp", "0xAA", [_sample(1000, "300")])

        book = PriceBook(["usd"])
        assert await history.restore(book) == 2
        assert book.latest("usd", "0xAA") == _sample(2000, "420")
