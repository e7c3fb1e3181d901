"""Typed SQLite read/write abstraction for persisted price samples.

All SQL is isolated behind PriceHistoryStore. The in-memory PriceBook stays
the query path; this store only makes samples survive a restart.

CRITICAL: Prices are stored as TEXT in SQLite and restored as Decimal on read.
"""

from collections.abc import Iterable
from decimal import Decimal

from pricestore.logging import get_logger
from pricestore.models import PriceSample
from pricestore.prices.book import PriceBook
from pricestore.prices.database import PriceDatabase

logger = get_logger(__name__)


class PriceHistoryStore:
    """Async SQLite store for price samples keyed by (currency, address, timestamp)."""

    def __init__(self, database: PriceDatabase) -> None:
        self._database = database

    async def insert_samples(
        self, currency: str, address: str, samples: Iterable[PriceSample]
    ) -> int:
        """Insert samples, ignoring duplicates via INSERT OR IGNORE.

        Returns the number of actually inserted rows.
        """
        data = [
            (currency, address, sample.timestamp, str(sample.price))
            for sample in samples
        ]
        if not data:
            return 0

        cursor = await self._database.db.executemany(
            "INSERT OR IGNORE INTO price_samples "
            "(currency, address, timestamp_ms, price) "
            "VALUES (?, ?, ?, ?)",
            data,
        )
        await self._database.db.commit()

        inserted = cursor.rowcount
        logger.debug(
            "inserted_price_samples",
            currency=currency,
            address=address,
            total=len(data),
            inserted=inserted,
        )
        return inserted

    async def load_samples(
        self,
        currency: str,
        address: str,
        since_ms: int | None = None,
        until_ms: int | None = None,
    ) -> list[PriceSample]:
        """Query samples for a pair within an optional time range, oldest first."""
        conditions = ["currency = ?", "address = ?"]
        params: list = [currency, address]

        if since_ms is not None:
            conditions.append("timestamp_ms >= ?")
            params.append(since_ms)
        if until_ms is not None:
            conditions.append("timestamp_ms <= ?")
            params.append(until_ms)

        where = " AND ".join(conditions)
        cursor = await self._database.db.execute(
            f"SELECT timestamp_ms, price FROM price_samples "
            f"WHERE {where} ORDER BY timestamp_ms ASC",
            params,
        )
        rows = await cursor.fetchall()
        return [PriceSample(timestamp=row[0], price=Decimal(row[1])) for row in rows]

    async def get_pairs(self) -> list[tuple[str, str]]:
        """All (currency, address) pairs with at least one stored sample."""
        cursor = await self._database.db.execute(
            "SELECT DISTINCT currency, address FROM price_samples "
            "ORDER BY currency, address"
        )
        rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows]

    async def restore(self, book: PriceBook) -> int:
        """Load every stored sample into the book.

        Pairs whose currency is no longer configured are skipped.
        Returns the number of samples loaded.
        """
        loaded = 0
        for currency, address in await self.get_pairs():
            if currency not in book.currencies:
                logger.warning(
                    "skipping_unconfigured_currency",
                    currency=currency,
                    address=address,
                )
                continue
            samples = await self.load_samples(currency, address)
            loaded += await book.append_many(currency, address, samples)

        logger.info("price_history_restored", samples=loaded)
        return loaded
