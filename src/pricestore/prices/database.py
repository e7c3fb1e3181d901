"""SQLite connection for persisted price samples.

One row per (currency, address, timestamp_ms). Prices are stored as TEXT
so Decimal values survive the round trip digit for digit. The file runs in
WAL mode, letting API reads proceed while ingestion commits.
"""

from pathlib import Path
from typing import Self

import aiosqlite

from pricestore.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS price_samples (
    currency TEXT NOT NULL,
    address TEXT NOT NULL,
    timestamp_ms INTEGER NOT NULL,
    price TEXT NOT NULL,
    PRIMARY KEY (currency, address, timestamp_ms)
);

CREATE INDEX IF NOT EXISTS idx_price_samples_pair_ts
    ON price_samples(currency, address, timestamp_ms);
"""

_MEMORY = ":memory:"


class PriceDatabase:
    """Owns the aiosqlite connection and the price_samples schema.

    ``db_path`` may be ":memory:" for a throwaway database.

    Usage:
        async with PriceDatabase("data/prices.db") as database:
            history = PriceHistoryStore(database)
    """

    def __init__(self, db_path: str = "data/prices.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection.

        Raises:
            RuntimeError: If connect() has not been awaited.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the file (creating parent directories) and apply the schema.

        Raises:
            RuntimeError: If the file was written by a newer schema version.
        """
        if self._db_path != _MEMORY:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        if self._db_path != _MEMORY:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_SCHEMA_SQL)
        await self._check_schema_version()
        await self._connection.commit()

        logger.info("price_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("price_db_closed", db_path=self._db_path)

    async def _check_schema_version(self) -> None:
        cursor = await self.db.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        stored = row[0] if row else None

        if stored is None:
            await self.db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            logger.info("schema_version_set", version=SCHEMA_VERSION)
        elif stored > SCHEMA_VERSION:
            await self.close()
            raise RuntimeError(
                f"{self._db_path} has schema version {stored}, "
                f"this release supports up to {SCHEMA_VERSION}"
            )

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
