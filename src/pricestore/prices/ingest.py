"""Price ingestion -- pulls contract prices from CoinGecko into the price book.

Two entry points:
- backfill(): historic range per address, used once at startup.
- poll_once(): current spot prices for all addresses in one request,
  repeated by the background loop started with start().

Every sample goes through PriceBook.append(), so the latest-price cache is
maintained as a side effect. Samples new to the book are also written to
the SQLite history when one is attached.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pricestore.config import IngestionSettings
from pricestore.exceptions import PriceStoreError, UpstreamFault
from pricestore.logging import get_logger
from pricestore.models import PriceSample, now_ms
from pricestore.prices.book import PriceBook
from pricestore.prices.history import PriceHistoryStore
from pricestore.upstream.coingecko import CoinGeckoClient

logger = get_logger(__name__)


class PriceIngestor:
    """Fetches prices upstream and appends them to the price book.

    Usage:
        ingestor = PriceIngestor(client, book, settings.ingestion, history)
        await ingestor.backfill(addresses, "usd", from_ms, to_ms)
        await ingestor.start()
    """

    def __init__(
        self,
        client: CoinGeckoClient,
        book: PriceBook,
        settings: IngestionSettings,
        history: PriceHistoryStore | None = None,
        currency: str = "usd",
    ) -> None:
        self._client = client
        self._book = book
        self._settings = settings
        self._history = history
        self._currency = currency
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    # ──────────────────────────────────────────────
    # Background loop
    # ──────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        """Whether the background polling loop is active."""
        return self._running

    async def start(self) -> None:
        """Begin polling current prices in the background."""
        if self._running:
            logger.warning("price_ingestor_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "price_ingestor_started",
            poll_interval=self._settings.poll_interval,
            addresses=len(self._settings.addresses),
        )

    async def stop(self) -> None:
        """Stop the polling loop gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("price_ingestor_stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("price_ingestor_poll_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._settings.poll_interval)

    # ──────────────────────────────────────────────
    # Fetch operations
    # ──────────────────────────────────────────────

    async def poll_once(
        self,
        addresses: Iterable[str] | None = None,
        currency: str | None = None,
    ) -> int:
        """Fetch current prices for all addresses and append them.

        Returns the number of samples new to the book.
        """
        addresses = list(addresses if addresses is not None else self._settings.addresses)
        currency = currency or self._currency
        if not addresses:
            return 0

        prices = await self._fetch_with_retry(
            self._client.get_contract_prices, addresses, currency
        )

        inserted = 0
        for contract_price in prices:
            if contract_price.timestamp <= 0:
                logger.warning(
                    "price_without_update_time_skipped",
                    address=contract_price.address,
                    currency=currency,
                )
                continue
            # CoinGecko reports last_updated_at in seconds
            sample = PriceSample(
                timestamp=contract_price.timestamp * 1000,
                price=contract_price.price,
            )
            inserted += await self._record(currency, contract_price.address, [sample])

        logger.debug(
            "price_poll_complete",
            currency=currency,
            requested=len(addresses),
            received=len(prices),
            inserted=inserted,
        )
        return inserted

    async def backfill(
        self,
        addresses: Iterable[str],
        currency: str | None = None,
        from_ms: int | None = None,
        to_ms: int | None = None,
    ) -> int:
        """Fetch historic prices for each address over [from_ms, to_ms].

        Defaults to the configured backfill_days ending now. Without an
        explicit from_ms, an address that already has prices in the book
        (e.g. restored from SQLite) resumes just after its latest sample.
        An address whose fetch fails is logged and skipped so the rest still
        load. Returns the total number of samples new to the book.
        """
        currency = currency or self._currency
        to_ms = to_ms or now_ms()
        window_start = to_ms - self._settings.backfill_days * 86_400 * 1000
        latest = self._book.partition(currency).latest

        addresses = list(addresses)
        total = 0
        for i, address in enumerate(addresses, 1):
            start_ms = from_ms
            if start_ms is None:
                last = latest.get(address)
                start_ms = window_start if last is None else max(window_start, last.timestamp + 1)
            if start_ms >= to_ms:
                logger.debug("price_backfill_up_to_date", address=address, currency=currency)
                continue

            try:
                samples = await self._fetch_with_retry(
                    self._client.get_historic_contract_prices,
                    address,
                    start_ms,
                    to_ms,
                    currency,
                )
            except PriceStoreError as e:
                logger.warning(
                    "price_backfill_failed",
                    address=address,
                    currency=currency,
                    error=str(e),
                )
                continue

            inserted = await self._record(currency, address, samples)
            total += inserted
            logger.info(
                "price_backfill_progress",
                address=address,
                progress=f"{i}/{len(addresses)}",
                records_fetched=inserted,
            )

        logger.info("price_backfill_complete", addresses=len(addresses), samples=total)
        return total

    async def _record(
        self, currency: str, address: str, samples: Iterable[PriceSample]
    ) -> int:
        """Append samples to the book and persist the ones that were new."""
        new_samples = []
        for sample in samples:
            if await self._book.append(currency, address, sample):
                new_samples.append(sample)

        if new_samples and self._history is not None:
            await self._history.insert_samples(currency, address, new_samples)
        return len(new_samples)

    # ──────────────────────────────────────────────
    # Retry wrapper
    # ──────────────────────────────────────────────

    async def _fetch_with_retry(
        self, fetch_fn: Callable[..., Awaitable[Any]], *args: Any
    ) -> Any:
        """Call an upstream fetch with exponential backoff on UpstreamFault.

        Other errors (e.g. InvalidInput) are not retried. Re-raises on final
        failure.
        """
        max_retries = max(self._settings.max_retries, 1)
        base_delay = self._settings.retry_base_delay

        for attempt in range(max_retries):
            try:
                return await fetch_fn(*args)
            except UpstreamFault as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "fetch_failed_permanently",
                        error=str(e),
                        attempts=max_retries,
                    )
                    raise

                delay = base_delay * (2**attempt)
                logger.warning(
                    "fetch_retry",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        raise AssertionError("unreachable")
