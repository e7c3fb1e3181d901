"""Per-asset chronological price series with O(log n) time lookups.

A PriceSeries keeps two parallel sorted columns (timestamps and prices) so
range and window queries are a bisect on the timestamp column followed by a
slice: O(log n + k) for k returned samples.

Insert policy, applied uniformly:
- A sample whose timestamp already exists is ignored (first write wins),
  matching INSERT OR IGNORE in the SQLite history table.
- A late sample with a new timestamp is merged into its sorted position.
Timestamps within a series are therefore always strictly increasing.
"""

import asyncio
from bisect import bisect_left, bisect_right
from decimal import Decimal

from pricestore.exceptions import InvalidInput, NoSeries
from pricestore.logging import get_logger
from pricestore.models import PriceSample, now_ms

logger = get_logger(__name__)


class PriceSeries:
    """Ordered price samples for one (currency, address) pair.

    Mutation happens only through insert(), which performs no awaits, so a
    concurrent reader on the same event loop never sees the timestamp and
    price columns out of step.
    """

    def __init__(self) -> None:
        self._timestamps: list[int] = []
        self._prices: list[Decimal] = []

    def __len__(self) -> int:
        return len(self._timestamps)

    @property
    def last(self) -> PriceSample | None:
        """The sample with the greatest timestamp, or None if empty."""
        if not self._timestamps:
            return None
        return PriceSample(self._timestamps[-1], self._prices[-1])

    def insert(self, sample: PriceSample) -> bool:
        """Insert a sample in timestamp order.

        Returns False when a sample with the same timestamp already exists.
        """
        idx = bisect_left(self._timestamps, sample.timestamp)
        if idx < len(self._timestamps) and self._timestamps[idx] == sample.timestamp:
            return False
        self._timestamps.insert(idx, sample.timestamp)
        self._prices.insert(idx, sample.price)
        return True

    def between(self, start: int, end: int) -> list[PriceSample]:
        """Samples with start <= timestamp <= end, oldest first."""
        lo = bisect_left(self._timestamps, start)
        hi = bisect_right(self._timestamps, end)
        return self._slice(lo, hi)

    def slice_from(self, start: int, length: int) -> list[PriceSample]:
        """Up to ``length`` consecutive samples from the first with timestamp >= start."""
        lo = bisect_left(self._timestamps, start)
        return self._slice(lo, lo + length)

    def _slice(self, lo: int, hi: int) -> list[PriceSample]:
        return [
            PriceSample(timestamp, price)
            for timestamp, price in zip(self._timestamps[lo:hi], self._prices[lo:hi])
        ]


class PriceSeriesStore:
    """All price series for a single currency, keyed by asset address.

    Series are created on the first appended sample for an address and are
    never removed. Appends are serialized by an asyncio.Lock so creating a
    brand-new series cannot race with a second append for the same address.
    """

    def __init__(self, currency: str) -> None:
        self._currency = currency
        self._series: dict[str, PriceSeries] = {}
        self._lock = asyncio.Lock()

    @property
    def currency(self) -> str:
        return self._currency

    def has(self, address: str) -> bool:
        return address in self._series

    def addresses(self) -> list[str]:
        return list(self._series)

    async def append(self, address: str, sample: PriceSample) -> bool:
        """Add a sample to the address's series, creating the series if needed.

        Returns True if the sample was stored, False if its timestamp was
        already present.
        """
        if sample.timestamp < 0:
            raise InvalidInput(
                "sample timestamp must be >= 0",
                context={"address": address, "timestamp": sample.timestamp},
            )

        async with self._lock:
            series = self._series.get(address)
            if series is None:
                series = PriceSeries()
                self._series[address] = series
                logger.debug(
                    "price_series_created",
                    currency=self._currency,
                    address=address,
                )
            inserted = series.insert(sample)

        if not inserted:
            logger.debug(
                "duplicate_price_sample_ignored",
                currency=self._currency,
                address=address,
                timestamp=sample.timestamp,
            )
        return inserted

    async def range_by_timestamp(
        self,
        address: str,
        start: int = 0,
        end: int | None = None,
    ) -> list[PriceSample]:
        """Samples with start <= timestamp <= end (both inclusive), oldest first.

        ``end`` defaults to the current time in milliseconds. An ``end``
        earlier than ``start`` yields an empty list.
        """
        if start < 0:
            raise InvalidInput("requires a start value >= 0", context={"start": start})
        if end is None:
            end = now_ms()
        return self._get(address).between(start, end)

    async def window_by_timestamp(
        self,
        address: str,
        start: int = 0,
        length: int = 1,
    ) -> list[PriceSample]:
        """Up to ``length`` samples beginning at the first with timestamp >= start."""
        if start < 0:
            raise InvalidInput("requires a start value >= 0", context={"start": start})
        if length < 0:
            raise InvalidInput("requires a length value >= 0", context={"length": length})
        return self._get(address).slice_from(start, length)

    def _get(self, address: str) -> PriceSeries:
        series = self._series.get(address)
        if series is None:
            raise NoSeries(
                f"no prices for address {address}",
                context={"currency": self._currency, "address": address},
            )
        return series
