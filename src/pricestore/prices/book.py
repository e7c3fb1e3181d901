"""Currency-partitioned price book.

The book is the single entry point for price writes and reads. State is
split by currency symbol; each partition owns a PriceSeriesStore and a
LatestPriceCache. Only symbols configured at construction are accepted,
and the symbol is validated before any per-address state is touched.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from pricestore.exceptions import InvalidCurrency
from pricestore.logging import get_logger
from pricestore.models import PricePoint, PriceSample
from pricestore.prices.latest import LatestPriceCache
from pricestore.prices.series import PriceSeriesStore

logger = get_logger(__name__)


@dataclass
class CurrencyPartition:
    """Price state for a single currency."""

    currency: str
    history: PriceSeriesStore = field(init=False)
    latest: LatestPriceCache = field(init=False)

    def __post_init__(self) -> None:
        self.history = PriceSeriesStore(self.currency)
        self.latest = LatestPriceCache(self.currency)


class PriceBook:
    """Price series and latest prices for every configured currency.

    Partitions are created lazily on first use of a configured symbol.

    Usage:
        book = PriceBook(["usd"])
        await book.append("usd", "0xAA", PriceSample(1000, Decimal("400")))
        points = await book.range_by_timestamp("usd", "0xAA", 0, 1500)
    """

    def __init__(self, currencies: Iterable[str]) -> None:
        self._currencies = frozenset(currencies)
        self._partitions: dict[str, CurrencyPartition] = {}

    @property
    def currencies(self) -> frozenset[str]:
        return self._currencies

    def partition(self, currency: str) -> CurrencyPartition:
        """Return the partition for a configured currency.

        Raises:
            InvalidCurrency: If the symbol is not configured.
        """
        if currency not in self._currencies:
            raise InvalidCurrency(
                f"invalid currency type: {currency}",
                context={"currency": currency},
            )
        partition = self._partitions.get(currency)
        if partition is None:
            partition = CurrencyPartition(currency)
            self._partitions[currency] = partition
        return partition

    async def append(self, currency: str, address: str, sample: PriceSample) -> bool:
        """Add a sample to the series and refresh the latest price if it is newer.

        Returns True if the sample was new to the series.
        """
        partition = self.partition(currency)
        inserted = await partition.history.append(address, sample)
        if inserted:
            partition.latest.update(address, sample)
        return inserted

    async def append_many(
        self, currency: str, address: str, samples: Iterable[PriceSample]
    ) -> int:
        """Append several samples for one address. Returns the count actually stored."""
        inserted = 0
        for sample in samples:
            if await self.append(currency, address, sample):
                inserted += 1
        return inserted

    async def range_by_timestamp(
        self,
        currency: str,
        address: str,
        start: int = 0,
        end: int | None = None,
    ) -> list[PricePoint]:
        """(timestamp, price) points with start <= timestamp <= end, oldest first."""
        partition = self.partition(currency)
        samples = await partition.history.range_by_timestamp(address, start, end)
        return [sample.as_point() for sample in samples]

    async def window_by_timestamp(
        self,
        currency: str,
        address: str,
        start: int = 0,
        length: int = 1,
    ) -> list[PricePoint]:
        """Up to ``length`` (timestamp, price) points from the first at or after ``start``."""
        partition = self.partition(currency)
        samples = await partition.history.window_by_timestamp(address, start, length)
        return [sample.as_point() for sample in samples]

    def latest(self, currency: str, address: str) -> PriceSample:
        """Latest observed sample for an address.

        Raises:
            InvalidCurrency: If the symbol is not configured.
            NoPrice: If the address has never been observed.
        """
        return self.partition(currency).latest.latest(address)
