"""Most-recent price per asset for O(1) latest-price lookups.

Written only as a side effect of PriceBook.append(); a sample only replaces
the cached entry when its timestamp is strictly greater, so a late,
out-of-order observation never regresses the latest price.
"""

from pricestore.exceptions import NoPrice
from pricestore.models import PriceSample


class LatestPriceCache:
    """Latest PriceSample for each address within one currency."""

    def __init__(self, currency: str) -> None:
        self._currency = currency
        self._latest: dict[str, PriceSample] = {}

    def __len__(self) -> int:
        return len(self._latest)

    def update(self, address: str, sample: PriceSample) -> bool:
        """Store the sample if it is newer than the cached one.

        Returns True when the cached entry changed.
        """
        current = self._latest.get(address)
        if current is not None and sample.timestamp <= current.timestamp:
            return False
        self._latest[address] = sample
        return True

    def get(self, address: str) -> PriceSample | None:
        """Return the latest sample for an address, or None if never observed."""
        return self._latest.get(address)

    def latest(self, address: str) -> PriceSample:
        """Return the latest sample for an address.

        Raises:
            NoPrice: If the address has never been observed in this currency.
        """
        sample = self._latest.get(address)
        if sample is None:
            raise NoPrice(
                f"No price for address: {address}",
                context={"currency": self._currency, "address": address},
            )
        return sample
