"""Exact-decimal aggregation of per-asset statistics (TVL).

Sums a named field across many assets using Decimal arithmetic with the
context precision raised to the maximum, so additions are exact no matter
how many assets or how many digits are involved. Per-address stats fetches
run concurrently under a semaphore; addition over exact decimals is
order-independent, so completion order never changes the result.

Fallback policy: a missing record, missing field, empty string, NaN or
infinite value, value outside the decimal exponent range, or a per-address
fetch/parse fault contributes zero. Only an unknown currency
aborts the sum.
"""

import asyncio
from collections.abc import Iterable
from decimal import MAX_PREC, Decimal, localcontext
from typing import Any

from pricestore.exceptions import InvalidCurrency
from pricestore.logging import get_logger
from pricestore.positions.registry import RegisteredAddressSet
from pricestore.stats.store import StatsStore

logger = get_logger(__name__)

ZERO = Decimal("0")


def _field_value(record: dict[str, Any], field: str) -> Decimal:
    """Read a decimal-string field from a stats record; absent or empty is zero.

    Raises:
        ValueError: If the value is NaN or infinite.
    """
    raw = record.get(field)
    if raw is None or raw == "":
        return ZERO
    value = Decimal(str(raw))
    if not value.is_finite():
        raise ValueError(f"non-finite {field} value: {raw}")
    return value


class AggregationEngine:
    """Sums stats fields across asset addresses.

    Args:
        stats: Source of per-address stats records.
        registered: Address universe used by total_sum().
        currencies: Configured currency symbols.
        concurrency: Max stats fetches in flight at once.
    """

    def __init__(
        self,
        stats: StatsStore,
        registered: RegisteredAddressSet,
        currencies: Iterable[str],
        concurrency: int = 10,
    ) -> None:
        self._stats = stats
        self._registered = registered
        self._currencies = frozenset(currencies)
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))

    async def sum(
        self,
        addresses: Iterable[str],
        currency: str = "usd",
        field: str = "tvl",
    ) -> str:
        """Exact sum of ``field`` over ``addresses`` as a decimal string.

        Raises:
            InvalidCurrency: If the currency is not configured.
        """
        if currency not in self._currencies:
            raise InvalidCurrency(
                f"invalid currency type: {currency}",
                context={"currency": currency},
            )

        addresses = list(addresses)
        tasks = [self._fetch_value(currency, address, field) for address in addresses]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        with localcontext() as ctx:
            ctx.prec = MAX_PREC
            total = ZERO
            for address, result in zip(addresses, results):
                if isinstance(result, InvalidCurrency):
                    raise result
                if isinstance(result, Exception):
                    logger.warning(
                        "stats_fetch_failed",
                        address=address,
                        currency=currency,
                        field=field,
                        error=str(result),
                    )
                    continue
                try:
                    total += result
                except ArithmeticError as e:
                    # exponent outside the context range
                    logger.warning(
                        "stats_value_out_of_range",
                        address=address,
                        currency=currency,
                        field=field,
                        error=repr(e),
                    )

        logger.debug(
            "stats_sum_complete",
            currency=currency,
            field=field,
            addresses=len(addresses),
            total=str(total),
        )
        return str(total)

    async def total_sum(self, currency: str = "usd", field: str = "tvl") -> str:
        """Sum ``field`` over every registered address."""
        return await self.sum(self._registered.values(), currency, field)

    async def _fetch_value(self, currency: str, address: str, field: str) -> Decimal:
        async with self._semaphore:
            record = await self._stats.get_or_create(currency, address)
        return _field_value(record, field)
