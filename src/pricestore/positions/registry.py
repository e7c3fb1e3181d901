"""Position records and the registered-address universe.

Position records are plain dicts in the shape produced by the contract
state readers, e.g.::

    {
        "address": "0x...",
        "tokenCurrency": "0x...",
        "collateralCurrency": "0x...",
        "totalTokensOutstanding": "1000000000000000000",
        "totalPositionCollateral": "1500000000000000000",
    }

Keys keep the on-chain reader's camelCase names since these records are
returned to API callers as-is.
"""

from collections.abc import Iterable, Iterator
from typing import Any

from pricestore.exceptions import UnknownPosition


class RegisteredAddressSet:
    """Insertion-ordered set of every address eligible for total aggregates."""

    def __init__(self, addresses: Iterable[str] = ()) -> None:
        self._addresses: dict[str, None] = dict.fromkeys(addresses)

    def add(self, address: str) -> None:
        self._addresses[address] = None

    def values(self) -> list[str]:
        return list(self._addresses)

    def __contains__(self, address: object) -> bool:
        return address in self._addresses

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._addresses))

    def __len__(self) -> int:
        return len(self._addresses)


class PositionTable:
    """Position records keyed by contract address."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._records: dict[str, dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return self._name

    async def has(self, address: str) -> bool:
        return address in self._records

    async def get(self, address: str) -> dict[str, Any]:
        record = self._records.get(address)
        if record is None:
            raise UnknownPosition(
                f"no {self._name} position for address {address}",
                context={"table": self._name, "address": address},
            )
        return record

    async def set(self, address: str, record: dict[str, Any]) -> None:
        self._records[address] = {**record, "address": address}

    async def delete(self, address: str) -> None:
        self._records.pop(address, None)

    def values(self) -> list[dict[str, Any]]:
        return list(self._records.values())


class PositionRegistry:
    """Active and expired position tables plus the registered-address set."""

    def __init__(self) -> None:
        self.active = PositionTable("active")
        self.expired = PositionTable("expired")
        self.registered = RegisteredAddressSet()

    async def register(self, address: str, record: dict[str, Any]) -> None:
        """Store an active position and add it to the registered set."""
        await self.active.set(address, record)
        self.registered.add(address)

    async def expire(self, address: str) -> None:
        """Move a position from the active to the expired table."""
        record = await self.active.get(address)
        await self.expired.set(address, record)
        await self.active.delete(address)

    async def get_any(self, address: str) -> dict[str, Any]:
        """Look up a position in the active table first, then the expired one.

        Raises:
            UnknownPosition: If the address is in neither table.
        """
        if await self.active.has(address):
            return await self.active.get(address)
        return await self.expired.get(address)
