"""Asset metadata lookups (token decimals and display names)."""

from typing import Protocol, runtime_checkable

from pricestore.exceptions import UpstreamFault
from pricestore.models import AssetMetadata


@runtime_checkable
class AssetMetadataProvider(Protocol):
    """Protocol for token metadata sources.

    get() raises when the address is unknown; callers treat that as
    "metadata unavailable", not as a fatal error.
    """

    async def get(self, address: str) -> AssetMetadata:
        ...


class InMemoryAssetMetadataProvider:
    """Dict-backed AssetMetadataProvider."""

    def __init__(self, assets: list[AssetMetadata] | None = None) -> None:
        self._assets: dict[str, AssetMetadata] = {}
        for asset in assets or []:
            self.set(asset)

    def set(self, asset: AssetMetadata) -> None:
        self._assets[asset.address] = asset

    async def get(self, address: str) -> AssetMetadata:
        asset = self._assets.get(address)
        if asset is None:
            raise UpstreamFault(
                f"no token metadata for address {address}",
                context={"address": address},
            )
        return asset
