"""Best-effort enrichment of position records with token metadata and GCR.

Two stages, each degrading instead of failing:
1. Look up token and collateral metadata. An unknown or failing lookup
   leaves that leg's decimals/name fields out of the result.
2. Compute the GCR from the enriched record. Any fault sets gcr to "0".
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from pricestore.logging import get_logger
from pricestore.models import AssetMetadata
from pricestore.positions.gcr import try_calc_gcr
from pricestore.positions.metadata import AssetMetadataProvider

logger = get_logger(__name__)


class EnrichmentJoiner:
    """Joins position records with asset metadata and a derived GCR."""

    def __init__(self, metadata: AssetMetadataProvider) -> None:
        self._metadata = metadata

    async def join(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` with tokenDecimals, collateralDecimals,
        tokenName, collateralName (when known) and gcr added.
        """
        token, collateral = await asyncio.gather(
            self._lookup(record.get("tokenCurrency")),
            self._lookup(record.get("collateralCurrency")),
        )

        state = dict(record)
        if token is not None:
            state["tokenDecimals"] = token.decimals
            state["tokenName"] = token.name
        if collateral is not None:
            state["collateralDecimals"] = collateral.decimals
            state["collateralName"] = collateral.name

        result = try_calc_gcr(state)
        if not result.ok:
            logger.debug(
                "gcr_unavailable",
                address=record.get("address"),
                error=str(result.error),
            )
        state["gcr"] = str(result.unwrap_or(0))
        return state

    async def _lookup(self, address: str | None) -> AssetMetadata | None:
        if not address:
            return None
        try:
            return await self._metadata.get(address)
        except Exception as e:
            logger.debug("token_metadata_unavailable", address=address, error=str(e))
            return None
