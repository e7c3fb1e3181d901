"""Position layer -- position records, metadata enrichment, and GCR."""

from pricestore.positions.enrichment import EnrichmentJoiner
from pricestore.positions.gcr import GcrResult, calc_gcr, try_calc_gcr
from pricestore.positions.metadata import AssetMetadataProvider, InMemoryAssetMetadataProvider
from pricestore.positions.projector import BulkListProjector
from pricestore.positions.registry import PositionRegistry, PositionTable, RegisteredAddressSet

__all__ = [
    "AssetMetadataProvider",
    "BulkListProjector",
    "EnrichmentJoiner",
    "GcrResult",
    "InMemoryAssetMetadataProvider",
    "PositionRegistry",
    "PositionTable",
    "RegisteredAddressSet",
    "calc_gcr",
    "try_calc_gcr",
]
