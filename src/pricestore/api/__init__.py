"""HTTP API exposing the price store query surface."""

from pricestore.api.app import create_app

__all__ = ["create_app"]
