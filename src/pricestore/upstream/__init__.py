"""Upstream price sources."""

from pricestore.upstream.coingecko import CoinGeckoClient

__all__ = ["CoinGeckoClient"]
