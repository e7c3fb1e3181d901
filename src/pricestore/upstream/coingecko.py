"""Async CoinGecko client for contract (token address) prices.

Fetches historic price ranges and current spot prices for ERC20 contracts.
CoinGecko identifies contracts by lowercase address, so every request is
lowercased and batch results are mapped back to the caller's casing.

Every transport or HTTP failure is translated into a single UpstreamFault
carrying the most descriptive message available: the API's own error
field, then the HTTP status text, then a generic fallback.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

import httpx

from pricestore.config import CoinGeckoSettings
from pricestore.exceptions import InvalidInput, UpstreamFault
from pricestore.logging import get_logger
from pricestore.models import ContractPrice, PriceSample

logger = get_logger(__name__)

_UNKNOWN_ERROR = "Unknown CoinGecko error"


def _error_message(response: httpx.Response) -> str:
    """Pick the most descriptive error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if body.get("error"):
            return str(body["error"])
        status = body.get("status")
        if isinstance(status, dict) and status.get("error_message"):
            return str(status["error_message"])
    return response.reason_phrase or _UNKNOWN_ERROR


def _to_decimal(value: Any) -> Decimal:
    # str() first so float JSON numbers keep their printed digits
    return Decimal(str(value))


class CoinGeckoClient:
    """Async client for the CoinGecko v3 REST API.

    Use via ``async with CoinGeckoClient(settings) as client:`` or call
    close() when done.
    """

    def __init__(self, settings: CoinGeckoSettings | None = None) -> None:
        self._settings = settings or CoinGeckoSettings()
        self._host = self._settings.host.rstrip("/")
        self._platform = self._settings.platform
        self._client = httpx.AsyncClient(
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(self._settings.request_timeout),
        )

    async def __aenter__(self) -> "CoinGeckoClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_historic_contract_prices(
        self,
        contract: str,
        from_ms: int,
        to_ms: int,
        currency: str = "usd",
    ) -> list[PriceSample]:
        """Historic prices for a contract between two millisecond timestamps.

        CoinGecko takes unix seconds, so both bounds are floored to seconds.
        Returned samples keep CoinGecko's millisecond timestamps.

        Raises:
            InvalidInput: If contract, currency, or either timestamp is missing.
            UpstreamFault: If the request fails or the response has no prices.
        """
        if not contract:
            raise InvalidInput("requires contract address")
        if not currency:
            raise InvalidInput("requires currency symbol")
        if not from_ms:
            raise InvalidInput("requires from timestamp")
        if not to_ms:
            raise InvalidInput("requires to timestamp")

        result = await self.call(
            f"coins/{self._platform}/contract/{contract.lower()}/market_chart/range",
            params={
                "vs_currency": currency,
                "from": from_ms // 1000,
                "to": to_ms // 1000,
            },
        )
        prices = result.get("prices") if isinstance(result, dict) else None
        if prices is None:
            raise UpstreamFault(
                "Something went wrong fetching coingecko prices!",
                context={"contract": contract, "currency": currency},
            )
        return [
            PriceSample(timestamp=int(timestamp), price=_to_decimal(price))
            for timestamp, price in prices
        ]

    async def get_contract_details(self, contract: str) -> dict:
        """Full CoinGecko coin record for a contract address."""
        return await self.call(f"coins/{self._platform}/contract/{contract.lower()}")

    async def get_current_price_by_contract(
        self, contract: str, currency: str = "usd"
    ) -> tuple[str, Decimal]:
        """Current price for a contract as (last_updated, price).

        Raises:
            UpstreamFault: If the request fails or no price exists in the currency.
        """
        details = await self.get_contract_details(contract)
        market_data = details.get("market_data") if isinstance(details, dict) else None
        current = market_data.get("current_price") if isinstance(market_data, dict) else None
        price = current.get(currency) if isinstance(current, dict) else None
        if price is None:
            raise UpstreamFault(
                f"No current price available for: {contract}",
                context={"contract": contract, "currency": currency},
            )
        try:
            return details.get("last_updated", ""), _to_decimal(price)
        except ArithmeticError as e:
            raise UpstreamFault(
                f"Malformed current price for: {contract}",
                context={"contract": contract, "currency": currency, "price": str(price)},
            ) from e

    async def get_contract_prices(
        self, addresses: Iterable[str], currency: str = "usd"
    ) -> list[ContractPrice]:
        """Spot prices for many contracts in a single request.

        Empty entries are dropped and addresses are deduplicated
        case-insensitively; the first casing seen is the one reported back.

        Raises:
            InvalidInput: If no non-empty address is supplied.
            UpstreamFault: If the request fails.
        """
        lookup: dict[str, str] = {}
        for address in addresses:
            if address and address.lower() not in lookup:
                lookup[address.lower()] = address
        if not lookup:
            raise InvalidInput("Must supply at least 1 contract address")

        result = await self.call(
            f"simple/token_price/{self._platform}",
            params={
                "contract_addresses": ",".join(lookup),
                "vs_currencies": currency,
                "include_last_updated_at": "true",
            },
        )

        if not isinstance(result, dict):
            raise UpstreamFault(
                "Unexpected coingecko token price response",
                context={"currency": currency, "body_type": type(result).__name__},
            )

        prices: list[ContractPrice] = []
        for key, value in result.items():
            entry = value if isinstance(value, dict) else {}
            price = entry.get(currency)
            updated_at = entry.get("last_updated_at")
            if price is None or not updated_at:
                logger.warning("coingecko_price_missing", contract=key, currency=currency)
                continue
            try:
                contract_price = ContractPrice(
                    address=lookup.get(key.lower(), key),
                    timestamp=int(updated_at),
                    price=_to_decimal(price),
                )
            except (ArithmeticError, ValueError, TypeError) as e:
                logger.warning(
                    "coingecko_price_malformed", contract=key, currency=currency, error=str(e)
                )
                continue
            prices.append(contract_price)
        return prices

    async def call(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a CoinGecko API path and return the decoded JSON body.

        Raises:
            UpstreamFault: On any transport error, non-2xx status, or invalid JSON.
        """
        url = f"{self._host}/{path}"
        query = dict(params or {})
        api_key = self._settings.api_key.get_secret_value()
        if api_key:
            query["x_cg_demo_api_key"] = api_key

        try:
            response = await self._client.get(url, params=query)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.warning(
                "coingecko_request_failed",
                path=path,
                status=e.response.status_code,
                error=message,
            )
            raise UpstreamFault(
                message,
                context={"path": path, "status": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            message = str(e) or _UNKNOWN_ERROR
            logger.warning("coingecko_request_failed", path=path, error=message)
            raise UpstreamFault(message, context={"path": path}) from e
