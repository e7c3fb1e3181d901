"""JSON API endpoints for price history, latest prices, TVL, and positions."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pricestore.exceptions import (
    InvalidCurrency,
    InvalidInput,
    NoPrice,
    NoSeries,
    PriceStoreError,
    UnknownPosition,
    UpstreamFault,
)
from pricestore.queries import QueryService

log = structlog.get_logger(__name__)

router = APIRouter()

_STATUS_BY_ERROR: dict[type[PriceStoreError], int] = {
    InvalidCurrency: 400,
    InvalidInput: 400,
    NoSeries: 404,
    NoPrice: 404,
    UnknownPosition: 404,
    UpstreamFault: 502,
}


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values (and tuples) to JSON-safe values."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_decimal_to_str(item) for item in obj]
    return obj


def error_response(error: PriceStoreError) -> JSONResponse:
    """Map a typed price store error onto an HTTP error response."""
    status_code = 500
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            status_code = code
            break
    return JSONResponse(content={"error": str(error)}, status_code=status_code)


def _queries(request: Request) -> QueryService:
    return request.app.state.queries


def _currency(request: Request, currency: str | None) -> str:
    return currency or request.app.state.default_currency


@router.get("/prices/{address}/history")
async def get_price_history(
    request: Request,
    address: str,
    start: int = 0,
    end: int | None = None,
    currency: str | None = None,
) -> JSONResponse:
    """Price points for an address with start <= timestamp <= end (end defaults to now).

    Returns:
        JSON array of [timestamp, price] pairs, oldest first.
    """
    points = await _queries(request).historical_prices(
        address, start, end, _currency(request, currency)
    )
    return JSONResponse(content=_decimal_to_str(points))


@router.get("/prices/{address}/window")
async def get_price_window(
    request: Request,
    address: str,
    start: int = 0,
    length: int = 1,
    currency: str | None = None,
) -> JSONResponse:
    """Up to ``length`` price points starting at the first at or after ``start``."""
    points = await _queries(request).windowed_prices(
        address, start, length, _currency(request, currency)
    )
    return JSONResponse(content=_decimal_to_str(points))


@router.get("/prices/{address}/latest")
async def get_latest_price(
    request: Request, address: str, currency: str | None = None
) -> JSONResponse:
    """Latest [timestamp, price] pair for an address."""
    point = await _queries(request).latest_price(address, _currency(request, currency))
    return JSONResponse(content=_decimal_to_str(point))


@router.post("/tvl")
async def post_sum_tvl(request: Request) -> JSONResponse:
    """Exact TVL sum over a caller-supplied address list.

    Expects JSON body with: addresses (list of strings), optional currency.
    """
    try:
        body = await request.json()
    except Exception:
        return JSONResponse(content={"error": "Invalid JSON body"}, status_code=400)

    addresses = body.get("addresses") if isinstance(body, dict) else None
    if not isinstance(addresses, list):
        return JSONResponse(
            content={"error": "Missing required field: addresses"}, status_code=400
        )

    currency = _currency(request, body.get("currency"))
    tvl = await _queries(request).sum_tvl(addresses, currency)
    return JSONResponse(content={"currency": currency, "tvl": tvl})


@router.get("/tvl/total")
async def get_total_tvl(request: Request, currency: str | None = None) -> JSONResponse:
    """Exact TVL sum over every registered position address."""
    currency = _currency(request, currency)
    tvl = await _queries(request).total_tvl(currency)
    return JSONResponse(content={"currency": currency, "tvl": tvl})


@router.get("/positions/active")
async def get_active_positions(request: Request) -> JSONResponse:
    """Active positions enriched with token metadata and GCR."""
    positions = await _queries(request).list_active_positions()
    return JSONResponse(content=_decimal_to_str(positions))


@router.get("/positions/expired")
async def get_expired_positions(request: Request) -> JSONResponse:
    """Expired positions enriched with token metadata and GCR."""
    positions = await _queries(request).list_expired_positions()
    return JSONResponse(content=_decimal_to_str(positions))


@router.get("/positions/{address}")
async def get_position(request: Request, address: str) -> JSONResponse:
    """A single position (active or expired), enriched."""
    queries = _queries(request)
    record = await queries.get_any_position(address)
    state = await queries.get_full_position_state(record)
    return JSONResponse(content=_decimal_to_str(state))
