"""FastAPI application factory for the price store API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pricestore.api import routes
from pricestore.exceptions import PriceStoreError
from pricestore.queries import QueryService


def create_app(
    queries: QueryService | None = None,
    default_currency: str = "usd",
    lifespan: Any = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        queries: Query service backing the routes. May be attached later
                 via ``app.state.queries`` (main.py does this in the lifespan).
        default_currency: Currency used when a request does not name one.
        lifespan: Optional async context manager for startup/shutdown.

    Returns:
        Configured FastAPI application with routes and error mapping.
    """
    app = FastAPI(title="Price Store API", lifespan=lifespan)
    app.state.queries = queries
    app.state.default_currency = default_currency

    @app.exception_handler(PriceStoreError)
    async def _handle_price_store_error(
        request: Request, exc: PriceStoreError
    ) -> JSONResponse:
        routes.log.info(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return routes.error_response(exc)

    app.include_router(routes.router)
    return app
