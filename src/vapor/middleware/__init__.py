"""Middleware registration."""

from fastapi import FastAPI

from vapor.config import Settings
from vapor.middleware.cors import setup_cors
from vapor.middleware.error_handler import setup_error_handlers
from vapor.middleware.logging import setup_logging
from vapor.middleware.rate_limit import RateLimitMiddleware
from vapor.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so the request id is bound
    before rate limiting and CORS wraps everything, 429 responses included.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
