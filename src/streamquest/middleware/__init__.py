"""Middleware registration."""

from fastapi import FastAPI

from streamquest.config import Settings
from streamquest.middleware.error_handler import setup_error_handlers
from streamquest.middleware.logging import setup_logging
from streamquest.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, error handlers and request-scoped middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
