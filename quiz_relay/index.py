"""
FastAPI application factory for the quiz relay.

``create_app`` wires the submission route, the health probe, the middleware
stack and the error handlers around an explicit Settings object, so tests can
build an app with any configuration they need.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import boto3
import watchtower
from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .config import Settings, load_settings
from .middleware.cors_headers import CORSHeadersMiddleware
from .middleware.error_handler import register_error_handlers
from .routes.submit import router as submit_router
from .routes.system import router as system_router
from .services.telegram_client import TelegramClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key"}

_cloudwatch_handler: Optional[logging.Handler] = None


def configure_logging(settings: Settings) -> None:
    """Set up root logging once; safe to call again with new settings."""
    global _cloudwatch_handler

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if not any(h.get_name() == "quiz_relay" for h in root.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        stream.set_name("quiz_relay")
        root.addHandler(stream)

    if settings.cloudwatch_log_group and _cloudwatch_handler is None:
        try:
            handler = watchtower.CloudWatchLogHandler(
                log_group_name=settings.cloudwatch_log_group,
                boto3_client=boto3.client("logs", region_name=settings.aws_region),
            )
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
            _cloudwatch_handler = handler
            logger.info(f"CloudWatch logging enabled (group: {settings.cloudwatch_log_group})")
        except Exception as e:
            logger.warning(f"Failed to initialize CloudWatch logging: {e}. Continuing with stream logging.")


def redact_headers(headers) -> dict:
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request, with credentials stripped from the header dump."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        logger.debug(f"Headers: {redact_headers(request.headers)}")
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        )
        return response


def create_app(
    settings: Optional[Settings] = None,
    *,
    telegram_client_factory: Optional[Callable[[Settings], TelegramClient]] = None,
) -> FastAPI:
    if settings is None:
        settings = load_settings()
    configure_logging(settings)

    app = FastAPI(title="Quiz Submission Relay")
    app.state.settings = settings
    app.state.telegram_client_factory = telegram_client_factory or TelegramClient.from_settings

    app.include_router(submit_router)
    app.include_router(system_router)
    register_error_handlers(app)

    # Added last runs first: request logging wraps the CORS decoration
    app.add_middleware(CORSHeadersMiddleware)
    if settings.log_requests:
        app.add_middleware(LoggingMiddleware)

    return app
