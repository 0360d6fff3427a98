"""
Maps exceptions raised while handling a request to JSON responses.

Typed RelayError subclasses carry their own status and public message. Any
other exception is logged with its traceback and answered with a generic 500,
so internals never reach the client.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import InternalError, MethodNotAllowedError, RelayError

logger = logging.getLogger(__name__)


def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"Rejected {request.method} {request.url.path} ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def routing_error_handler(request: Request, exc: StarletteHTTPException):
    # Methods the router never matched (TRACE, CONNECT, ...) still get our 405 body
    if exc.status_code == 405:
        logger.info(f"Rejected {request.method} {request.url.path} (405): method not routed")
        return JSONResponse(
            status_code=405,
            content=MethodNotAllowedError().to_payload(),
            headers=getattr(exc, "headers", None),
        )
    return await http_exception_handler(request, exc)


def error_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, RelayError):
        return relay_error_handler(request, exc)
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content=InternalError().to_payload())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(StarletteHTTPException, routing_error_handler)
    app.add_exception_handler(Exception, error_handler)
