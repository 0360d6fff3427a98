from __future__ import annotations

from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds fixed cross-origin headers to every HTTP response.

    Unlike Starlette's CORSMiddleware this does not answer pre-flight requests
    itself; the submission route replies to OPTIONS with an empty 200 and this
    middleware decorates it like any other response. The browser front end is
    served from arbitrary static hosts, hence the wildcard origin.
    """

    def __init__(
        self,
        app,
        *,
        allow_origin: str = "*",
        allow_credentials: bool = True,
        allow_methods: Iterable[str] = ("POST", "OPTIONS"),
        allow_headers: Iterable[str] = ("Content-Type",),
    ):
        super().__init__(app)
        self.allow_origin = allow_origin
        self.allow_credentials = allow_credentials
        self.allow_methods = ", ".join(allow_methods)
        self.allow_headers = ", ".join(allow_headers)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        if self.allow_credentials:
            response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Origin"] = self.allow_origin
        response.headers["Access-Control-Allow-Methods"] = self.allow_methods
        response.headers["Access-Control-Allow-Headers"] = self.allow_headers

        return response
