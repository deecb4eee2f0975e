"""Pure ASGI middleware that answers the proxy route inside another app.

Only ``POST`` on exactly the proxy path is handled. Every other request,
preflight included, is passed through untouched to the wrapped app.
"""

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from config import get_config
from cors import with_cors
from models import MiddlewareOutcome, ProxyResult, extract_url
from proxy import ProxyCore, error_result, get_proxy_core

logger = logging.getLogger(__name__)


class ProxyMiddleware:
    """Embedded proxy handler for a dev server's middleware chain."""

    def __init__(
        self,
        app: ASGIApp,
        path: Optional[str] = None,
        core: Optional[ProxyCore] = None,
    ):
        self.app = app
        self.path = path or get_config().proxy_path
        self._core = core

    @property
    def core(self) -> ProxyCore:
        return self._core or get_proxy_core()

    def matches(self, scope: Scope) -> bool:
        return (
            scope["type"] == "http"
            and scope["method"] == "POST"
            and scope["path"] == self.path
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.dispatch(scope, receive, send)

    async def dispatch(self, scope: Scope, receive: Receive, send: Send) -> MiddlewareOutcome:
        """Offer a request to the proxy.

        Returns:
            NOT_HANDLED if the request was passed on to the wrapped app,
            HANDLED if the proxy wrote the response, ERROR if an unexpected
            failure was turned into a 500
        """
        if not self.matches(scope):
            await self.app(scope, receive, send)
            return MiddlewareOutcome.NOT_HANDLED

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            result = await self._handle(Request(scope, receive))
            await self._write(result, scope, receive, tracking_send)
            return MiddlewareOutcome.HANDLED
        except Exception:
            logger.exception(f"Error in proxy middleware on {scope['path']}")
            if not response_started:
                await self._write(
                    error_result(500, "Internal server error"), scope, receive, send
                )
            return MiddlewareOutcome.ERROR

    async def _handle(self, request: Request) -> ProxyResult:
        try:
            payload = await request.json()
        except ValueError:
            return error_result(400, "Invalid JSON")
        return await self.core.handle(extract_url(payload))

    @staticmethod
    async def _write(result: ProxyResult, scope: Scope, receive: Receive, send: Send) -> None:
        response = Response(
            content=result.body_bytes(),
            status_code=result.status,
            headers=with_cors(result.headers),
        )
        await response(scope, receive, send)
