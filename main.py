"""Audiobook CORS proxy - standalone FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_config
from cors import CORS_HEADERS, with_cors
from models import ProxyResult, extract_url
from proxy import close_proxy_core, error_result, get_proxy_core

logger = logging.getLogger(__name__)

ProxyHandler = Callable[[Any], Awaitable[ProxyResult]]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    config = get_config()
    print(f"Audiobook proxy starting on {config.host}:{config.port}...")

    yield

    print("Audiobook proxy shutting down...")
    await close_proxy_core()


app = FastAPI(
    title="Audiobook Proxy",
    description="CORS relay for the offline audiobook player",
    version="1.0.0",
    lifespan=lifespan,
)

# Preflight handling for browsers; proxy responses also set the headers themselves
_cors_origins = get_config().cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def _to_response(result: ProxyResult) -> Response:
    return Response(
        content=result.body_bytes(),
        status_code=result.status,
        headers=with_cors(result.headers),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Routing errors (unknown path, wrong method) in the proxy's JSON error shape."""
    message = "Method not allowed." if exc.status_code == 405 else str(exc.detail)
    result = error_result(exc.status_code, message)
    result.headers.update(exc.headers or {})
    return _to_response(result)


async def _proxy(request: Request, handler: ProxyHandler) -> Response:
    """Parse ``{"url": ...}`` from the body and run it through ``handler``."""
    try:
        try:
            payload = await request.json()
        except ValueError:
            return _to_response(error_result(400, "Invalid JSON"))

        result = await handler(extract_url(payload))
        return _to_response(result)
    except Exception:
        logger.exception(f"Proxy error on {request.url.path}")
        return _to_response(error_result(500, "Internal server error"))


# ============================================================================
# REST API Endpoints
# ============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return JSONResponse({"status": "ok"}, headers=CORS_HEADERS)


@app.post(get_config().proxy_path)
async def proxy_request(request: Request):
    """Relay an allow-listed URL.

    Request body:
        url: Target URL, must contain the allow-listed host

    Returns:
        Upstream body with its content type (audio as bytes, anything else
        as UTF-8 text), or a JSON error
    """
    return await _proxy(request, get_proxy_core().handle)


@app.post("/api/proxy-html")
async def proxy_html(request: Request):
    """Relay an allow-listed page, always as text/html."""
    return await _proxy(request, get_proxy_core().handle_html)


@app.post("/api/proxy-data")
async def proxy_data(request: Request):
    """Relay an allow-listed page or audio file.

    Audio keeps its upstream content type; other bodies are sent as text/html.
    """
    return await _proxy(request, get_proxy_core().handle_data)


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Audiobook CORS proxy")
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to",
    )
    args = parser.parse_args()

    config = get_config()
    logging.basicConfig(level=config.log_level.upper())

    # Override config with CLI args
    host = args.host or config.host
    port = args.port or config.port

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=config.debug,
        log_level=config.log_level,
    )
