#!/usr/bin/env python3
"""Development server: serves the built player with the proxy embedded.

Usage: python dev_server.py [--static-dir dist] [--port 5173]
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Mount
from starlette.staticfiles import StaticFiles

from config import get_config
from middleware import ProxyMiddleware
from proxy import ProxyCore, close_proxy_core


@asynccontextmanager
async def _lifespan(app: Starlette):
    yield
    await close_proxy_core()


def create_dev_app(
    static_dir: Optional[Path | str] = None,
    core: Optional[ProxyCore] = None,
) -> Starlette:
    """Build a static-file app with the proxy middleware in front of it."""
    config = get_config()
    directory = Path(static_dir) if static_dir is not None else config.static_dir

    return Starlette(
        routes=[
            Mount("/", app=StaticFiles(directory=directory, html=True, check_dir=False)),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.cors_origins,
                allow_credentials=False,
                allow_methods=["POST", "OPTIONS"],
                allow_headers=["Content-Type"],
            ),
            Middleware(ProxyMiddleware, path=config.proxy_path, core=core),
        ],
        lifespan=_lifespan,
    )


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Audiobook player dev server")
    parser.add_argument("--static-dir", type=str, default=None, help="Built front-end directory")
    parser.add_argument("--host", type=str, default="localhost", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5173, help="Port to bind to")
    args = parser.parse_args()

    config = get_config()
    logging.basicConfig(level=config.log_level.upper())

    app = create_dev_app(args.static_dir)
    print(f"Dev server on http://{args.host}:{args.port} (proxy at {config.proxy_path})")
    uvicorn.run(app, host=args.host, port=args.port, log_level=config.log_level)


if __name__ == "__main__":
    main()
