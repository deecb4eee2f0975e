"""Serverless function entry point for the proxy.

Takes a Lambda/Vercel style event dict and returns
``{"statusCode", "headers", "body", "isBase64Encoded"}``.
"""

import asyncio
import json
import logging
from base64 import b64decode, b64encode
from typing import Any, Optional

from cors import CORS_HEADERS, JSON_HEADERS, with_cors
from models import ProxyResult, extract_url
from proxy import HttpxFetcher, ProxyCore, error_result

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Handle one proxy invocation."""
    return asyncio.run(handle_event(event))


async def handle_event(event: dict[str, Any], core: Optional[ProxyCore] = None) -> dict[str, Any]:
    """Async form of :func:`handler`. ``core`` replaces the per-call default."""
    method = (event.get("httpMethod") or event.get("method") or "").upper()

    if method == "OPTIONS":
        return {
            "statusCode": 204,
            "headers": dict(CORS_HEADERS),
            "body": "",
            "isBase64Encoded": False,
        }

    if method != "POST":
        return {
            "statusCode": 405,
            "headers": with_cors(JSON_HEADERS),
            "body": json.dumps({"error": "Method not allowed."}),
            "isBase64Encoded": False,
        }

    # A fresh client per invocation; each call runs in its own event loop
    owned = core is None
    try:
        try:
            payload = _decode_body(event)
        except ValueError:
            logger.warning("[PROXY] Invalid JSON body")
            return to_event_response(error_result(400, "Invalid JSON"))

        if owned:
            core = ProxyCore(HttpxFetcher())

        try:
            result = await core.handle(extract_url(payload))
        finally:
            if owned and core is not None:
                await core.close()
    except Exception:
        logger.exception("[PROXY] Unhandled exception")
        result = error_result(500, "Internal server error")

    return to_event_response(result)


def _decode_body(event: dict[str, Any]) -> Any:
    """Decode the request JSON. Hosts that pre-parse the body pass it through.

    Raises:
        ValueError: if the body is not valid JSON
    """
    body = event.get("body")
    if isinstance(body, (dict, list)):
        return body
    if body is None:
        raw = b""
    elif event.get("isBase64Encoded"):
        raw = b64decode(body)
    elif isinstance(body, str):
        raw = body.encode("utf-8")
    elif isinstance(body, (bytes, bytearray)):
        raw = bytes(body)
    else:
        raise ValueError(f"Unsupported body type: {type(body).__name__}")
    return json.loads(raw)


def to_event_response(result: ProxyResult) -> dict[str, Any]:
    """Serialize a result into the function's return shape."""
    if result.is_binary:
        body = b64encode(result.body).decode("ascii")
    else:
        body = result.body

    return {
        "statusCode": result.status,
        "headers": with_cors(result.headers),
        "body": body,
        "isBase64Encoded": result.is_binary,
    }
