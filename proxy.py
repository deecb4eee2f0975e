"""Proxy core: allow-list check, upstream fetch and content-type aware relay."""

import json
import logging
from http import HTTPStatus
from typing import Any, Optional, Protocol

import httpx

from config import get_config
from models import Classification, ContentKind, ProxyResult, UpstreamResponse

logger = logging.getLogger(__name__)

# Only this host may be proxied. Matching is a plain substring test.
ALLOWED_HOST = "knigavuhe.org"

DEFAULT_TEXT_TYPE = "text/html"
JSON_TYPE = "application/json"


def is_allowed(url: Any) -> bool:
    """Check whether a URL may be proxied. Never raises."""
    if not isinstance(url, str):
        return False
    return ALLOWED_HOST in url


def error_result(status: int, message: str) -> ProxyResult:
    """Build a JSON error result with a single ``error`` field."""
    return ProxyResult(
        status=status,
        headers={"Content-Type": JSON_TYPE},
        body=json.dumps({"error": message}),
    )


class UpstreamFetcher(Protocol):
    """Performs one GET against the upstream origin."""

    async def fetch(self, url: str) -> UpstreamResponse:
        ...


class HttpxFetcher:
    """Upstream fetcher backed by a shared httpx.AsyncClient."""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        config = get_config()
        self._user_agent = user_agent or config.user_agent
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.upstream_timeout,
            follow_redirects=True,
        )

    @property
    def user_agent(self) -> str:
        return self._user_agent

    async def fetch(self, url: str) -> UpstreamResponse:
        """Fetch ``url``. Non-success statuses are returned, not raised.

        Raises:
            httpx.HTTPError: on network-level failures (DNS, refused, TLS).
        """
        resp = await self._client.get(url, headers={"User-Agent": self._user_agent})
        return UpstreamResponse(
            status=resp.status_code,
            reason=resp.reason_phrase or _status_phrase(resp.status_code),
            headers=dict(resp.headers),
            content=resp.content,
        )

    async def close(self):
        """Close HTTP client."""
        await self._client.aclose()


def _status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return str(status)


def classify(
    upstream: UpstreamResponse,
    text_type: Optional[str] = None,
    detect_audio: bool = True,
) -> Classification:
    """Decide whether an upstream body is relayed as bytes or as text.

    Audio content types keep their bytes and their declared type verbatim.
    Everything else is decoded as UTF-8 and labelled with the declared type,
    or ``text/html`` when none was sent. ``text_type`` forces the label used
    for text bodies.
    """
    content_type = upstream.header("content-type")

    if detect_audio and "audio" in content_type:
        return Classification(
            kind=ContentKind.BINARY,
            body=bytes(upstream.content),
            content_type=content_type,
        )

    return Classification(
        kind=ContentKind.TEXT,
        body=upstream.content.decode("utf-8", errors="replace"),
        content_type=text_type or content_type or DEFAULT_TEXT_TYPE,
    )


class ProxyCore:
    """Stateless ``handle(url) -> ProxyResult`` over an injected fetcher."""

    def __init__(self, fetcher: UpstreamFetcher):
        self._fetcher = fetcher

    @property
    def fetcher(self) -> UpstreamFetcher:
        return self._fetcher

    async def handle(self, url: Any) -> ProxyResult:
        """Proxy ``url``, relaying audio as bytes and anything else as text."""
        return await self._relay(url)

    async def handle_html(self, url: Any) -> ProxyResult:
        """Proxy ``url`` and always relay the body as ``text/html``."""
        return await self._relay(
            url,
            text_type=DEFAULT_TEXT_TYPE,
            detect_audio=False,
            failure_prefix="Failed to fetch content",
        )

    async def handle_data(self, url: Any) -> ProxyResult:
        """Proxy ``url`` with the audio fork, labelling text bodies ``text/html``."""
        return await self._relay(url, text_type=DEFAULT_TEXT_TYPE)

    async def _relay(
        self,
        url: Any,
        text_type: Optional[str] = None,
        detect_audio: bool = True,
        failure_prefix: str = "Failed to fetch",
    ) -> ProxyResult:
        if not url or not isinstance(url, str):
            return error_result(400, "Invalid URL")

        if not is_allowed(url):
            logger.warning(f"Rejected URL outside allow-list: {url}")
            return error_result(403, f"Only {ALLOWED_HOST} URLs are allowed")

        logger.info(f"Fetching upstream: {url}")
        try:
            upstream = await self._fetcher.fetch(url)
        except httpx.HTTPError as e:
            logger.error(f"Upstream request failed for {url}: {e!r}", exc_info=True)
            return error_result(500, f"{failure_prefix}: {str(e) or e.__class__.__name__}")
        except Exception:
            logger.exception(f"Proxy error while fetching {url}")
            return error_result(500, "Internal server error")

        if not upstream.ok:
            logger.warning(f"Upstream returned {upstream.status} for {url}")
            return error_result(upstream.status, f"{failure_prefix}: {upstream.reason}")

        try:
            classified = classify(upstream, text_type=text_type, detect_audio=detect_audio)
        except Exception:
            logger.exception(f"Proxy error while relaying {url}")
            return error_result(500, "Internal server error")

        return ProxyResult(
            status=200,
            headers={"Content-Type": classified.content_type},
            body=classified.body,
        )

    async def close(self):
        """Release the fetcher's connection pool, if it owns one."""
        close = getattr(self._fetcher, "close", None)
        if close is not None:
            await close()


# Global proxy instance
_proxy_core: ProxyCore | None = None


def get_proxy_core() -> ProxyCore:
    """Get global proxy core instance."""
    global _proxy_core
    if _proxy_core is None:
        _proxy_core = ProxyCore(HttpxFetcher())
    return _proxy_core


async def close_proxy_core():
    """Close and drop the global proxy core."""
    global _proxy_core
    if _proxy_core is not None:
        await _proxy_core.close()
        _proxy_core = None
