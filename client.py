"""Client helpers for fetching pages and audio through the proxy."""

from typing import Any, Optional

import httpx

from models import ProxyRequest


class ProxyClientError(Exception):
    """The proxy answered with a non-success status."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class ProxyClient:
    """Talks to a running proxy over HTTP."""

    def __init__(
        self,
        base_url: str,
        path: str = "/api/proxy",
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize proxy client.

        Args:
            base_url: Where the proxy is served, e.g. http://localhost:3000
            path: Proxy route on that server
            client: Optional preconfigured client; its base_url is used as-is
        """
        self._path = path
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def proxy_request(self, url: str) -> httpx.Response:
        """POST ``url`` to the proxy and return the raw response.

        Raises:
            ProxyClientError: if the proxy returned a non-success status
        """
        body = ProxyRequest(url=url).model_dump()
        response = await self._client.post(self._path, json=body)

        if not response.is_success:
            try:
                message = response.json().get("error") or "Proxy request failed"
            except (ValueError, AttributeError):
                message = "Proxy request failed"
            raise ProxyClientError(response.status_code, message)

        return response

    async def fetch_html(self, url: str) -> str:
        """Fetch a page through the proxy as text."""
        response = await self.proxy_request(url)
        return response.text

    async def fetch_json(self, url: str) -> Any:
        """Fetch and parse a JSON document through the proxy."""
        response = await self.proxy_request(url)
        return response.json()

    async def download_file(self, url: str) -> bytes:
        """Download audio or other binary data through the proxy."""
        response = await self.proxy_request(url)
        return response.content

    async def aclose(self):
        """Close HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ProxyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
