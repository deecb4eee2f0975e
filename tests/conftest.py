"""Shared fixtures: deterministic upstreams and a swappable global proxy core."""

import pytest

import proxy
from models import UpstreamResponse
from proxy import ProxyCore


@pytest.fixture
def anyio_backend():
    # trio is not installed
    return "asyncio"


class FakeFetcher:
    """Upstream stand-in that records every URL it was asked for."""

    def __init__(self, response=None, error=None):
        self.response = response or UpstreamResponse(
            status=200,
            reason="OK",
            headers={"content-type": "text/html"},
            content=b"<html>ok</html>",
        )
        self.error = error
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


def upstream(status=200, content_type=None, content=b"", reason="OK"):
    headers = {"content-type": content_type} if content_type is not None else {}
    return UpstreamResponse(status=status, reason=reason, headers=headers, content=content)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def core(fetcher):
    return ProxyCore(fetcher)


@pytest.fixture
def global_core(monkeypatch, core):
    """Install ``core`` as the process-wide proxy core."""
    monkeypatch.setattr(proxy, "_proxy_core", core)
    return core
