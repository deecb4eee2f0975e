"""Serverless function adapter."""

import json
from base64 import b64decode, b64encode

import pytest

import serverless
from serverless import handle_event, handler
from tests.conftest import FakeFetcher, upstream

pytestmark = pytest.mark.anyio


def post(body, **extra):
    return {"httpMethod": "POST", "body": body, **extra}


def assert_cors(response):
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"
    assert response["headers"]["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert response["headers"]["Access-Control-Allow-Headers"] == "Content-Type"


async def test_preflight():
    response = await handle_event({"httpMethod": "OPTIONS"})

    assert response["statusCode"] == 204
    assert response["body"] == ""
    assert_cors(response)


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", ""])
async def test_other_methods_rejected(method, core, fetcher):
    response = await handle_event({"httpMethod": method}, core=core)

    assert response["statusCode"] == 405
    assert json.loads(response["body"]) == {"error": "Method not allowed."}
    assert fetcher.calls == []
    assert_cors(response)


async def test_lowercase_method_key():
    response = await handle_event({"method": "options"})
    assert response["statusCode"] == 204


@pytest.mark.parametrize("body", ["{oops", None, "", b"\x80abc"])
async def test_invalid_json_never_reaches_core(body, core, fetcher):
    response = await handle_event(post(body), core=core)

    assert response["statusCode"] == 400
    assert json.loads(response["body"]) == {"error": "Invalid JSON"}
    assert fetcher.calls == []
    assert_cors(response)


async def test_invalid_url(core):
    response = await handle_event(post(json.dumps({"url": 7})), core=core)

    assert response["statusCode"] == 400
    assert json.loads(response["body"]) == {"error": "Invalid URL"}


async def test_html_page(core):
    response = await handle_event(post(json.dumps({"url": "https://knigavuhe.org/book/1"})), core=core)

    assert response["statusCode"] == 200
    assert response["body"] == "<html>ok</html>"
    assert response["headers"]["Content-Type"] == "text/html"
    assert response["isBase64Encoded"] is False
    assert_cors(response)


async def test_audio_is_base64_encoded(core, fetcher):
    data = bytes(range(256))
    fetcher.response = upstream(content_type="audio/mpeg", content=data)

    response = await handle_event(post(json.dumps({"url": "https://s2.knigavuhe.org/a.mp3"})), core=core)

    assert response["statusCode"] == 200
    assert response["isBase64Encoded"] is True
    assert b64decode(response["body"]) == data
    assert response["headers"]["Content-Type"] == "audio/mpeg"


async def test_base64_request_body(core, fetcher):
    raw = json.dumps({"url": "https://knigavuhe.org/book/1"}).encode()
    response = await handle_event(post(b64encode(raw).decode(), isBase64Encoded=True), core=core)

    assert response["statusCode"] == 200
    assert fetcher.calls == ["https://knigavuhe.org/book/1"]


async def test_upstream_failure(core, fetcher):
    fetcher.response = upstream(status=404, reason="Not Found")

    response = await handle_event(post(json.dumps({"url": "https://knigavuhe.org/missing"})), core=core)

    assert response["statusCode"] == 404
    assert json.loads(response["body"]) == {"error": "Failed to fetch: Not Found"}
    assert_cors(response)


async def test_unexpected_failure_is_500(core, monkeypatch):
    async def explode(url):
        raise RuntimeError("boom")

    monkeypatch.setattr(core, "handle", explode)

    response = await handle_event(post(json.dumps({"url": "https://knigavuhe.org/book/1"})), core=core)

    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {"error": "Internal server error"}
    assert_cors(response)


def test_sync_handler_builds_its_own_core(monkeypatch):
    fetcher = FakeFetcher(upstream(content_type="text/plain", content=b"hello"))
    monkeypatch.setattr(serverless, "HttpxFetcher", lambda: fetcher)

    response = handler(post(json.dumps({"url": "https://knigavuhe.org/x"})), None)

    assert response["statusCode"] == 200
    assert response["body"] == "hello"
    assert response["headers"]["Content-Type"] == "text/plain"
    assert fetcher.calls == ["https://knigavuhe.org/x"]


async def test_pre_parsed_body_is_accepted(core, fetcher):
    response = await handle_event(post({"url": "https://knigavuhe.org/x"}), core=core)

    assert response["statusCode"] == 200
    assert fetcher.calls == ["https://knigavuhe.org/x"]


async def test_pre_parsed_list_body_has_no_url(core, fetcher):
    response = await handle_event(post(["https://knigavuhe.org/x"]), core=core)

    assert response["statusCode"] == 400
    assert json.loads(response["body"]) == {"error": "Invalid URL"}
    assert fetcher.calls == []


@pytest.mark.parametrize("body", [42, 1.5, True])
async def test_unsupported_body_type_is_invalid_json(body, core, fetcher):
    response = await handle_event(post(body), core=core)

    assert response["statusCode"] == 400
    assert json.loads(response["body"]) == {"error": "Invalid JSON"}
    assert fetcher.calls == []
    assert_cors(response)


async def test_fetcher_construction_failure_is_500(monkeypatch):
    def broken():
        raise RuntimeError("bad config")

    monkeypatch.setattr(serverless, "HttpxFetcher", broken)

    response = await handle_event(post(json.dumps({"url": "https://knigavuhe.org/x"})))

    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {"error": "Internal server error"}
    assert_cors(response)
