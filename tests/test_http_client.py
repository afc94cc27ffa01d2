"""Tests for the httpx transport and its error mapping."""

import httpx
import pytest

from adapters.http_client import HttpTransport, build_async_client
from core.domain.errors import (
    FetchError,
    HTTPStatusError,
    JSONParsingError,
    UnauthorizedError,
    UploadError,
)


def _transport(handler, settings):
    client = build_async_client(settings, base_url="https://cgm.example.org", transport=httpx.MockTransport(handler))
    return HttpTransport(client)


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_decodes_json(self, settings):
        def handler(request):
            assert request.url.params["count"] == "3"
            assert request.headers["User-Agent"] == settings.user_agent
            return httpx.Response(200, json=[{"sgv": 100}])

        transport = _transport(handler, settings)
        try:
            payload = await transport.request("GET", "/api/v1/entries", query=[("count", "3")])
        finally:
            await transport.aclose()

        assert payload == [{"sgv": 100}]

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, settings):
        transport = _transport(lambda request: httpx.Response(200), settings)
        assert await transport.request("GET", "/api/v1/experiments/test") is None
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_401_is_unauthorized(self, settings):
        transport = _transport(lambda request: httpx.Response(401, text="Unauthorized"), settings)
        with pytest.raises(UnauthorizedError):
            await transport.request("GET", "/api/v1/experiments/test")
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_other_status_keeps_code_and_body(self, settings):
        transport = _transport(lambda request: httpx.Response(500, text="database down"), settings)
        with pytest.raises(HTTPStatusError) as excinfo:
            await transport.request("GET", "/api/v1/status")
        await transport.aclose()

        assert excinfo.value.status_code == 500
        assert excinfo.value.body == "database down"

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings):
        transport = _transport(lambda request: httpx.Response(200, text="<html>"), settings)
        with pytest.raises(JSONParsingError):
            await transport.request("GET", "/api/v1/status")
        await transport.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,error_cls", [("GET", FetchError), ("DELETE", FetchError), ("POST", UploadError), ("PUT", UploadError)])
    async def test_connection_failures(self, settings, method, error_cls):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = _transport(handler, settings)
        with pytest.raises(error_cls) as excinfo:
            await transport.request(method, "/api/v1/treatments", json=[] if method in ("POST", "PUT") else None)
        await transport.aclose()

        assert isinstance(excinfo.value.cause, httpx.ConnectError)
