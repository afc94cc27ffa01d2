"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers and logging for every Nightscout call.
- Maps HTTP outcomes onto the `NightscoutError` taxonomy in one place.
- Eases testing: inject an `httpx.AsyncClient` built on `httpx.MockTransport`.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import httpx
import structlog

from core.config import NightscoutSettings
from core.domain.errors import (
    FetchError,
    HTTPStatusError,
    InvalidURLError,
    JSONParsingError,
    UnauthorizedError,
    UploadError,
)

logger = structlog.get_logger(__name__)

_UPLOAD_METHODS = frozenset({"POST", "PUT"})


def build_async_client(
    settings: NightscoutSettings | None = None,
    *,
    base_url: str = "",
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with safe defaults.

    Why a builder:
    - Centralizes timeouts/headers so uploader and downloader behave the same.
    - Each client object owns its own connection pool; nothing is global.
    """

    settings = settings or NightscoutSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


class HttpTransport:
    """`NightscoutTransport` over an `httpx.AsyncClient`.

    Outcomes:
    - 200 -> decoded JSON (or None for an empty body)
    - 401 -> `UnauthorizedError`
    - other status -> `HTTPStatusError(status_code, body)`
    - connection problems/timeouts -> `UploadError` (POST/PUT) or `FetchError`
    - undecodable body -> `JSONParsingError`
    """

    def __init__(self, client: httpx.AsyncClient, *, owns_client: bool = True) -> None:
        self._client = client
        self._owns_client = owns_client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Sequence[tuple[str, str]] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        method = method.upper()
        error_cls = UploadError if method in _UPLOAD_METHODS else FetchError
        try:
            response = await self._client.request(
                method,
                path,
                params=list(query) if query else None,
                json=json,
                headers=dict(headers) if headers else None,
            )
        except httpx.InvalidURL as exc:
            raise InvalidURLError(str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.warning("http_request_failed", method=method, path=path, error=str(exc))
            raise error_cls(exc) from exc

        logger.debug("http_response", method=method, path=path, status_code=response.status_code)

        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code != 200:
            raise HTTPStatusError(response.status_code, response.text)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise JSONParsingError(exc) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
