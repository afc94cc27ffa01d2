"""Shared fixtures: settings isolated from the environment and a fake Nightscout site."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from core.config import NightscoutSettings
from core.domain.credentials import NightscoutCredentials
from core.interfaces.observers import DownloaderObserver, UploaderObserver

SITE_URL = "https://cgm.example.org"
API_SECRET = "super-secret-value"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeNightscout:
    """Routes `(method, path)` to canned responses and records every request."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, responder: Responder | Any, status_code: int = 200) -> None:
        if not callable(responder):
            body = responder
            responder = lambda request: httpx.Response(status_code, json=body)  # noqa: E731
        self.routes[(method.upper(), path)] = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, text="not found")
        return responder(request)

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


class _Recorder:
    """Records every `did_*` callback as `(name, first payload argument)`."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def __getattribute__(self, name: str) -> Any:
        if name.startswith("did_"):
            calls = object.__getattribute__(self, "calls")

            def record(source: Any, *args: Any) -> None:
                calls.append((name, args[0] if args else None))

            return record
        return object.__getattribute__(self, name)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def payload(self, name: str) -> Any:
        return next(value for call, value in self.calls if call == name)


class RecordingUploaderObserver(_Recorder, UploaderObserver):
    pass


class RecordingDownloaderObserver(_Recorder, DownloaderObserver):
    pass


@pytest.fixture
def settings() -> NightscoutSettings:
    return NightscoutSettings(_env_file=None, url=SITE_URL, api_secret=API_SECRET, recent_count=5)


@pytest.fixture
def credentials() -> NightscoutCredentials:
    return NightscoutCredentials(url=SITE_URL, api_secret=API_SECRET)


@pytest.fixture
def read_only_credentials() -> NightscoutCredentials:
    return NightscoutCredentials(url=SITE_URL)


@pytest.fixture
def site() -> FakeNightscout:
    return FakeNightscout()
