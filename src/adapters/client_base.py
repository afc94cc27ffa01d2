"""Shared plumbing for the uploader and downloader.

Each client instance owns its transport (and therefore its connection pool)
and its own observer registry; nothing is shared between instances.
"""

from __future__ import annotations

from typing import Generic, TypeVar

import httpx

from adapters.http_client import HttpTransport, build_async_client
from adapters.router import NightscoutRouter
from core.config import NightscoutSettings
from core.domain.credentials import NightscoutCredentials
from core.interfaces.transport import NightscoutTransport
from core.services.observer_registry import ObserverRegistry, SubscriptionHandle

ObserverT = TypeVar("ObserverT")


class NightscoutClientBase(Generic[ObserverT]):
    def __init__(
        self,
        credentials: NightscoutCredentials,
        *,
        settings: NightscoutSettings | None = None,
        transport: NightscoutTransport | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """`transport` replaces the HTTP layer entirely; `http_transport` only
        swaps the httpx transport underneath it (e.g. `httpx.MockTransport`).
        """

        self.credentials = credentials
        self.settings = settings or NightscoutSettings()
        self._router = NightscoutRouter(credentials)
        self._transport: NightscoutTransport = transport or HttpTransport(
            build_async_client(
                self.settings,
                base_url=credentials.url,
                extra_headers=self._router.headers(),
                transport=http_transport,
            )
        )
        self._observers: ObserverRegistry[ObserverT] = ObserverRegistry()

    def subscribe(self, observer: ObserverT) -> SubscriptionHandle:
        """Start notifying `observer`. It is held weakly; keep your own reference."""

        return self._observers.subscribe(observer)

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        return self._observers.unsubscribe(handle)

    @property
    def observers(self) -> list[ObserverT]:
        return self._observers.observers()

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
