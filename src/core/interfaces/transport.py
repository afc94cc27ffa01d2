"""Transport contract consumed by the uploader and downloader.

Why Protocol:
- Structural contract (duck typing) without rigid inheritance.
- The HTTP adapter and test fakes are interchangeable as long as they expose
  `request` with these semantics.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable


@runtime_checkable
class NightscoutTransport(Protocol):
    """Minimal contract for talking to a Nightscout API.

    Design rules:
    - `request` is async because it always does I/O.
    - Returns the decoded JSON payload of a 200 response.
    - Raises a `core.domain.errors.NightscoutError` subclass for everything
      else; the kind of error tells callers whether the failure was transport
      or protocol level.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Sequence[tuple[str, str]] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        ...

    async def aclose(self) -> None:
        ...
