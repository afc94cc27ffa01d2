"""Error taxonomy for Nightscout communication.

Why an exception hierarchy:
- Each kind of failure (transport, protocol, per-item, configuration) is its
  own class, so callers can `except` exactly what they care about.
- `ErrorKind` gives observers and logs a closed set to switch on without
  `isinstance` chains.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus


class ErrorKind(str, Enum):
    """Broad classification of a `NightscoutError`."""

    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    ITEM = "item"
    CONFIGURATION = "configuration"


class NightscoutError(Exception):
    """Base class for every error raised while talking to a Nightscout site."""

    kind: ErrorKind = ErrorKind.PROTOCOL
    recovery_suggestion: str | None = None

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return "Nightscout error."

    @property
    def message(self) -> str:
        return str(self)


# Configuration


class InvalidURLError(NightscoutError):
    kind = ErrorKind.CONFIGURATION
    recovery_suggestion = "Verify that the Nightscout URL is correct."

    def default_message(self) -> str:
        return "Invalid Nightscout URL."


class MissingAPISecretError(NightscoutError):
    kind = ErrorKind.CONFIGURATION
    recovery_suggestion = "Verify that the Nightscout API secret has been entered."

    def default_message(self) -> str:
        return "Missing Nightscout API secret."


# Transport


class TransportError(NightscoutError):
    """Connectivity failure; wraps the underlying exception."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"{self._prefix}: {cause}")

    _prefix = "Transport error"


class FetchError(TransportError):
    _prefix = "Fetch error"


class UploadError(TransportError):
    _prefix = "Upload error"


# Protocol


class UnauthorizedError(NightscoutError):
    recovery_suggestion = "Verify that the Nightscout URL and API secret are correct."

    def default_message(self) -> str:
        return "Unauthorized."


class HTTPStatusError(NightscoutError):
    """Non-200 response other than 401."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        try:
            phrase = HTTPStatus(status_code).phrase
        except ValueError:
            phrase = "Unexpected status"
        super().__init__(f"HTTP {status_code}: {phrase}")


class JSONParsingError(NightscoutError):
    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"JSON parsing error: {cause}")


class DataParsingError(NightscoutError):
    """Valid JSON that does not match the expected record format."""

    recovery_suggestion = (
        "If the Nightscout URL and API secret are correct, the server returned "
        "records in an unexpected format."
    )

    def __init__(self, data: bytes | str, detail: str | None = None) -> None:
        self.data = data
        message = "Data parsing failure."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


# Per-item


class ItemRejectedError(NightscoutError):
    """The server refused one specific item."""

    kind = ErrorKind.ITEM

    def __init__(self, item_id: str, reason: str | None = None) -> None:
        self.item_id = item_id
        self.reason = reason
        message = f"Item {item_id} rejected"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class OperationError(NightscoutError):
    """A per-item operation raised something other than a `NightscoutError`."""

    kind = ErrorKind.ITEM

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Operation failed: {cause!r}")
