"""Fan-out of classified outcomes to registered observers.

Rules applied to every live observer, each as one uninterrupted unit:
- `OperationResult` / `PostResponse`: the success callback fires only for a
  non-empty processed/uploaded set, the rejection callback only for a
  non-empty rejected set.
- `NightscoutError` (whole-call failure): only `did_error` fires.
- Downloader payloads: the event's success callback fires with the payload.
"""

from __future__ import annotations

from typing import Any, Union

from core.domain.errors import NightscoutError
from core.domain.results import OperationResult, PostResponse
from core.interfaces.observers import DownloaderEvent, UploaderEvent, callback
from core.services.observer_registry import ObserverRegistry

Outcome = Union[OperationResult, PostResponse, NightscoutError]


def notify_outcome(
    registry: ObserverRegistry[Any],
    source: object,
    event: UploaderEvent,
    outcome: Outcome,
) -> int:
    """Deliver one uploader outcome; returns the number of observers reached."""

    if isinstance(outcome, NightscoutError):
        return notify_error(registry, source, outcome)
    if isinstance(outcome, OperationResult):
        successes, rejected = outcome.processed_items, outcome.rejected_items
    elif isinstance(outcome, PostResponse):
        successes, rejected = outcome.uploaded_items, outcome.rejected_items
    else:
        raise TypeError(f"Unsupported outcome type: {type(outcome).__name__}")

    def deliver(observer: Any) -> None:
        if successes:
            callback(observer, event.success_callback)(source, successes)
        if rejected:
            callback(observer, event.rejection_callback)(source, rejected)

    return registry.notify(deliver)


def notify_error(registry: ObserverRegistry[Any], source: object, error: NightscoutError) -> int:
    return registry.notify(lambda observer: observer.did_error(source, error))


def notify_fetched(
    registry: ObserverRegistry[Any],
    source: object,
    event: DownloaderEvent,
    payload: Any,
) -> int:
    return registry.notify(lambda observer: callback(observer, event.success_callback)(source, payload))


def notify_authorized(registry: ObserverRegistry[Any], source: object) -> int:
    return registry.notify(lambda observer: observer.did_verify_authorization(source))
