"""Registry of observers held without extending their lifetime.

Why weak references plus handles:
- An observer's owner decides when it dies; the registry never keeps it alive.
  Dead observers are skipped and pruned on the next notification pass.
- `subscribe` returns a `SubscriptionHandle` and `unsubscribe` takes it back,
  so callers do not need the observer object to stop notifications.
- Objects that cannot be weakly referenced (e.g. `__slots__` without
  `__weakref__`) are held strongly and must be unsubscribed explicitly.

The subscription table is copy-on-write inside an `Atomic`: every change
builds a new dict, so a notification pass iterates a snapshot that concurrent
subscribe/unsubscribe calls cannot alter.
"""

from __future__ import annotations

import itertools
import threading
import weakref
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

import structlog

from core.services.atomic import Atomic

logger = structlog.get_logger(__name__)

ObserverT = TypeVar("ObserverT")

_handle_ids = itertools.count(1)
_handle_lock = threading.Lock()


def _next_handle_id() -> int:
    with _handle_lock:
        return next(_handle_ids)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by `subscribe`."""

    id: int


@dataclass(eq=False)
class _Subscription(Generic[ObserverT]):
    handle: SubscriptionHandle
    resolve: Callable[[], ObserverT | None]
    is_weak: bool
    # Serializes notification units delivered to this observer.
    lock: threading.RLock = field(default_factory=threading.RLock)


def _strong(observer: ObserverT) -> Callable[[], ObserverT]:
    return lambda: observer


class ObserverRegistry(Generic[ObserverT]):
    """Thread-safe, non-owning set of observers with snapshot notification."""

    def __init__(self) -> None:
        self._subscriptions: Atomic[dict[SubscriptionHandle, _Subscription[ObserverT]]] = Atomic({})

    def subscribe(self, observer: ObserverT) -> SubscriptionHandle:
        """Register `observer`; subscribing the same object twice returns its existing handle."""

        try:
            resolve: Callable[[], ObserverT | None] = weakref.ref(observer)
            is_weak = True
        except TypeError:
            resolve = _strong(observer)
            is_weak = False
            logger.debug("observer_held_strongly", observer=type(observer).__name__)

        candidate = _Subscription(
            handle=SubscriptionHandle(_next_handle_id()),
            resolve=resolve,
            is_weak=is_weak,
        )
        chosen: list[SubscriptionHandle] = []

        def add(current: dict[SubscriptionHandle, _Subscription[ObserverT]]):
            for existing in current.values():
                if existing.resolve() is observer:
                    chosen.append(existing.handle)
                    return current
            chosen.append(candidate.handle)
            return {**current, candidate.handle: candidate}

        self._subscriptions.modify(add)
        return chosen[0]

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Remove the subscription; returns False if the handle was unknown."""

        removed: list[bool] = []

        def remove(current: dict[SubscriptionHandle, _Subscription[ObserverT]]):
            if handle not in current:
                removed.append(False)
                return current
            removed.append(True)
            return {key: sub for key, sub in current.items() if key != handle}

        self._subscriptions.modify(remove)
        return removed[0]

    def observers(self) -> list[ObserverT]:
        """Live observers at this instant."""

        return [observer for _, observer in self._live()]

    def __len__(self) -> int:
        return len(self._live())

    def notify(self, deliver: Callable[[ObserverT], None]) -> int:
        """Run `deliver(observer)` for every live observer.

        `deliver` is one notification unit: it may call several callbacks on
        the observer, and no other `notify` reaches the same observer until
        it returns. A failing observer is logged and does not stop the others.
        Returns the number of observers reached.
        """

        delivered = 0
        for subscription, observer in self._live():
            with subscription.lock:
                try:
                    deliver(observer)
                except Exception:
                    logger.exception(
                        "observer_callback_failed",
                        observer=type(observer).__name__,
                        handle=subscription.handle.id,
                    )
                    continue
            delivered += 1
        return delivered

    def _live(self) -> list[tuple[_Subscription[ObserverT], ObserverT]]:
        snapshot = self._subscriptions.get()
        live: list[tuple[_Subscription[ObserverT], ObserverT]] = []
        dead: list[SubscriptionHandle] = []
        for handle, subscription in snapshot.items():
            observer = subscription.resolve()
            if observer is None:
                dead.append(handle)
            else:
                live.append((subscription, observer))
        if dead:
            self._prune(dead)
        return live

    def _prune(self, handles: list[SubscriptionHandle]) -> None:
        def drop(current: dict[SubscriptionHandle, _Subscription[ObserverT]]):
            return {key: sub for key, sub in current.items() if key not in handles}

        self._subscriptions.modify(drop)
        logger.debug("observers_pruned", count=len(handles))
