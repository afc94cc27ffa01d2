"""Minimal thread-safe container for a single mutable value.

Why a container instead of a bare lock:
- Every piece of shared state in the coordinator (rejection set, observer
  list, first-error slot) gets its own lock, so unrelated operations never
  contend on a global one.
- Completion callbacks may arrive from transport threads as well as from the
  event loop; `threading.Lock` covers both.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Atomic(Generic[T]):
    """Wraps one value and serializes every access to it."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: T) -> None:
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value

    def modify(self, transform: Callable[[T], T]) -> T:
        """Atomically replace the value with `transform(value)`.

        `transform` may mutate the value in place and return it. It must be
        short and must not perform I/O or touch this same container.
        Returns the stored value after the transform.
        """

        with self._lock:
            self._value = transform(self._value)
            return self._value

    def __repr__(self) -> str:
        return f"Atomic({self.get()!r})"
