"""Aggregate outcomes of multi-item operations.

These are plain dataclasses rather than Pydantic models: they hold arbitrary
hashable items and exceptions, never cross a JSON boundary, and are created
once per call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Hashable, TypeVar

from core.domain.errors import NightscoutError

ItemT = TypeVar("ItemT", bound=Hashable)


@dataclass(frozen=True)
class Rejection(Generic[ItemT]):
    """An item whose operation failed, with the error that caused it.

    Equality and hashing use the item only, so a set of rejections never
    holds two entries for the same item.
    """

    item: ItemT
    error: NightscoutError = field(compare=False, hash=False)


@dataclass(frozen=True)
class OperationResult(Generic[ItemT]):
    """Partition of the input items into processed and rejected."""

    processed_items: frozenset[ItemT] = frozenset()
    rejections: frozenset[Rejection[ItemT]] = frozenset()

    @property
    def rejected_items(self) -> frozenset[ItemT]:
        return frozenset(r.item for r in self.rejections)

    @property
    def errors(self) -> list[NightscoutError]:
        return [r.error for r in self.rejections]

    def error_for(self, item: ItemT) -> NightscoutError | None:
        for rejection in self.rejections:
            if rejection.item == item:
                return rejection.error
        return None


@dataclass(frozen=True)
class PostResponse(Generic[ItemT]):
    """Outcome of one batch submission: accepted vs. not accepted."""

    uploaded_items: frozenset[ItemT] = frozenset()
    rejected_items: frozenset[ItemT] = frozenset()
