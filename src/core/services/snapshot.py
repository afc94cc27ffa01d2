"""Composite snapshot of a Nightscout site.

Five independent fetches (status, device statuses, profile records, entries,
treatments) run at once and are joined into a single `Snapshot`.

Semantics:
- The timestamp is taken when the call starts, not when the fetches finish.
- All five fetches run to completion even after one has failed; the requests
  are already in flight.
- The first failure to be recorded is the one raised. When two fetches fail
  at nearly the same moment, which of them is "first" depends on completion
  order and is not deterministic.
- Any failure discards the successful payloads: the caller gets a full
  snapshot or one error, never a mix.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog

from core.domain.models import (
    BloodGlucoseEntry,
    DeviceStatus,
    NightscoutStatus,
    ProfileRecord,
    Snapshot,
    Treatment,
)
from core.services.atomic import Atomic

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SnapshotFetchers:
    """The five fetches a snapshot is made of; each raises on failure."""

    status: Callable[[], Awaitable[NightscoutStatus]]
    device_statuses: Callable[[], Awaitable[list[DeviceStatus]]]
    profile_records: Callable[[], Awaitable[list[ProfileRecord]]]
    entries: Callable[[], Awaitable[list[BloodGlucoseEntry]]]
    treatments: Callable[[], Awaitable[list[Treatment]]]

    def named(self) -> list[tuple[str, Callable[[], Awaitable[Any]]]]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)]


async def take_snapshot(
    fetchers: SnapshotFetchers,
    *,
    completion: Callable[[Snapshot], None] | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> Snapshot:
    """Run the five fetches concurrently and assemble the snapshot.

    Raises the first recorded fetch error once every fetch has finished.
    `completion` is only called with a complete snapshot.
    """

    timestamp = clock()
    first_error: Atomic[Exception | None] = Atomic(None)

    def record(error: Exception) -> bool:
        claimed: list[bool] = []

        def claim(current: Exception | None) -> Exception | None:
            if current is None:
                claimed.append(True)
                return error
            return current

        first_error.modify(claim)
        return bool(claimed)

    async def run(name: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await fetch()
        except Exception as exc:
            reported = record(exc)
            logger.warning("snapshot_fetch_failed", fetch=name, error=str(exc), reported=reported)
            return None

    named = fetchers.named()
    payloads = await asyncio.gather(*(run(name, fetch) for name, fetch in named))

    error = first_error.get()
    if error is not None:
        raise error

    snapshot = Snapshot(timestamp=timestamp, **{name: payload for (name, _), payload in zip(named, payloads)})
    logger.info(
        "snapshot_completed",
        entries=len(snapshot.entries),
        treatments=len(snapshot.treatments),
        device_statuses=len(snapshot.device_statuses),
        profile_records=len(snapshot.profile_records),
    )
    if completion is not None:
        completion(snapshot)
    return snapshot
