"""Read access to a Nightscout site.

Every fetch notifies downloader observers (`did_fetch_*` or `did_error`)
before it returns or raises. `snapshot` runs five fetches at once and joins
them into one `Snapshot`.
"""

from __future__ import annotations

from datetime import datetime
from functools import partial
from typing import Any, Callable, TypeVar

import structlog

from adapters.client_base import NightscoutClientBase
from adapters.payloads import parse_record, parse_records
from adapters.router import NightscoutAPIEndpoint, QueryItem
from core.domain.errors import NightscoutError
from core.domain.models import (
    BloodGlucoseEntry,
    DeviceStatus,
    NightscoutStatus,
    ProfileRecord,
    Snapshot,
    Treatment,
)
from core.interfaces.observers import DownloaderEvent, DownloaderObserver
from core.services.notifications import notify_error, notify_fetched
from core.services.snapshot import SnapshotFetchers, take_snapshot

logger = structlog.get_logger(__name__)

PayloadT = TypeVar("PayloadT")

# Nightscout applies a small default `count` when none is sent; date-range
# fetches ask for everything in range unless told otherwise.
UNBOUNDED_COUNT = 2**31 - 1


class NightscoutDownloader(NightscoutClientBase[DownloaderObserver]):
    """Fetches status, entries, treatments, profile records and device statuses."""

    async def snapshot(
        self,
        recent_entry_count: int | None = None,
        recent_treatment_count: int | None = None,
        recent_device_status_count: int | None = None,
        completion: Callable[[Snapshot], None] | None = None,
    ) -> Snapshot:
        """Take a snapshot of the site; raises the first fetch error encountered."""

        fetchers = SnapshotFetchers(
            status=self.fetch_status,
            device_statuses=partial(self.fetch_most_recent_device_statuses, recent_device_status_count),
            profile_records=self.fetch_profile_records,
            entries=partial(self.fetch_most_recent_entries, recent_entry_count),
            treatments=partial(self.fetch_most_recent_treatments, None, recent_treatment_count),
        )
        # Sub-fetches already report their own failures to `did_error`.
        snapshot = await take_snapshot(fetchers)
        notify_fetched(self._observers, self, DownloaderEvent.TAKE_SNAPSHOT, snapshot)
        if completion is not None:
            completion(snapshot)
        return snapshot

    # Status

    async def fetch_status(self) -> NightscoutStatus:
        return await self._fetch(
            DownloaderEvent.FETCH_STATUS,
            NightscoutAPIEndpoint.STATUS,
            [],
            lambda payload: parse_record(NightscoutStatus, payload),
        )

    # Entries

    async def fetch_most_recent_entries(self, count: int | None = None) -> list[BloodGlucoseEntry]:
        return await self._fetch_entries([QueryItem.count(self._count(count))])

    async def fetch_entries(
        self, start: datetime, end: datetime, max_count: int = UNBOUNDED_COUNT
    ) -> list[BloodGlucoseEntry]:
        return await self._fetch_entries([QueryItem.count(max_count), *QueryItem.entry_dates(start, end)])

    # Treatments

    async def fetch_most_recent_treatments(
        self, event_type: str | None = None, count: int | None = None
    ) -> list[Treatment]:
        query = [QueryItem.count(self._count(count))]
        if event_type is not None:
            query.append(QueryItem.treatment_event_type(event_type))
        return await self._fetch_treatments(query)

    async def fetch_treatments(
        self,
        start: datetime,
        end: datetime,
        event_type: str | None = None,
        max_count: int = UNBOUNDED_COUNT,
    ) -> list[Treatment]:
        query = [QueryItem.count(max_count), *QueryItem.treatment_dates(start, end)]
        if event_type is not None:
            query.append(QueryItem.treatment_event_type(event_type))
        return await self._fetch_treatments(query)

    # Profile records

    async def fetch_profile_records(self) -> list[ProfileRecord]:
        return await self._fetch(
            DownloaderEvent.FETCH_PROFILE_RECORDS,
            NightscoutAPIEndpoint.PROFILES,
            [],
            lambda payload: parse_records(ProfileRecord, payload),
        )

    # Device statuses

    async def fetch_most_recent_device_statuses(self, count: int | None = None) -> list[DeviceStatus]:
        return await self._fetch_device_statuses([QueryItem.count(self._count(count))])

    async def fetch_device_statuses(
        self, start: datetime, end: datetime, max_count: int = UNBOUNDED_COUNT
    ) -> list[DeviceStatus]:
        return await self._fetch_device_statuses(
            [QueryItem.count(max_count), *QueryItem.device_status_dates(start, end)]
        )

    # Private

    def _count(self, count: int | None) -> int:
        return self.settings.recent_count if count is None else count

    async def _fetch_entries(self, query: list[QueryItem]) -> list[BloodGlucoseEntry]:
        return await self._fetch(
            DownloaderEvent.FETCH_ENTRIES,
            NightscoutAPIEndpoint.ENTRIES,
            query,
            lambda payload: parse_records(BloodGlucoseEntry, payload),
        )

    async def _fetch_treatments(self, query: list[QueryItem]) -> list[Treatment]:
        return await self._fetch(
            DownloaderEvent.FETCH_TREATMENTS,
            NightscoutAPIEndpoint.TREATMENTS,
            query,
            lambda payload: parse_records(Treatment, payload),
        )

    async def _fetch_device_statuses(self, query: list[QueryItem]) -> list[DeviceStatus]:
        return await self._fetch(
            DownloaderEvent.FETCH_DEVICE_STATUSES,
            NightscoutAPIEndpoint.DEVICE_STATUS,
            query,
            lambda payload: parse_records(DeviceStatus, payload),
        )

    async def _fetch(
        self,
        event: DownloaderEvent,
        endpoint: NightscoutAPIEndpoint,
        query: list[QueryItem],
        parse: Callable[[Any], PayloadT],
    ) -> PayloadT:
        try:
            payload = await self._transport.request(
                "GET",
                self._router.path(endpoint),
                query=self._router.query(query) or None,
            )
            result = parse(payload)
        except NightscoutError as exc:
            logger.warning("fetch_failed", fetch=event.name.lower(), error=str(exc), error_kind=exc.kind.value)
            notify_error(self._observers, self, exc)
            raise
        logger.debug("fetch_completed", fetch=event.name.lower())
        notify_fetched(self._observers, self, event, result)
        return result
