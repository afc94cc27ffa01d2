"""Observer contracts for uploader and downloader events.

Why base classes instead of a Protocol:
- Every callback defaults to a no-op, so an observer overrides only the events
  it cares about.
- The event enums below are the closed set of callbacks the notifier may
  call; each member names the method(s) it dispatches to.

Observers are held weakly by the registry: keep your own reference to an
observer for as long as it should receive events.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Collection

from core.domain.errors import NightscoutError
from core.domain.models import (
    BloodGlucoseEntry,
    DeviceStatus,
    NightscoutStatus,
    ProfileRecord,
    Snapshot,
    Treatment,
)

if TYPE_CHECKING:  # pragma: no cover
    from adapters.downloader import NightscoutDownloader
    from adapters.uploader import NightscoutUploader


class UploaderEvent(Enum):
    """Multi-item uploader operations and their (success, rejection) callbacks."""

    UPLOAD_ENTRIES = ("did_upload_entries", "did_fail_to_upload_entries")
    UPLOAD_TREATMENTS = ("did_upload_treatments", "did_fail_to_upload_treatments")
    UPDATE_TREATMENTS = ("did_update_treatments", "did_fail_to_update_treatments")
    DELETE_TREATMENTS = ("did_delete_treatments", "did_fail_to_delete_treatments")
    UPLOAD_PROFILE_RECORDS = ("did_upload_profile_records", "did_fail_to_upload_profile_records")
    UPDATE_PROFILE_RECORDS = ("did_update_profile_records", "did_fail_to_update_profile_records")
    DELETE_PROFILE_RECORDS = ("did_delete_profile_records", "did_fail_to_delete_profile_records")

    @property
    def success_callback(self) -> str:
        return self.value[0]

    @property
    def rejection_callback(self) -> str:
        return self.value[1]


class DownloaderEvent(Enum):
    """Downloader fetches and their success callback."""

    FETCH_STATUS = "did_fetch_status"
    FETCH_ENTRIES = "did_fetch_entries"
    FETCH_TREATMENTS = "did_fetch_treatments"
    FETCH_PROFILE_RECORDS = "did_fetch_profile_records"
    FETCH_DEVICE_STATUSES = "did_fetch_device_statuses"
    TAKE_SNAPSHOT = "did_take_snapshot"

    @property
    def success_callback(self) -> str:
        return self.value


class UploaderObserver:
    """Receives the outcome of uploader operations."""

    def did_verify_authorization(self, uploader: NightscoutUploader) -> None:
        pass

    def did_upload_entries(self, uploader: NightscoutUploader, entries: Collection[BloodGlucoseEntry]) -> None:
        pass

    def did_fail_to_upload_entries(self, uploader: NightscoutUploader, entries: Collection[BloodGlucoseEntry]) -> None:
        pass

    def did_upload_treatments(self, uploader: NightscoutUploader, treatments: Collection[Treatment]) -> None:
        pass

    def did_fail_to_upload_treatments(self, uploader: NightscoutUploader, treatments: Collection[Treatment]) -> None:
        pass

    def did_update_treatments(self, uploader: NightscoutUploader, treatments: Collection[Treatment]) -> None:
        pass

    def did_fail_to_update_treatments(self, uploader: NightscoutUploader, treatments: Collection[Treatment]) -> None:
        pass

    def did_delete_treatments(self, uploader: NightscoutUploader, treatments: Collection[Treatment]) -> None:
        pass

    def did_fail_to_delete_treatments(self, uploader: NightscoutUploader, treatments: Collection[Treatment]) -> None:
        pass

    def did_upload_profile_records(self, uploader: NightscoutUploader, records: Collection[ProfileRecord]) -> None:
        pass

    def did_fail_to_upload_profile_records(
        self, uploader: NightscoutUploader, records: Collection[ProfileRecord]
    ) -> None:
        pass

    def did_update_profile_records(self, uploader: NightscoutUploader, records: Collection[ProfileRecord]) -> None:
        pass

    def did_fail_to_update_profile_records(
        self, uploader: NightscoutUploader, records: Collection[ProfileRecord]
    ) -> None:
        pass

    def did_delete_profile_records(self, uploader: NightscoutUploader, records: Collection[ProfileRecord]) -> None:
        pass

    def did_fail_to_delete_profile_records(
        self, uploader: NightscoutUploader, records: Collection[ProfileRecord]
    ) -> None:
        pass

    def did_error(self, uploader: NightscoutUploader, error: NightscoutError) -> None:
        """Whole-call failure (transport, protocol or configuration)."""


class DownloaderObserver:
    """Receives the outcome of downloader fetches."""

    def did_fetch_status(self, downloader: NightscoutDownloader, status: NightscoutStatus) -> None:
        pass

    def did_fetch_entries(self, downloader: NightscoutDownloader, entries: list[BloodGlucoseEntry]) -> None:
        pass

    def did_fetch_treatments(self, downloader: NightscoutDownloader, treatments: list[Treatment]) -> None:
        pass

    def did_fetch_profile_records(self, downloader: NightscoutDownloader, records: list[ProfileRecord]) -> None:
        pass

    def did_fetch_device_statuses(
        self, downloader: NightscoutDownloader, device_statuses: list[DeviceStatus]
    ) -> None:
        pass

    def did_take_snapshot(self, downloader: NightscoutDownloader, snapshot: Snapshot) -> None:
        pass

    def did_error(self, downloader: NightscoutDownloader, error: NightscoutError) -> None:
        pass


def callback(observer: Any, name: str):
    """Resolve an event callback, raising if the observer lacks it."""

    method = getattr(observer, name, None)
    if method is None or not callable(method):
        raise AttributeError(f"{type(observer).__name__} has no callback {name!r}")
    return method
