"""Ready-made observer that keeps what the uploader and downloader report.

Why a data store:
- Most applications only want "the latest entries" or "what failed to
  upload" without writing an observer of their own.
- `DataStoreOptions` selects which outcomes are kept; everything else is
  ignored at the callback.

Storage rules:
- Without `CACHE_RECEIVED_DATA` each field is replaced by the newest batch.
- With it, new batches are prepended so the newest records come first.
- Site status, authorization and the last error are always kept.

Each field lives in its own `Atomic`, so a callback only ever locks the field
it writes. Subscribe the same store to an uploader and a downloader to
collect both sides.
"""

from __future__ import annotations

from enum import Flag
from typing import Any, Collection, Iterable

from core.domain.errors import InvalidURLError, MissingAPISecretError, NightscoutError, UnauthorizedError
from core.domain.models import BloodGlucoseEntry, DeviceStatus, NightscoutStatus, ProfileRecord, Treatment
from core.interfaces.observers import DownloaderObserver, UploaderObserver
from core.services.atomic import Atomic

_AUTHORIZATION_ERRORS = (InvalidURLError, MissingAPISecretError, UnauthorizedError)


class DataStoreOptions(Flag):
    """Which outcomes a `NightscoutDataStore` keeps."""

    NONE = 0
    CACHE_RECEIVED_DATA = 1 << 0

    STORE_FETCHED_ENTRIES = 1 << 1
    STORE_UPLOADED_ENTRIES = 1 << 2
    STORE_FAILED_UPLOAD_ENTRIES = 1 << 3

    STORE_FETCHED_TREATMENTS = 1 << 4
    STORE_UPLOADED_TREATMENTS = 1 << 5
    STORE_FAILED_UPLOAD_TREATMENTS = 1 << 6
    STORE_UPDATED_TREATMENTS = 1 << 7
    STORE_FAILED_UPDATE_TREATMENTS = 1 << 8
    STORE_DELETED_TREATMENTS = 1 << 9
    STORE_FAILED_DELETE_TREATMENTS = 1 << 10

    STORE_FETCHED_RECORDS = 1 << 11
    STORE_UPLOADED_RECORDS = 1 << 12
    STORE_FAILED_UPLOAD_RECORDS = 1 << 13
    STORE_UPDATED_RECORDS = 1 << 14
    STORE_FAILED_UPDATE_RECORDS = 1 << 15
    STORE_DELETED_RECORDS = 1 << 16
    STORE_FAILED_DELETE_RECORDS = 1 << 17

    STORE_FETCHED_DEVICE_STATUSES = 1 << 18

    # Presets
    STORE_ALL_ENTRY_DATA = (1 << 1) | (1 << 2) | (1 << 3)
    STORE_ALL_TREATMENT_DATA = (1 << 4) | (1 << 5) | (1 << 6) | (1 << 7) | (1 << 8) | (1 << 9) | (1 << 10)
    STORE_ALL_RECORD_DATA = (1 << 11) | (1 << 12) | (1 << 13) | (1 << 14) | (1 << 15) | (1 << 16) | (1 << 17)
    STORE_ALL_DEVICE_STATUS_DATA = 1 << 18
    STORE_ALL_FETCHED_DATA = (1 << 1) | (1 << 4) | (1 << 11) | (1 << 18)
    STORE_ALL_UPLOADED_DATA = (1 << 2) | (1 << 5) | (1 << 12)
    STORE_ALL_FAILED_UPLOAD_DATA = (1 << 3) | (1 << 6) | (1 << 13)
    STORE_ALL_UPDATED_DATA = (1 << 7) | (1 << 14)
    STORE_ALL_FAILED_UPDATE_DATA = (1 << 8) | (1 << 15)
    STORE_ALL_DELETED_DATA = (1 << 9) | (1 << 16)
    STORE_ALL_FAILED_DELETE_DATA = (1 << 10) | (1 << 17)
    STORE_ALL_FAILURE_DATA = (1 << 3) | (1 << 6) | (1 << 13) | (1 << 8) | (1 << 15) | (1 << 10) | (1 << 17)
    STORE_ALL_DATA = ((1 << 19) - 1) & ~1


# field name -> option that enables it
_RECORD_FIELDS: dict[str, DataStoreOptions] = {
    "fetched_entries": DataStoreOptions.STORE_FETCHED_ENTRIES,
    "uploaded_entries": DataStoreOptions.STORE_UPLOADED_ENTRIES,
    "failed_upload_entries": DataStoreOptions.STORE_FAILED_UPLOAD_ENTRIES,
    "fetched_treatments": DataStoreOptions.STORE_FETCHED_TREATMENTS,
    "uploaded_treatments": DataStoreOptions.STORE_UPLOADED_TREATMENTS,
    "failed_upload_treatments": DataStoreOptions.STORE_FAILED_UPLOAD_TREATMENTS,
    "updated_treatments": DataStoreOptions.STORE_UPDATED_TREATMENTS,
    "failed_update_treatments": DataStoreOptions.STORE_FAILED_UPDATE_TREATMENTS,
    "deleted_treatments": DataStoreOptions.STORE_DELETED_TREATMENTS,
    "failed_delete_treatments": DataStoreOptions.STORE_FAILED_DELETE_TREATMENTS,
    "fetched_records": DataStoreOptions.STORE_FETCHED_RECORDS,
    "uploaded_records": DataStoreOptions.STORE_UPLOADED_RECORDS,
    "failed_upload_records": DataStoreOptions.STORE_FAILED_UPLOAD_RECORDS,
    "updated_records": DataStoreOptions.STORE_UPDATED_RECORDS,
    "failed_update_records": DataStoreOptions.STORE_FAILED_UPDATE_RECORDS,
    "deleted_records": DataStoreOptions.STORE_DELETED_RECORDS,
    "failed_delete_records": DataStoreOptions.STORE_FAILED_DELETE_RECORDS,
    "fetched_device_statuses": DataStoreOptions.STORE_FETCHED_DEVICE_STATUSES,
}


def _stored(field: str) -> property:
    def getter(self: "NightscoutDataStore") -> list[Any]:
        return list(self._fields[field].get())

    getter.__name__ = field
    getter.__doc__ = f"Stored `{field}`, newest first when caching."
    return property(getter)


class NightscoutDataStore(UploaderObserver, DownloaderObserver):
    """Observer that stores the records and state reported to it."""

    def __init__(self, options: DataStoreOptions = DataStoreOptions.NONE) -> None:
        self._options = options
        self._fields: dict[str, Atomic[list[Any]]] = {name: Atomic([]) for name in _RECORD_FIELDS}
        self._has_authorization: Atomic[bool | None] = Atomic(None)
        self._fetched_status: Atomic[NightscoutStatus | None] = Atomic(None)
        self._last_error: Atomic[NightscoutError | None] = Atomic(None)

    # Presets

    @classmethod
    def status_store(cls) -> "NightscoutDataStore":
        return cls()

    @classmethod
    def entry_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_ENTRY_DATA, caching_received_data)

    @classmethod
    def treatment_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_TREATMENT_DATA, caching_received_data)

    @classmethod
    def record_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_RECORD_DATA, caching_received_data)

    @classmethod
    def device_status_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_DEVICE_STATUS_DATA, caching_received_data)

    @classmethod
    def fetch_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_FETCHED_DATA, caching_received_data)

    @classmethod
    def upload_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_UPLOADED_DATA, caching_received_data)

    @classmethod
    def failure_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_FAILURE_DATA, caching_received_data)

    @classmethod
    def all_data_store(cls, caching_received_data: bool = True) -> "NightscoutDataStore":
        return cls._preset(DataStoreOptions.STORE_ALL_DATA, caching_received_data)

    @classmethod
    def _preset(cls, options: DataStoreOptions, caching_received_data: bool) -> "NightscoutDataStore":
        if caching_received_data:
            options |= DataStoreOptions.CACHE_RECEIVED_DATA
        return cls(options)

    # State

    @property
    def options(self) -> DataStoreOptions:
        return self._options

    @property
    def has_authorization(self) -> bool | None:
        """True after a successful authorization check; False after an auth or configuration error."""

        return self._has_authorization.get()

    @property
    def fetched_status(self) -> NightscoutStatus | None:
        return self._fetched_status.get()

    @property
    def last_error(self) -> NightscoutError | None:
        return self._last_error.get()

    fetched_entries = _stored("fetched_entries")
    uploaded_entries = _stored("uploaded_entries")
    failed_upload_entries = _stored("failed_upload_entries")
    fetched_treatments = _stored("fetched_treatments")
    uploaded_treatments = _stored("uploaded_treatments")
    failed_upload_treatments = _stored("failed_upload_treatments")
    updated_treatments = _stored("updated_treatments")
    failed_update_treatments = _stored("failed_update_treatments")
    deleted_treatments = _stored("deleted_treatments")
    failed_delete_treatments = _stored("failed_delete_treatments")
    fetched_records = _stored("fetched_records")
    uploaded_records = _stored("uploaded_records")
    failed_upload_records = _stored("failed_upload_records")
    updated_records = _stored("updated_records")
    failed_update_records = _stored("failed_update_records")
    deleted_records = _stored("deleted_records")
    failed_delete_records = _stored("failed_delete_records")
    fetched_device_statuses = _stored("fetched_device_statuses")

    # Shared callbacks

    def did_verify_authorization(self, uploader: Any) -> None:
        self._has_authorization.set(True)

    def did_error(self, source: Any, error: NightscoutError) -> None:
        if isinstance(error, _AUTHORIZATION_ERRORS):
            self._has_authorization.set(False)
        self._last_error.set(error)

    # Downloader callbacks

    def did_fetch_status(self, downloader: Any, status: NightscoutStatus) -> None:
        self._fetched_status.set(status)

    def did_fetch_entries(self, downloader: Any, entries: list[BloodGlucoseEntry]) -> None:
        self._store("fetched_entries", entries)

    def did_fetch_treatments(self, downloader: Any, treatments: list[Treatment]) -> None:
        self._store("fetched_treatments", treatments)

    def did_fetch_profile_records(self, downloader: Any, records: list[ProfileRecord]) -> None:
        self._store("fetched_records", records)

    def did_fetch_device_statuses(self, downloader: Any, device_statuses: list[DeviceStatus]) -> None:
        self._store("fetched_device_statuses", device_statuses)

    # Uploader callbacks

    def did_upload_entries(self, uploader: Any, entries: Collection[BloodGlucoseEntry]) -> None:
        self._store("uploaded_entries", entries)

    def did_fail_to_upload_entries(self, uploader: Any, entries: Collection[BloodGlucoseEntry]) -> None:
        self._store("failed_upload_entries", entries)

    def did_upload_treatments(self, uploader: Any, treatments: Collection[Treatment]) -> None:
        self._store("uploaded_treatments", treatments)

    def did_fail_to_upload_treatments(self, uploader: Any, treatments: Collection[Treatment]) -> None:
        self._store("failed_upload_treatments", treatments)

    def did_update_treatments(self, uploader: Any, treatments: Collection[Treatment]) -> None:
        self._store("updated_treatments", treatments)

    def did_fail_to_update_treatments(self, uploader: Any, treatments: Collection[Treatment]) -> None:
        self._store("failed_update_treatments", treatments)

    def did_delete_treatments(self, uploader: Any, treatments: Collection[Treatment]) -> None:
        self._store("deleted_treatments", treatments)

    def did_fail_to_delete_treatments(self, uploader: Any, treatments: Collection[Treatment]) -> None:
        self._store("failed_delete_treatments", treatments)

    def did_upload_profile_records(self, uploader: Any, records: Collection[ProfileRecord]) -> None:
        self._store("uploaded_records", records)

    def did_fail_to_upload_profile_records(self, uploader: Any, records: Collection[ProfileRecord]) -> None:
        self._store("failed_upload_records", records)

    def did_update_profile_records(self, uploader: Any, records: Collection[ProfileRecord]) -> None:
        self._store("updated_records", records)

    def did_fail_to_update_profile_records(self, uploader: Any, records: Collection[ProfileRecord]) -> None:
        self._store("failed_update_records", records)

    def did_delete_profile_records(self, uploader: Any, records: Collection[ProfileRecord]) -> None:
        self._store("deleted_records", records)

    def did_fail_to_delete_profile_records(self, uploader: Any, records: Collection[ProfileRecord]) -> None:
        self._store("failed_delete_records", records)

    def _store(self, field: str, values: Iterable[Any]) -> None:
        if _RECORD_FIELDS[field] not in self._options:
            return
        new_values = list(values)
        if DataStoreOptions.CACHE_RECEIVED_DATA in self._options:
            self._fields[field].modify(lambda current: new_values + current)
        else:
            self._fields[field].set(new_values)
