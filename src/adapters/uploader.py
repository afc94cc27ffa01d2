"""Uploads, updates and deletes records on a Nightscout site.

Operation shapes:
- upload_*: one POST with the whole list (`post_batch`). The server echoes
  the documents it stored; anything missing from the echo is rejected. A
  failed request fails the whole call.
- update_* / delete_*: one PUT/DELETE per item (`perform_concurrently`).
  Failures are reported per item and never affect siblings.

Observers are notified before a call returns (or raises).
"""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

import httpx

from adapters.client_base import NightscoutClientBase
from adapters.payloads import check_write_acknowledged, parse_records
from adapters.router import NightscoutAPIEndpoint
from core.config import NightscoutSettings
from core.domain.credentials import NightscoutCredentials
from core.domain.errors import NightscoutError
from core.domain.models import BloodGlucoseEntry, NightscoutRecord, ProfileRecord, Treatment
from core.domain.results import OperationResult, PostResponse
from core.interfaces.observers import UploaderEvent, UploaderObserver
from core.interfaces.transport import NightscoutTransport
from core.services.coordinator import perform_concurrently, post_batch
from core.services.notifications import notify_authorized, notify_error, notify_outcome

RecordT = TypeVar("RecordT", bound=NightscoutRecord)


class NightscoutUploader(NightscoutClientBase[UploaderObserver]):
    """Write access to a Nightscout site. Requires the API secret."""

    def __init__(
        self,
        credentials: NightscoutCredentials,
        *,
        settings: NightscoutSettings | None = None,
        transport: NightscoutTransport | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        credentials.require_secret()
        super().__init__(credentials, settings=settings, transport=transport, http_transport=http_transport)

    async def verify_authorization(self) -> None:
        """Check that the API secret grants write access; raises on failure."""

        try:
            await self._transport.request("GET", self._router.path(NightscoutAPIEndpoint.AUTHORIZATION))
        except NightscoutError as exc:
            notify_error(self._observers, self, exc)
            raise
        notify_authorized(self._observers, self)

    # Entries

    async def upload_entries(
        self,
        entries: Sequence[BloodGlucoseEntry],
        completion: Callable[[PostResponse[BloodGlucoseEntry]], None] | None = None,
    ) -> PostResponse[BloodGlucoseEntry]:
        return await self._post(
            entries, NightscoutAPIEndpoint.ENTRIES, BloodGlucoseEntry, UploaderEvent.UPLOAD_ENTRIES, completion
        )

    # Treatments

    async def upload_treatments(
        self,
        treatments: Sequence[Treatment],
        completion: Callable[[PostResponse[Treatment]], None] | None = None,
    ) -> PostResponse[Treatment]:
        return await self._post(
            treatments, NightscoutAPIEndpoint.TREATMENTS, Treatment, UploaderEvent.UPLOAD_TREATMENTS, completion
        )

    async def update_treatments(
        self,
        treatments: Sequence[Treatment],
        completion: Callable[[OperationResult[Treatment]], None] | None = None,
    ) -> OperationResult[Treatment]:
        """Update treatments in place.

        Changing a treatment's date makes Nightscout store it as a duplicate;
        delete and re-upload instead.
        """

        return await self._put(treatments, NightscoutAPIEndpoint.TREATMENTS, UploaderEvent.UPDATE_TREATMENTS, completion)

    async def delete_treatments(
        self,
        treatments: Sequence[Treatment],
        completion: Callable[[OperationResult[Treatment]], None] | None = None,
    ) -> OperationResult[Treatment]:
        return await self._delete(
            treatments, NightscoutAPIEndpoint.TREATMENTS, UploaderEvent.DELETE_TREATMENTS, completion
        )

    # Profile records

    async def upload_profile_records(
        self,
        records: Sequence[ProfileRecord],
        completion: Callable[[PostResponse[ProfileRecord]], None] | None = None,
    ) -> PostResponse[ProfileRecord]:
        return await self._post(
            records, NightscoutAPIEndpoint.PROFILES, ProfileRecord, UploaderEvent.UPLOAD_PROFILE_RECORDS, completion
        )

    async def update_profile_records(
        self,
        records: Sequence[ProfileRecord],
        completion: Callable[[OperationResult[ProfileRecord]], None] | None = None,
    ) -> OperationResult[ProfileRecord]:
        return await self._put(records, NightscoutAPIEndpoint.PROFILES, UploaderEvent.UPDATE_PROFILE_RECORDS, completion)

    async def delete_profile_records(
        self,
        records: Sequence[ProfileRecord],
        completion: Callable[[OperationResult[ProfileRecord]], None] | None = None,
    ) -> OperationResult[ProfileRecord]:
        return await self._delete(
            records, NightscoutAPIEndpoint.PROFILES, UploaderEvent.DELETE_PROFILE_RECORDS, completion
        )

    # Private

    async def _post(
        self,
        items: Sequence[RecordT],
        endpoint: NightscoutAPIEndpoint,
        model: type[RecordT],
        event: UploaderEvent,
        completion: Callable[[PostResponse[RecordT]], None] | None,
    ) -> PostResponse[RecordT]:
        path = self._router.path(endpoint)

        async def submit(batch: list[RecordT]) -> list[RecordT]:
            payload = await self._transport.request("POST", path, json=[item.to_payload() for item in batch])
            return parse_records(model, payload)

        try:
            response = await post_batch(items, submit, operation_name=event.name.lower())
        except NightscoutError as exc:
            notify_error(self._observers, self, exc)
            raise

        notify_outcome(self._observers, self, event, response)
        if completion is not None:
            completion(response)
        return response

    async def _put(
        self,
        items: Sequence[RecordT],
        endpoint: NightscoutAPIEndpoint,
        event: UploaderEvent,
        completion: Callable[[OperationResult[RecordT]], None] | None,
    ) -> OperationResult[RecordT]:
        path = self._router.path(endpoint)

        async def put_one(item: RecordT) -> NightscoutError | None:
            payload = await self._transport.request("PUT", path, json=item.to_payload())
            check_write_acknowledged(payload, item.id)
            return None

        return await self._run(items, put_one, event, completion)

    async def _delete(
        self,
        items: Sequence[RecordT],
        endpoint: NightscoutAPIEndpoint,
        event: UploaderEvent,
        completion: Callable[[OperationResult[RecordT]], None] | None,
    ) -> OperationResult[RecordT]:
        async def delete_one(item: RecordT) -> NightscoutError | None:
            payload = await self._transport.request("DELETE", self._router.path(endpoint, item.id))
            check_write_acknowledged(payload, item.id)
            return None

        return await self._run(items, delete_one, event, completion)

    async def _run(self, items, operation, event: UploaderEvent, completion):
        result = await perform_concurrently(items, operation, operation_name=event.name.lower())
        notify_outcome(self._observers, self, event, result)
        if completion is not None:
            completion(result)
        return result
