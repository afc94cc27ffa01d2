"""Tests for the uploader against a fake Nightscout site."""

import hashlib
from datetime import datetime, timezone

import httpx
import pytest

from adapters.uploader import NightscoutUploader
from conftest import API_SECRET, RecordingUploaderObserver, request_json
from core.domain.errors import HTTPStatusError, ItemRejectedError, MissingAPISecretError, UnauthorizedError, UploadError
from core.domain.models import BloodGlucoseEntry, ProfileRecord, Treatment
from core.interfaces.transport import NightscoutTransport


def _uploader(site, credentials, settings):
    return NightscoutUploader(credentials, settings=settings, http_transport=site.transport)


def _echo_first(count):
    def responder(request):
        return httpx.Response(200, json=request_json(request)[:count])

    return responder


def _treatments(count):
    return [Treatment(event_type="Note", notes=f"note {i}") for i in range(count)]


class TestConstruction:
    def test_requires_api_secret(self, read_only_credentials, settings):
        with pytest.raises(MissingAPISecretError):
            NightscoutUploader(read_only_credentials, settings=settings)


class TestVerifyAuthorization:
    @pytest.mark.asyncio
    async def test_authorized(self, site, credentials, settings):
        site.on("GET", "/api/v1/experiments/test", {"ok": "ok"})
        observer = RecordingUploaderObserver()

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            await uploader.verify_authorization()

        request = site.requests[0]
        assert request.headers["api-secret"] == hashlib.sha1(API_SECRET.encode()).hexdigest()
        assert observer.names() == ["did_verify_authorization"]

    @pytest.mark.asyncio
    async def test_unauthorized(self, site, credentials, settings):
        site.on("GET", "/api/v1/experiments/test", lambda request: httpx.Response(401))
        observer = RecordingUploaderObserver()

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            with pytest.raises(UnauthorizedError):
                await uploader.verify_authorization()

        assert observer.names() == ["did_error"]


class TestUploads:
    @pytest.mark.asyncio
    async def test_items_missing_from_echo_are_rejected(self, site, credentials, settings):
        t1, t2, t3 = _treatments(3)
        site.on("POST", "/api/v1/treatments", _echo_first(2))
        observer = RecordingUploaderObserver()
        seen = []

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            response = await uploader.upload_treatments([t1, t2, t3], completion=seen.append)

        assert response.uploaded_items == frozenset({t1, t2})
        assert response.rejected_items == frozenset({t3})
        assert seen == [response]
        assert observer.payload("did_upload_treatments") == frozenset({t1, t2})
        assert observer.payload("did_fail_to_upload_treatments") == frozenset({t3})

        body = request_json(site.requests_to("POST", "/api/v1/treatments")[0])
        assert [doc["_id"] for doc in body] == [t1.id, t2.id, t3.id]

    @pytest.mark.asyncio
    async def test_upload_entries(self, site, credentials, settings):
        entry = BloodGlucoseEntry(glucose_value=120, date=datetime(2026, 10, 17, 7, 0, tzinfo=timezone.utc))
        site.on("POST", "/api/v1/entries", _echo_first(1))

        async with _uploader(site, credentials, settings) as uploader:
            response = await uploader.upload_entries([entry])

        assert response.uploaded_items == frozenset({entry})
        assert request_json(site.requests[0])[0]["sgv"] == 120

    @pytest.mark.asyncio
    async def test_upload_profile_records(self, site, credentials, settings):
        record = ProfileRecord(
            default_profile_name="Default",
            start_date=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        site.on("POST", "/api/v1/profile", _echo_first(1))

        async with _uploader(site, credentials, settings) as uploader:
            response = await uploader.upload_profile_records([record])

        assert response.uploaded_items == frozenset({record})
        assert request_json(site.requests[0])[0]["defaultProfile"] == "Default"

    @pytest.mark.asyncio
    async def test_whole_call_failure_fires_only_did_error(self, site, credentials, settings):
        site.on("POST", "/api/v1/treatments", lambda request: httpx.Response(500, text="boom"))
        observer = RecordingUploaderObserver()

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            with pytest.raises(HTTPStatusError):
                await uploader.upload_treatments(_treatments(2))

        assert observer.names() == ["did_error"]

    @pytest.mark.asyncio
    async def test_connection_failure_is_upload_error(self, site, credentials, settings):
        def responder(request):
            raise httpx.ConnectError("refused", request=request)

        site.on("POST", "/api/v1/entries", responder)

        async with _uploader(site, credentials, settings) as uploader:
            with pytest.raises(UploadError):
                await uploader.upload_entries([])


class TestPerItemOperations:
    @pytest.mark.asyncio
    async def test_update_partitions_by_item(self, site, credentials, settings):
        t1, t2, t3 = _treatments(3)
        outcomes = {
            t1.id: httpx.Response(200, json={"n": 1, "ok": 1}),
            t2.id: httpx.Response(200, json={"n": 0, "ok": 1}),
            t3.id: httpx.Response(500, text="write failed"),
        }
        site.on("PUT", "/api/v1/treatments", lambda request: outcomes[request_json(request)["_id"]])
        observer = RecordingUploaderObserver()

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            result = await uploader.update_treatments([t1, t2, t3])

        assert result.processed_items == frozenset({t1})
        assert result.rejected_items == frozenset({t2, t3})
        assert isinstance(result.error_for(t2), ItemRejectedError)
        assert isinstance(result.error_for(t3), HTTPStatusError)
        assert len(site.requests_to("PUT", "/api/v1/treatments")) == 3
        assert observer.names() == ["did_update_treatments", "did_fail_to_update_treatments"]
        assert "did_error" not in observer.names()

    @pytest.mark.asyncio
    async def test_delete_hits_item_paths(self, site, credentials, settings):
        t1, t2 = _treatments(2)
        site.on("DELETE", f"/api/v1/treatments/{t1.id}", {"n": 1, "ok": 1})
        observer = RecordingUploaderObserver()

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            result = await uploader.delete_treatments([t1, t2])

        assert result.processed_items == frozenset({t1})
        assert isinstance(result.error_for(t2), HTTPStatusError)
        assert result.error_for(t2).status_code == 404
        assert observer.payload("did_delete_treatments") == frozenset({t1})
        assert observer.payload("did_fail_to_delete_treatments") == frozenset({t2})

    @pytest.mark.asyncio
    async def test_profile_record_update_and_delete(self, site, credentials, settings):
        record = ProfileRecord(default_profile_name="Default", start_date=datetime(2026, 1, 1, tzinfo=timezone.utc))
        site.on("PUT", "/api/v1/profile", {"n": 1, "ok": 1})
        site.on("DELETE", f"/api/v1/profile/{record.id}", {"n": 1, "ok": 1})

        async with _uploader(site, credentials, settings) as uploader:
            updated = await uploader.update_profile_records([record])
            deleted = await uploader.delete_profile_records([record])

        assert updated.processed_items == frozenset({record})
        assert deleted.processed_items == frozenset({record})

    @pytest.mark.asyncio
    async def test_empty_update_sends_nothing(self, site, credentials, settings):
        observer = RecordingUploaderObserver()

        async with _uploader(site, credentials, settings) as uploader:
            uploader.subscribe(observer)
            result = await uploader.update_treatments([])

        assert result.processed_items == frozenset()
        assert site.requests == []
        assert observer.calls == []


class ScriptedTransport:
    """A `NightscoutTransport` that answers from a dict and never touches the network."""

    def __init__(self, answers):
        self.answers = answers
        self.closed = False

    async def request(self, method, path, *, query=None, json=None, headers=None):
        return self.answers[(method, path)]

    async def aclose(self):
        self.closed = True


class TestCustomTransport:
    @pytest.mark.asyncio
    async def test_transport_replaces_http_layer(self, credentials, settings):
        transport = ScriptedTransport({("PUT", "/api/v1/treatments"): {"n": 1, "ok": 1}})
        assert isinstance(transport, NightscoutTransport)
        (treatment,) = _treatments(1)

        async with NightscoutUploader(credentials, settings=settings, transport=transport) as uploader:
            result = await uploader.update_treatments([treatment])

        assert result.processed_items == frozenset({treatment})
        assert transport.closed
