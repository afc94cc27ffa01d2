"""Tests for the downloader and snapshot against a fake Nightscout site."""

from datetime import datetime, timezone

import httpx
import pytest

from adapters.downloader import NightscoutDownloader
from conftest import RecordingDownloaderObserver
from core.domain.errors import DataParsingError, HTTPStatusError

STATUS = {
    "name": "nightscout",
    "version": "15.0.2",
    "serverTime": "2026-10-17T08:00:00.000Z",
    "apiEnabled": True,
    "settings": {"units": "mmol", "customTitle": "Test site"},
}
ENTRIES = [
    {"_id": "e1", "sgv": 110, "type": "sgv", "date": 1792220400000, "direction": "Flat"},
    {"_id": "e2", "sgv": 115, "type": "sgv", "date": 1792220700000, "direction": "FortyFiveUp"},
]
TREATMENTS = [{"_id": "t1", "eventType": "Meal Bolus", "created_at": "2026-10-17T07:00:00Z", "insulin": 3, "carbs": 30}]
PROFILES = [{"_id": "p1", "defaultProfile": "Default", "startDate": "2026-01-01T00:00:00Z", "store": {"Default": {}}}]
DEVICE_STATUSES = [{"_id": "d1", "device": "loop://iPhone", "created_at": "2026-10-17T07:55:00Z", "uploader": {"battery": 80}}]


def _serve_site(site):
    site.on("GET", "/api/v1/status", STATUS)
    site.on("GET", "/api/v1/entries", ENTRIES)
    site.on("GET", "/api/v1/treatments", TREATMENTS)
    site.on("GET", "/api/v1/profile", PROFILES)
    site.on("GET", "/api/v1/devicestatus", DEVICE_STATUSES)


def _downloader(site, credentials, settings):
    return NightscoutDownloader(credentials, settings=settings, http_transport=site.transport)


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_collects_all_five_fetches(self, site, read_only_credentials, settings):
        _serve_site(site)
        observer = RecordingDownloaderObserver()
        seen = []

        async with _downloader(site, read_only_credentials, settings) as downloader:
            downloader.subscribe(observer)
            snapshot = await downloader.snapshot(recent_entry_count=2, completion=seen.append)

        assert snapshot.status.title == "Test site"
        assert [entry.id for entry in snapshot.entries] == ["e1", "e2"]
        assert snapshot.treatments[0].insulin == 3
        assert snapshot.profile_records[0].default_profile_name == "Default"
        assert snapshot.device_statuses[0].uploader == {"battery": 80}
        assert seen == [snapshot]
        assert observer.names()[-1] == "did_take_snapshot"
        assert set(observer.names()[:-1]) == {
            "did_fetch_status",
            "did_fetch_entries",
            "did_fetch_treatments",
            "did_fetch_profile_records",
            "did_fetch_device_statuses",
        }

        entries_request = site.requests_to("GET", "/api/v1/entries")[0]
        assert entries_request.url.params["count"] == "2"
        # Counts not given fall back to the configured recent count.
        assert site.requests_to("GET", "/api/v1/treatments")[0].url.params["count"] == "5"

    @pytest.mark.asyncio
    async def test_failed_fetch_fails_snapshot(self, site, read_only_credentials, settings):
        _serve_site(site)
        site.on("GET", "/api/v1/profile", lambda request: httpx.Response(500, text="boom"))
        observer = RecordingDownloaderObserver()

        async with _downloader(site, read_only_credentials, settings) as downloader:
            downloader.subscribe(observer)
            with pytest.raises(HTTPStatusError):
                await downloader.snapshot()

        assert len(site.requests) == 5
        assert observer.names().count("did_error") == 1
        assert "did_take_snapshot" not in observer.names()


class TestFetches:
    @pytest.mark.asyncio
    async def test_fetch_entries_by_date(self, site, read_only_credentials, settings):
        _serve_site(site)
        start = datetime(2026, 10, 17, 0, 0, tzinfo=timezone.utc)
        end = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

        async with _downloader(site, read_only_credentials, settings) as downloader:
            entries = await downloader.fetch_entries(start, end, max_count=50)

        params = site.requests[0].url.params
        assert params["count"] == "50"
        assert params["find[date][$gte]"] == str(int(start.timestamp() * 1000))
        assert params["find[date][$lte]"] == str(int(end.timestamp() * 1000))
        assert len(entries) == 2

    @pytest.mark.asyncio
    async def test_fetch_treatments_by_event_type(self, site, read_only_credentials, settings):
        _serve_site(site)

        async with _downloader(site, read_only_credentials, settings) as downloader:
            treatments = await downloader.fetch_most_recent_treatments(event_type="Meal Bolus", count=3)

        params = site.requests[0].url.params
        assert params["find[eventType]"] == "Meal Bolus"
        assert params["count"] == "3"
        assert treatments[0].event_type == "Meal Bolus"

    @pytest.mark.asyncio
    async def test_fetch_device_statuses_by_date(self, site, read_only_credentials, settings):
        _serve_site(site)
        start = datetime(2026, 10, 17, 0, 0, tzinfo=timezone.utc)
        end = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

        async with _downloader(site, read_only_credentials, settings) as downloader:
            statuses = await downloader.fetch_device_statuses(start, end)

        params = site.requests[0].url.params
        assert params["find[created_at][$gte]"] == "2026-10-17T00:00:00Z"
        assert statuses[0].device == "loop://iPhone"

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_data_parsing_error(self, site, read_only_credentials, settings):
        site.on("GET", "/api/v1/entries", {"error": "not a list"})
        observer = RecordingDownloaderObserver()

        async with _downloader(site, read_only_credentials, settings) as downloader:
            downloader.subscribe(observer)
            with pytest.raises(DataParsingError):
                await downloader.fetch_most_recent_entries()

        assert observer.names() == ["did_error"]
        assert "api-secret" not in site.requests[0].headers
