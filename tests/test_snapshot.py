"""Tests for the concurrent snapshot join."""

import asyncio
from datetime import datetime, timezone

import pytest

from core.domain.errors import FetchError, HTTPStatusError
from core.domain.models import BloodGlucoseEntry, NightscoutStatus
from core.services.snapshot import SnapshotFetchers, take_snapshot

FIXED_NOW = datetime(2026, 10, 17, 8, 30, tzinfo=timezone.utc)


def _returning(value, delay=0.0, finished=None, name=None):
    async def fetch():
        await asyncio.sleep(delay)
        if finished is not None:
            finished.append(name)
        return value

    return fetch


def _raising(error, delay=0.0, finished=None, name=None):
    async def fetch():
        await asyncio.sleep(delay)
        if finished is not None:
            finished.append(name)
        raise error

    return fetch


def _fetchers(**overrides):
    entry = BloodGlucoseEntry(glucose_value=110, date=FIXED_NOW)
    defaults = dict(
        status=_returning(NightscoutStatus(name="site", version="15.0.2")),
        device_statuses=_returning([]),
        profile_records=_returning([]),
        entries=_returning([entry]),
        treatments=_returning([]),
    )
    defaults.update(overrides)
    return SnapshotFetchers(**defaults)


class TestTakeSnapshot:
    @pytest.mark.asyncio
    async def test_all_fetches_succeed(self):
        seen = []

        snapshot = await take_snapshot(_fetchers(), completion=seen.append, clock=lambda: FIXED_NOW)

        assert snapshot.timestamp == FIXED_NOW
        assert snapshot.status.version == "15.0.2"
        assert len(snapshot.entries) == 1
        assert seen == [snapshot]

    @pytest.mark.asyncio
    async def test_one_failure_fails_the_snapshot_after_all_fetches_finish(self):
        finished = []
        error = HTTPStatusError(500, "boom")
        fetchers = _fetchers(
            status=_returning(NightscoutStatus(), 0.01, finished, "status"),
            profile_records=_raising(error, 0.0, finished, "profile_records"),
            treatments=_returning([], 0.02, finished, "treatments"),
        )
        seen = []

        with pytest.raises(HTTPStatusError) as excinfo:
            await take_snapshot(fetchers, completion=seen.append)

        assert excinfo.value is error
        assert set(finished) == {"status", "profile_records", "treatments"}
        assert seen == []

    @pytest.mark.asyncio
    async def test_first_recorded_error_wins(self):
        early = FetchError(ConnectionError("first"))
        late = HTTPStatusError(503)
        fetchers = _fetchers(
            entries=_raising(late, 0.02),
            device_statuses=_raising(early, 0.0),
        )

        with pytest.raises(FetchError) as excinfo:
            await take_snapshot(fetchers)

        assert excinfo.value is early

    @pytest.mark.asyncio
    async def test_timestamp_taken_before_fetches(self):
        ticks = []

        def clock():
            ticks.append("clock")
            return FIXED_NOW

        async def status():
            ticks.append("status")
            return NightscoutStatus()

        await take_snapshot(_fetchers(status=status), clock=clock)

        assert ticks == ["clock", "status"]
