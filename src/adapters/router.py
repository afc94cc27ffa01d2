"""Nightscout REST routing: endpoints, query items and request headers.

All routes live under `/api/v1/`. Query filters use Nightscout's
`find[<property>][$<op>]=<value>` convention.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from core.domain.credentials import NightscoutCredentials

API_VERSION = "v1"


class NightscoutAPIEndpoint(str, Enum):
    ENTRIES = "entries"
    TREATMENTS = "treatments"
    PROFILES = "profile"
    STATUS = "status"
    DEVICE_STATUS = "devicestatus"
    AUTHORIZATION = "experiments/test"


class ComparisonOperator(str, Enum):
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    EQUAL = ""
    GREATER_THAN_OR_EQUAL = "gte"
    GREATER_THAN = "gt"


def _utc_time_string(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


@dataclass(frozen=True)
class QueryItem:
    name: str
    value: str

    def as_tuple(self) -> tuple[str, str]:
        return (self.name, self.value)

    @classmethod
    def count(cls, count: int) -> "QueryItem":
        return cls("count", str(count))

    @classmethod
    def find(cls, prop: str, operator: ComparisonOperator, value: str) -> "QueryItem":
        suffix = f"[${operator.value}]" if operator is not ComparisonOperator.EQUAL else ""
        return cls(f"find[{prop}]{suffix}", value)

    # Entries are filtered on `date` (epoch milliseconds).
    @classmethod
    def entry_dates(cls, start: datetime, end: datetime) -> list["QueryItem"]:
        def millis(value: datetime) -> str:
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return str(int(value.timestamp() * 1000))

        return [
            cls.find("date", ComparisonOperator.GREATER_THAN_OR_EQUAL, millis(start)),
            cls.find("date", ComparisonOperator.LESS_THAN_OR_EQUAL, millis(end)),
        ]

    @classmethod
    def treatment_event_type(cls, event_type: str) -> "QueryItem":
        return cls.find("eventType", ComparisonOperator.EQUAL, event_type)

    @classmethod
    def treatment_dates(cls, start: datetime, end: datetime) -> list["QueryItem"]:
        return [
            cls.find("created_at", ComparisonOperator.GREATER_THAN_OR_EQUAL, f"{_utc_time_string(start)}.000Z"),
            cls.find("created_at", ComparisonOperator.LESS_THAN_OR_EQUAL, f"{_utc_time_string(end)}.000Z"),
        ]

    @classmethod
    def device_status_dates(cls, start: datetime, end: datetime) -> list["QueryItem"]:
        return [
            cls.find("created_at", ComparisonOperator.GREATER_THAN_OR_EQUAL, f"{_utc_time_string(start)}Z"),
            cls.find("created_at", ComparisonOperator.LESS_THAN_OR_EQUAL, f"{_utc_time_string(end)}Z"),
        ]


class NightscoutRouter:
    """Builds paths (relative to the site URL) and headers for API calls."""

    def __init__(self, credentials: NightscoutCredentials) -> None:
        self._credentials = credentials

    @property
    def base_url(self) -> str:
        return self._credentials.url

    def path(self, endpoint: NightscoutAPIEndpoint, *components: str) -> str:
        parts = ["api", API_VERSION, endpoint.value, *components]
        return "/" + "/".join(part.strip("/") for part in parts)

    def url(self, endpoint: NightscoutAPIEndpoint, *components: str) -> str:
        return self.base_url + self.path(endpoint, *components)

    def headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        hashed = self._credentials.hashed_secret
        if hashed is not None:
            headers["api-secret"] = hashed
        return headers

    @staticmethod
    def query(items: list[QueryItem]) -> list[tuple[str, str]]:
        return [item.as_tuple() for item in items]
