"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Validation and JSON key mapping (`_id`, `eventType`, `created_at`, ...)
  live next to the fields instead of in hand-written parsers.
- Records are frozen: the coordinator classifies them but never mutates them.

Note:
- Identifiable records compare and hash by `id` only. Two copies of the same
  treatment with different notes are the same item for set membership, which
  is what the upload/update/delete partitions rely on.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict

from core.domain.units import BloodGlucoseUnit

IDENTIFIER_LENGTH = 24


def make_identifier() -> str:
    """New 24-character hexadecimal id, the shape Nightscout uses for `_id`."""

    return secrets.token_hex(IDENTIFIER_LENGTH // 2)


def _from_epoch_milliseconds(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return value


def _epoch_milliseconds(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class NightscoutRecord(BaseModel):
    """Base for records stored in a Nightscout collection."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(
        default_factory=make_identifier,
        alias="_id",
        min_length=1,
        description="Nightscout document id (`_id`).",
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NightscoutRecord):
            return NotImplemented
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def to_payload(self) -> dict[str, Any]:
        """JSON body sent to the API."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Entries


class EntryType(str, Enum):
    SENSOR = "sgv"
    METER = "mbg"
    CALIBRATION = "cal"


class BloodGlucoseTrend(str, Enum):
    DOUBLE_UP = "DoubleUp"
    SINGLE_UP = "SingleUp"
    FORTY_FIVE_UP = "FortyFiveUp"
    FLAT = "Flat"
    FORTY_FIVE_DOWN = "FortyFiveDown"
    SINGLE_DOWN = "SingleDown"
    DOUBLE_DOWN = "DoubleDown"
    NONE = "NONE"
    NOT_COMPUTABLE = "NOT COMPUTABLE"
    RATE_OUT_OF_RANGE = "RATE OUT OF RANGE"


class BloodGlucoseEntry(NightscoutRecord):
    """A sensor or meter glucose reading (`entries` collection).

    Nightscout stores the value under `sgv` for sensor readings and `mbg` for
    meter readings, always in mg/dL.
    """

    glucose_value: float = Field(..., gt=0, description="Glucose value in mg/dL.")
    entry_type: EntryType = Field(default=EntryType.SENSOR, alias="type")
    date: datetime = Field(..., description="Reading time (`date`, epoch milliseconds).")
    direction: BloodGlucoseTrend | None = None
    device: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _pick_glucose_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and "glucose_value" not in data:
            for key in ("sgv", "mbg"):
                if data.get(key) is not None:
                    data = {**data, "glucose_value": data[key]}
                    break
        return data

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        return _from_epoch_milliseconds(value)

    @field_validator("direction", mode="before")
    @classmethod
    def _parse_direction(cls, value: Any) -> Any:
        if value in ("", None):
            return None
        try:
            return BloodGlucoseTrend(value)
        except ValueError:
            return BloodGlucoseTrend.NOT_COMPUTABLE

    def value_in(self, units: BloodGlucoseUnit) -> float:
        return BloodGlucoseUnit.MG_DL.convert(self.glucose_value, units)

    def to_payload(self) -> dict[str, Any]:
        value_key = "mbg" if self.entry_type is EntryType.METER else "sgv"
        payload: dict[str, Any] = {
            "_id": self.id,
            "type": self.entry_type.value,
            value_key: self.glucose_value,
            "date": _epoch_milliseconds(self.date),
            "dateString": self.date.isoformat(),
        }
        if self.direction is not None:
            payload["direction"] = self.direction.value
        if self.device:
            payload["device"] = self.device
        return payload


# Treatments


class TreatmentEventType(str, Enum):
    """Event types the Nightscout care portal knows about.

    `Treatment.event_type` stays a plain string; sites are free to use others.
    """

    BG_CHECK = "BG Check"
    SNACK_BOLUS = "Snack Bolus"
    MEAL_BOLUS = "Meal Bolus"
    CORRECTION_BOLUS = "Correction Bolus"
    CARB_CORRECTION = "Carb Correction"
    COMBO_BOLUS = "Combo Bolus"
    ANNOUNCEMENT = "Announcement"
    NOTE = "Note"
    QUESTION = "Question"
    EXERCISE = "Exercise"
    SITE_CHANGE = "Site Change"
    SENSOR_START = "Sensor Start"
    SENSOR_CHANGE = "Sensor Change"
    PUMP_BATTERY_CHANGE = "Pump Battery Change"
    INSULIN_CHANGE = "Insulin Change"
    TEMP_BASAL = "Temp Basal"
    PROFILE_SWITCH = "Profile Switch"
    TEMPORARY_TARGET = "Temporary Target"


class Treatment(NightscoutRecord):
    """A care event (`treatments` collection)."""

    event_type: str = Field(..., min_length=1, alias="eventType")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float | None = Field(default=None, ge=0, description="Duration in minutes.")
    glucose: float | None = None
    glucose_type: str | None = Field(default=None, alias="glucoseType")
    units: BloodGlucoseUnit | None = None
    insulin: float | None = Field(default=None, ge=0)
    carbs: float | None = Field(default=None, ge=0)
    entered_by: str | None = Field(default=None, alias="enteredBy")
    notes: str | None = None

    @field_validator("units", mode="before")
    @classmethod
    def _parse_units(cls, value: Any) -> Any:
        if value is None or isinstance(value, BloodGlucoseUnit):
            return value
        return BloodGlucoseUnit.parse(str(value))


# Profiles


class ScheduleItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    time: str = Field(..., description="Start time of day, `HH:MM`.")
    value: float


class Profile(BaseModel):
    """One named therapy profile inside a profile record's `store`."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    dia: float | None = Field(default=None, description="Active insulin duration (hours).")
    carbs_hr: float | None = None
    timezone: str | None = None
    units: BloodGlucoseUnit | None = None
    carb_ratio: list[ScheduleItem] = Field(default_factory=list, alias="carbratio")
    sensitivity: list[ScheduleItem] = Field(default_factory=list, alias="sens")
    basal: list[ScheduleItem] = Field(default_factory=list)
    target_low: list[ScheduleItem] = Field(default_factory=list)
    target_high: list[ScheduleItem] = Field(default_factory=list)

    @field_validator("dia", "carbs_hr", mode="before")
    @classmethod
    def _parse_number_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return float(value) if value.strip() else None
        return value

    @field_validator("units", mode="before")
    @classmethod
    def _parse_units(cls, value: Any) -> Any:
        if value is None or isinstance(value, BloodGlucoseUnit):
            return value
        return BloodGlucoseUnit.parse(str(value))


class ProfileRecord(NightscoutRecord):
    """A dated set of named profiles (`profile` collection)."""

    default_profile_name: str = Field(..., min_length=1, alias="defaultProfile")
    start_date: datetime = Field(..., alias="startDate")
    profiles: dict[str, Profile] = Field(default_factory=dict, alias="store")
    units: BloodGlucoseUnit | None = None

    @field_validator("units", mode="before")
    @classmethod
    def _parse_units(cls, value: Any) -> Any:
        if value is None or isinstance(value, BloodGlucoseUnit):
            return value
        return BloodGlucoseUnit.parse(str(value))

    @property
    def default_profile(self) -> Profile | None:
        return self.profiles.get(self.default_profile_name)


# Device statuses and site status


class DeviceStatus(NightscoutRecord):
    """An uploader/pump/closed-loop report (`devicestatus` collection).

    The nested payloads differ per closed-loop system (Loop, OpenAPS), so they
    are kept as raw dictionaries.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    device: str = Field(default="unknown")
    created_at: datetime
    uploader: dict[str, Any] | None = None
    pump: dict[str, Any] | None = None
    loop: dict[str, Any] | None = None
    openaps: dict[str, Any] | None = None


class NightscoutStatus(BaseModel):
    """Site status and settings (`status` endpoint)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    name: str = Field(default="nightscout")
    version: str = Field(default="unknown")
    server_time: datetime | None = Field(default=None, alias="serverTime")
    api_enabled: bool = Field(default=False, alias="apiEnabled")
    settings: dict[str, Any] = Field(default_factory=dict)

    @property
    def units(self) -> BloodGlucoseUnit:
        return BloodGlucoseUnit.parse(self.settings.get("units"))

    @property
    def title(self) -> str:
        return str(self.settings.get("customTitle") or self.name)


class Snapshot(BaseModel):
    """Composite view of a site taken by one `snapshot` call."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="When the snapshot call started.")
    status: NightscoutStatus
    device_statuses: list[DeviceStatus] = Field(default_factory=list)
    profile_records: list[ProfileRecord] = Field(default_factory=list)
    entries: list[BloodGlucoseEntry] = Field(default_factory=list)
    treatments: list[Treatment] = Field(default_factory=list)
