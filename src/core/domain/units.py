"""Blood glucose units used across Nightscout records.

Kept in the domain layer so models, the HTTP adapters and the CLI share one
definition without circular imports.
"""

from __future__ import annotations

from enum import Enum

MILLIGRAMS_PER_MILLIMOLE = 18.0


class BloodGlucoseUnit(str, Enum):
    """Units accepted by the Nightscout API (`units` key)."""

    MG_DL = "mg/dl"
    MMOL_L = "mmol"

    @classmethod
    def default(cls) -> "BloodGlucoseUnit":
        """Return the unit Nightscout assumes when a record omits it."""

        return cls.MG_DL

    @classmethod
    def parse(cls, raw: str | None) -> "BloodGlucoseUnit":
        """Lenient parsing for the spellings seen in the wild (`mg/dL`, `mmol/L`)."""

        if not raw:
            return cls.default()
        value = raw.strip().lower()
        if value.startswith("mmol"):
            return cls.MMOL_L
        return cls.MG_DL

    def convert(self, value: float, to: "BloodGlucoseUnit") -> float:
        if self is to:
            return value
        if to is BloodGlucoseUnit.MMOL_L:
            return value / MILLIGRAMS_PER_MILLIMOLE
        return value * MILLIGRAMS_PER_MILLIMOLE

    def label(self) -> str:
        """Human readable label for tables and logging."""

        return "mmol/L" if self is BloodGlucoseUnit.MMOL_L else "mg/dL"
