"""Credentials for a Nightscout site."""

from __future__ import annotations

import hashlib
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from core.config import NightscoutSettings
from core.domain.errors import InvalidURLError, MissingAPISecretError


class NightscoutCredentials(BaseModel):
    """Site URL plus the optional API secret.

    Only the SHA-1 digest of the secret is ever sent over the wire
    (`api-secret` header).
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=8, description="Base URL of the site, without a trailing slash.")
    api_secret: str | None = Field(default=None, repr=False)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"not an http(s) URL: {value!r}")
        return value

    @field_validator("api_secret")
    @classmethod
    def _blank_secret_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @classmethod
    def from_settings(cls, settings: NightscoutSettings) -> "NightscoutCredentials":
        if not settings.url:
            raise InvalidURLError("No Nightscout URL configured (NIGHTSCOUT_URL).")
        try:
            return cls(url=settings.url, api_secret=settings.api_secret)
        except ValueError as exc:
            raise InvalidURLError(f"Invalid Nightscout URL: {settings.url!r}") from exc

    @property
    def hashed_secret(self) -> str | None:
        if self.api_secret is None:
            return None
        return hashlib.sha1(self.api_secret.encode("utf-8")).hexdigest()  # nosec - API contract

    def require_secret(self) -> str:
        if self.api_secret is None:
            raise MissingAPISecretError()
        return self.api_secret
