"""Decoding of API payloads into domain records.

Everything here turns "valid JSON, wrong shape" into `DataParsingError` so
callers only ever see the `NightscoutError` taxonomy.
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from core.domain.errors import DataParsingError, ItemRejectedError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _raw(payload: Any) -> str:
    try:
        return json.dumps(payload)[:2000]
    except (TypeError, ValueError):
        return repr(payload)[:2000]


def parse_record(model: type[ModelT], payload: Any) -> ModelT:
    if not isinstance(payload, dict):
        raise DataParsingError(_raw(payload), f"Expected a JSON object for {model.__name__}.")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DataParsingError(_raw(payload), f"{model.__name__}: {exc.error_count()} invalid field(s).") from exc


def parse_records(model: type[ModelT], payload: Any) -> list[ModelT]:
    if not isinstance(payload, list):
        raise DataParsingError(_raw(payload), f"Expected a JSON array of {model.__name__}.")
    return [parse_record(model, item) for item in payload]


def check_write_acknowledged(payload: Any, item_id: str) -> None:
    """Raise `ItemRejectedError` when a PUT/DELETE touched no document.

    Nightscout answers writes with a MongoDB result such as
    `{"n": 1, "ok": 1}`; `n == 0` means the id did not match anything.
    """

    if not isinstance(payload, dict):
        return
    if payload.get("ok") == 0:
        raise ItemRejectedError(item_id, str(payload.get("errmsg") or "write not acknowledged"))
    count = payload.get("n")
    nested = payload.get("result")
    if count is None and isinstance(nested, dict):
        count = nested.get("n")
    if count == 0:
        raise ItemRejectedError(item_id, "no matching document")
