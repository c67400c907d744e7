"""
Response validation and field extraction for admin API payloads.

Parsing failures raise ResponseParseError so callers can tell them apart
from transport failures. Field getters never raise; they fall back to a
default when a value is missing or has the wrong shape.
"""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from pbi_monitor.utils.exceptions import ResponseParseError

_FRACTION_RE = re.compile(r"(?<=\.)(\d{7,})")


def parse_json_object(body: str) -> dict[str, Any]:
    """Parse a response body that must be a JSON object."""
    try:
        parsed = json.loads(body) if body else None
    except (TypeError, ValueError) as e:
        raise ResponseParseError(
            f"Response is not valid JSON: {e}",
            expected="object",
            body=body,
        ) from e

    if not isinstance(parsed, dict):
        raise ResponseParseError(
            "Response is not a JSON object",
            expected="object",
            body=body,
        )
    return parsed


def parse_json_array(body: str, key: str = "value") -> list[dict[str, Any]]:
    """
    Parse a response body into a list of JSON objects.

    Accepts a bare array or the OData envelope ``{"value": [...]}``.
    Array members that are not objects are dropped.

    Raises:
        ResponseParseError: If the body is not JSON or holds no array
    """
    try:
        parsed = json.loads(body) if body else None
    except (TypeError, ValueError) as e:
        raise ResponseParseError(
            f"Response is not valid JSON: {e}",
            expected="array",
            body=body,
        ) from e

    if isinstance(parsed, dict):
        parsed = parsed.get(key)

    if not isinstance(parsed, list):
        raise ResponseParseError(
            f"Response does not contain a JSON array under '{key}'",
            expected="array",
            body=body,
        )
    return [item for item in parsed if isinstance(item, dict)]


def get_text(obj: dict[str, Any], field: str, default: str = "") -> str:
    value = obj.get(field)
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value).strip()


def first_text(obj: dict[str, Any], fields: Iterable[str], default: str = "") -> str:
    """Return the first non-empty text value among ``fields``."""
    for field in fields:
        value = get_text(obj, field)
        if value:
            return value
    return default


def get_guid(obj: dict[str, Any], field: str) -> str | None:
    """Return the field as a canonical lowercase GUID string, or None."""
    raw = get_text(obj, field)
    if not raw:
        return None
    try:
        return str(uuid.UUID(raw.strip("{}")))
    except ValueError:
        return None


def first_guid(obj: dict[str, Any], fields: Iterable[str]) -> str | None:
    for field in fields:
        value = get_guid(obj, field)
        if value:
            return value
    return None


def get_bool(obj: dict[str, Any], field: str, default: bool = False) -> bool:
    value = obj.get(field)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def parse_datetime(value: str) -> datetime | None:
    """Parse an ISO 8601 timestamp into naive UTC, or None."""
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # The API can emit 7 fractional digits; datetime accepts at most 6
    text = _FRACTION_RE.sub(lambda m: m.group(1)[:6], text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def get_datetime(obj: dict[str, Any], field: str) -> datetime | None:
    return parse_datetime(get_text(obj, field))
