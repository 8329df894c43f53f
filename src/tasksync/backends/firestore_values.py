# src/tasksync/backends/firestore_values.py

"""
Firestore REST typed-value codec.

Firestore's JSON API wraps every field in a typed value:
    {"stringValue": "Buy milk"}, {"booleanValue": false},
    {"timestampValue": "2026-10-17T08:00:00Z"}, {"nullValue": null}, ...

Timestamps decode to aware UTC datetimes; integers travel as strings.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from ..core.ports import DocumentData


def _format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _parse_timestamp(raw: str) -> datetime:
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s).astimezone(UTC)


def encode_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": _format_timestamp(value)}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Unsupported Firestore value type: {type(value).__name__}")


def decode_value(value: dict[str, Any]) -> Any:
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return _parse_timestamp(str(value["timestampValue"]))
    if "stringValue" in value:
        return str(value["stringValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields") or {})
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values") or []]
    # referenceValue / geoPointValue / bytesValue are not used by this app: keep the raw payload.
    return next(iter(value.values()), None)


def encode_fields(data: DocumentData) -> dict[str, Any]:
    return {k: encode_value(v) for k, v in data.items()}


def decode_fields(fields: dict[str, Any]) -> DocumentData:
    return {k: decode_value(v) for k, v in fields.items()}


def document_id(name: str) -> str:
    """Last path segment of a document resource name."""
    return name.rstrip("/").rsplit("/", 1)[-1]


def decode_document(doc: dict[str, Any]) -> tuple[str, DocumentData]:
    return document_id(str(doc.get("name") or "")), decode_fields(doc.get("fields") or {})
