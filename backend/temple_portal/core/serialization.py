"""Convert Firestore documents into JSON-safe structures."""

from datetime import date, datetime
from typing import Any, Optional


def serialize_timestamp(value: Optional[datetime]) -> Optional[str]:
    # Firestore returns DatetimeWithNanoseconds, a datetime subclass
    if value is None:
        return None
    return value.isoformat()


def serialize_data(data: Any) -> Any:
    """Recursively replace timestamps with ISO-8601 strings."""
    if data is None:
        return None

    if isinstance(data, datetime):
        return serialize_timestamp(data)

    if isinstance(data, date):
        return data.isoformat()

    if isinstance(data, (list, tuple)):
        return [serialize_data(item) for item in data]

    if isinstance(data, dict):
        return {key: serialize_data(value) for key, value in data.items()}

    return data


def snapshot_to_dict(doc) -> dict:
    """Flatten a document snapshot into `{"id": ..., **fields}`."""
    return serialize_data({"id": doc.id, **(doc.to_dict() or {})})
