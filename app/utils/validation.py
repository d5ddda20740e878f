"""
Input validation helpers shared by the application services.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId

from app.domain.errors import InvalidRequestError


def parse_object_id(value: Any, code: str = "invalid_id") -> ObjectId:
    """
    Convert a path/query value into an ObjectId.

    Raises:
        InvalidRequestError: If the value is not a 24-hex-digit id
    """
    text = "" if value is None else str(value)
    if not ObjectId.is_valid(text):
        raise InvalidRequestError(f"Invalid id: {text!r}", code=code)
    try:
        return ObjectId(text)
    except (InvalidId, TypeError):
        raise InvalidRequestError(f"Invalid id: {text!r}", code=code)


def clean_text(value: Optional[Any]) -> str:
    return "" if value is None else str(value).strip()


def clean_varieties(values: Optional[list[Any]]) -> list[str]:
    """Trimmed, non-empty, de-duplicated variety names in first-seen order."""
    seen: list[str] = []
    for value in values or []:
        name = clean_text(value)
        if name and name not in seen:
            seen.append(name)
    return seen


def parse_stac_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a STAC ``properties.datetime`` string; None if absent or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
