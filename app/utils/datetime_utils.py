"""Datetime helpers shared by routes that compare stored timestamps."""

from datetime import datetime
from typing import Optional, Union


def parse_datetime(value: Union[datetime, str, None]) -> Optional[datetime]:
    """
    Normalise a DB timestamp to a naive UTC datetime.

    PostgreSQL returns datetime objects; sqlite hands back ISO strings.
    """
    if value is None or isinstance(value, datetime):
        if value is not None and value.tzinfo is not None:
            return value.replace(tzinfo=None) - value.utcoffset()
        return value
    text = str(value).strip().replace("Z", "+00:00")
    parsed = datetime.fromisoformat(text.replace(" ", "T", 1) if "T" not in text else text)
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def is_expired(expires_at, now: datetime = None) -> bool:
    expires = parse_datetime(expires_at)
    if expires is None:
        return False
    return (now or datetime.utcnow()) > expires
