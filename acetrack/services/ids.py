"""ObjectId parsing helpers for ids arriving in paths and payloads."""
from __future__ import annotations

from bson.errors import InvalidId
from beanie import PydanticObjectId


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError, ValueError):
        return None
