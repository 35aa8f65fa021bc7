"""
ObjectId parsing for path parameters and request bodies.
"""

from bson import ObjectId
from fastapi import HTTPException

from app.services.mongo_service import to_object_id


def parse_object_id(value: str, label: str = "ID") -> ObjectId:
    """Convert to ObjectId or raise 400."""
    oid = to_object_id(value)
    if oid is None:
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")
    return oid
