from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException

from buzzsmile.core.database import mongodb


def _collection(name: str):
    if mongodb.db is None:
        raise HTTPException(status_code=500, detail="Database not connected")
    return mongodb.db[name]


def get_users_collection():
    return _collection("users")


def get_videos_collection():
    return _collection("videos")


def to_object_id(value):
    """Return an ObjectId for `value`, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None
