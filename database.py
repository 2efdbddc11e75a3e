"""
MongoDB access helpers.

Each schema in `schemas.py` maps to a collection named after the lowercased
class name (class User -> "user"). Documents are stored with ObjectId
references and rendered for the API with `to_public`.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, TEXT, MongoClient

from errors import DependencyError, NotFoundError
from settings import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if settings.DATABASE_URL:
    client = MongoClient(settings.DATABASE_URL)
    db = client[settings.DATABASE_NAME]


def now() -> datetime:
    return datetime.now(timezone.utc)


def collection(name: str):
    if db is None:
        raise DependencyError("Database is not configured")
    return db[name]


def to_object_id(value: Union[str, ObjectId], what: str = "id") -> ObjectId:
    """Parse an id coming from the API. Malformed ids cannot resolve to anything."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"Invalid {what}: {value}")


def to_public(doc: Optional[dict]):
    """Render a stored document as JSON-friendly data, without credentials."""
    if not doc:
        return doc
    d = {}
    for key, value in doc.items():
        if key == "password_hash":
            continue
        if key == "_id":
            key = "id"
        d[key] = _public_value(value)
    return d


def _public_value(value: Any):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return to_public(value)
    if isinstance(value, list):
        return [_public_value(v) for v in value]
    return value


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc.setdefault("updated_at", stamp)
    result = collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  projection: Optional[dict] = None, sort=None, skip: int = 0) -> List[dict]:
    cursor = collection(collection_name).find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document(collection_name: str, filter_dict: dict, projection: Optional[dict] = None) -> Optional[dict]:
    return collection(collection_name).find_one(filter_dict, projection)


def update_document(collection_name: str, filter_dict: dict, update: dict, upsert: bool = False) -> int:
    """Apply an update operator document; returns the number of matched documents."""
    if "$set" in update or upsert:
        update = dict(update)
        update["$set"] = {**update.get("$set", {}), "updated_at": now()}
    result = collection(collection_name).update_one(filter_dict, update, upsert=upsert)
    return result.matched_count


def delete_documents(collection_name: str, filter_dict: dict) -> int:
    return collection(collection_name).delete_many(filter_dict).deleted_count


def count_documents(collection_name: str, filter_dict: Optional[dict] = None) -> int:
    return collection(collection_name).count_documents(filter_dict or {})


def ensure_indexes() -> None:
    if db is None:
        logger.warning("DATABASE_URL not set, skipping index creation")
        return
    db["user"].create_index("username", unique=True)
    db["user"].create_index("email", unique=True)
    db["user"].create_index([
        ("first_name", TEXT), ("last_name", TEXT), ("username", TEXT), ("skills", TEXT),
    ])
    db["post"].create_index("author")
    db["post"].create_index([("created_at", DESCENDING)])
    db["connection"].create_index([("sender", ASCENDING), ("receiver", ASCENDING)])
    db["connection"].create_index([("receiver", ASCENDING), ("status", ASCENDING)])
    db["notification"].create_index([("receiver", ASCENDING), ("created_at", DESCENDING)])
    logger.info("Indexes ensured on database %s", db.name)
