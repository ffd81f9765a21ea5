"""
MongoDB access for the dealership backend.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; handlers
that need it should go through `get_db()` which turns that into a 500.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

from settings import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert one document, stamping created_at/updated_at. Returns the new id as a string."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now_utc()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = get_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None) -> list:
    cursor = get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_str_id(doc: dict):
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def is_valid_object_id(value) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def parse_object_id(value: str, label: str = "ID") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")


def get_or_404(collection_name: str, doc_id: str, label: str) -> dict:
    """Fetch a document by id; 400 on a malformed id, 404 when absent."""
    _id = parse_object_id(doc_id, f"{label} ID")
    doc = get_db()[collection_name].find_one({"_id": _id})
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


def ensure_indexes():
    if db is None:
        logger.warning("DATABASE_URL/DATABASE_NAME not set, skipping index creation")
        return
    db["user"].create_index("email", unique=True)
    db["user"].create_index("google_id", unique=True, sparse=True)
    db["car"].create_index([("brand", ASCENDING), ("model", ASCENDING)])
    db["car"].create_index("price")
    db["car"].create_index("status")
    db["session"].create_index("token", unique=True)
    db["session"].create_index("expires_at", expireAfterSeconds=0)
    logger.info("MongoDB indexes ensured")
