"""
MongoDB access

The client is opened once at startup (see main.lifespan), stored on
app.state and handed to request handlers through the get_db dependency.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson.errors import InvalidId
from bson.objectid import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from settings import Settings

logger = logging.getLogger(__name__)


class DatabaseConnectionError(RuntimeError):
    """Raised when the store cannot be reached at startup."""


def connect(settings: Settings) -> MongoClient:
    """Open a client and verify the server answers. Raises DatabaseConnectionError."""
    client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
    try:
        client.admin.command("ping")
    except Exception as e:
        client.close()
        raise DatabaseConnectionError(f"MongoDB connection failed: {e}") from e
    logger.info("MongoDB connected successfully (database=%s)", settings.database_name)
    return client


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["category"].create_index([("name", ASCENDING)], unique=True)
    db["category"].create_index([("slug", ASCENDING)], unique=True)
    db["product"].create_index([("title", ASCENDING)])
    db["order"].create_index([("user_id", ASCENDING)])
    db["payment"].create_index([("order_id", ASCENDING)])
    db["review"].create_index([("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True)
    db["cart"].create_index([("user_id", ASCENDING)], unique=True)


def get_db(request: Request) -> Database:
    return request.app.state.db


# ----------------------- Helpers -----------------------

def now() -> datetime:
    return datetime.now(timezone.utc)


def to_oid(value: Any) -> Optional[ObjectId]:
    """Parse an id string. Returns None for anything that is not an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def find_by_id(db: Database, collection: str, doc_id: Any, projection: Optional[dict] = None) -> Optional[dict]:
    oid = to_oid(doc_id)
    if oid is None:
        return None
    return db[collection].find_one({"_id": oid}, projection)


def create_document(db: Database, collection: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = db[collection].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection: str, filter_dict: Optional[dict] = None, sort: Optional[list] = None) -> list:
    cursor = db[collection].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def serialize_doc(doc):
    """Make a document JSON friendly: _id -> id, ObjectId -> str, datetime -> ISO."""
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = serialize_doc(v)
            elif k == "password_hash":
                continue
            else:
                out[k] = serialize_doc(v)
        return out
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    return doc
