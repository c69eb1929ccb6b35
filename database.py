"""
MongoDB helpers.

Collections are named after the lowercased schema class:
- User -> "user" collection
- Product -> "product" collection
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings
from errors import NotFound

logger = logging.getLogger(__name__)


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url)
    logger.info("Connecting to database %s", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    data_dict["created_at"] = now_utc()
    data_dict["updated_at"] = now_utc()
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None) -> List[dict]:
    return list(db[collection_name].find(filter_dict or {}))


def to_object_id(value: str) -> ObjectId:
    # Malformed ids can never resolve, so they are reported like a missing record
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFound("Resource not found")


def serialize_document(doc: dict) -> dict:
    if not doc:
        return doc
    doc = {**doc}
    if doc.get("_id") is not None:
        doc["id"] = str(doc.pop("_id"))
    return doc
