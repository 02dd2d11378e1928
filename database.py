"""
MongoDB access for the loan marketplace.

The database handle lives on ``app.state.db`` and reaches handlers through the
``get_db`` dependency, so tests can hand ``create_app`` any pymongo-compatible
database (e.g. mongomock).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, Request
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

USERS = "users"
LOANS = "loans"
APPLICATIONS = "loanApplications"


def connect(url: Optional[str], name: str) -> Optional[Database]:
    """Open a client for ``url``; None when no URL is configured."""
    if not url:
        logger.warning("DATABASE_URL not set, running without a database")
        return None
    client = MongoClient(url)
    return client[name]


def get_db(request: Request) -> Database:
    db = request.app.state.db
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    if d.get("_id") is not None:
        d["_id"] = str(d["_id"])
    return d


def parse_object_id(value: str, label: str = "Document") -> ObjectId:
    """Malformed ids can never match a document, so they are reported as 404."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=f"{label} not found")


def find_by_id(db: Database, collection_name: str, doc_id: str, label: str = "Document") -> Dict[str, Any]:
    doc = db[collection_name].find_one({"_id": parse_object_id(doc_id, label)})
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    doc.pop("_id", None)
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return [to_str_id(d) for d in cursor]
