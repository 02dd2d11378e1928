"""Filter builders and pagination for list endpoints."""
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING
from pymongo.collection import Collection

from database import to_str_id


def _contains(text: str) -> Dict[str, str]:
    # user input is matched literally
    return {"$regex": re.escape(text), "$options": "i"}


def loan_filter(search: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if search:
        query["loanTitle"] = _contains(search)
    if category:
        query["category"] = category
    return query


def user_filter(
    exclude_email: str,
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {"email": {"$ne": exclude_email}}
    if search:
        query["$or"] = [{"name": _contains(search)}, {"email": _contains(search)}]
    if role:
        query["role"] = role
    if status:
        query["status"] = status
    return query


def application_filter(status: Optional[str] = None, search: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if search:
        query["$or"] = [{"userEmail": _contains(search)}, {"loanTitle": _contains(search)}]
    return query


def paginate(
    collection: Collection,
    query: Dict[str, Any],
    page: int,
    limit: int,
) -> Tuple[List[Dict[str, Any]], int]:
    """Return one page of ``query`` (newest first) and the total match count."""
    skip = (page - 1) * limit
    cursor = collection.find(query).sort("_id", DESCENDING).skip(skip).limit(limit)
    items = [to_str_id(d) for d in cursor]
    total = collection.count_documents(query)
    return items, total
