import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import DATABASE_NAME, DATABASE_URL
from errors import RemoteError, ValidationError

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "users": "users",
    "accounts": "accounts",
    "sessions": "sessions",
    "menu_items": "menu_items",
    "orders": "orders",
    "reservations": "reservations",
    "daily_menus": "daily_menus",
    "feedback": "feedback",
    "tables": "tables",
}

_client: Optional[MongoClient] = None
_db = None


def get_db():
    global _client, _db
    if _db is None:
        _client = MongoClient(DATABASE_URL)
        _db = _client[DATABASE_NAME]
        ensure_indexes(_db)
    return _db


def use_database(database) -> None:
    """Point every collection helper at ``database`` (a pymongo Database or
    anything that quacks like one). ``None`` resets to the lazy default."""
    global _db
    _db = database
    if database is not None:
        ensure_indexes(database)


def ensure_indexes(database) -> None:
    with _remote_call("ensure_indexes"):
        database[COLLECTIONS["accounts"]].create_index([("email", ASCENDING)], unique=True)
        database[COLLECTIONS["users"]].create_index([("user_id", ASCENDING)], unique=True)


def collection(name: str) -> Collection:
    return get_db()[COLLECTIONS.get(name, name)]


@contextmanager
def _remote_call(action: str):
    try:
        yield
    except DuplicateKeyError as e:
        logger.error(f"[{action}] duplicate key: {e}")
        raise RemoteError("Document already exists", code=RemoteError.DUPLICATE_KEY) from e
    except PyMongoError as e:
        logger.error(f"[{action}] store error: {e}")
        raise RemoteError(f"Document store error: {e}") from e


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid id format")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    data = {
        **data,
        "created_at": data.get("created_at") or now,
        "updated_at": now,
    }
    with _remote_call(f"create {collection_name}"):
        res = collection(collection_name).insert_one(data)
    data["_id"] = res.inserted_id
    return serialize(data)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    with _remote_call(f"list {collection_name}"):
        cursor = collection(collection_name).find(filter_dict or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return [serialize(doc) for doc in cursor]


def find_document(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    with _remote_call(f"find {collection_name}"):
        return serialize(collection(collection_name).find_one(filter_dict))


def get_document(collection_name: str, document_id: str) -> Optional[Dict[str, Any]]:
    return find_document(collection_name, {"_id": to_object_id(document_id)})


def update_document(collection_name: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    _id = to_object_id(document_id)
    with _remote_call(f"update {collection_name}"):
        res = collection(collection_name).update_one(
            {"_id": _id}, {"$set": {**data, "updated_at": datetime.now(timezone.utc)}}
        )
        if res.matched_count == 0:
            raise RemoteError(f"Document {document_id} not found in {collection_name}", code="not_found")
        return serialize(collection(collection_name).find_one({"_id": _id}))


def delete_document(collection_name: str, document_id: str) -> bool:
    _id = to_object_id(document_id)
    with _remote_call(f"delete {collection_name}"):
        res = collection(collection_name).delete_one({"_id": _id})
    return res.deleted_count > 0


def count_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    with _remote_call(f"count {collection_name}"):
        return collection(collection_name).count_documents(filter_dict or {})
