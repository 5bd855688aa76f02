import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def init_db(settings: Settings) -> Optional[Database]:
    """(Re)connect the module-level client from `settings`.

    No client at all when the store is switched off; callers fall back to fixtures.
    """
    global _client, db
    if _client is not None:
        _client.close()
    if settings.use_mock_data:
        _client = None
        db = None
    else:
        _client = MongoClient(settings.database_url, serverSelectionTimeoutMS=settings.db_timeout_ms)
        db = _client[settings.database_name]
    return db


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        # Auth, query and cursor failures degrade the same way as a lost connection
        logger.warning("Document store failed while trying to %s: %s", action, e)
        raise UpstreamUnavailable(f"Database unavailable: {str(e)[:80]}") from e


def get_collection(name: str) -> Collection:
    if db is None:
        raise UpstreamUnavailable("Database not configured")
    return db[name]


def create_document(collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    col = get_collection(collection_name)
    now = now_iso()
    data.setdefault("createdAt", now)
    data["updatedAt"] = now
    with store_errors(f"insert into {collection_name}"):
        result = col.insert_one(data)
        inserted = col.find_one({"_id": result.inserted_id})
    inserted["id"] = str(inserted.pop("_id"))
    return inserted


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    col = get_collection(collection_name)
    docs: List[Dict[str, Any]] = []
    with store_errors(f"read {collection_name}"):
        cursor = col.find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        for d in cursor:
            d["id"] = str(d.pop("_id"))
            docs.append(d)
    return docs


def count_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    col = get_collection(collection_name)
    with store_errors(f"count {collection_name}"):
        return col.count_documents(filter_dict or {})


def distinct_values(collection_name: str, field: str) -> List[Any]:
    col = get_collection(collection_name)
    with store_errors(f"read distinct {field} from {collection_name}"):
        return col.distinct(field)


def aggregate_documents(collection_name: str, pipeline: List[Dict[str, Any]], **kwargs: Any) -> List[Dict[str, Any]]:
    col = get_collection(collection_name)
    with store_errors(f"aggregate {collection_name}"):
        return list(col.aggregate(pipeline, **kwargs))


def update_document(collection_name: str, filter_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> int:
    """$set `update_dict` on the first match. Returns the matched count."""
    col = get_collection(collection_name)
    update_dict["updatedAt"] = now_iso()
    with store_errors(f"update {collection_name}"):
        res = col.update_one(filter_dict, {"$set": update_dict})
    return res.matched_count


def increment_field(collection_name: str, filter_dict: Dict[str, Any], field: str, amount: int = 1) -> int:
    col = get_collection(collection_name)
    with store_errors(f"update {collection_name}"):
        res = col.update_one(filter_dict, {"$inc": {field: amount}})
    return res.matched_count


def delete_documents(collection_name: str, filter_dict: Dict[str, Any]) -> int:
    col = get_collection(collection_name)
    with store_errors(f"delete from {collection_name}"):
        res = col.delete_many(filter_dict)
    return res.deleted_count


def list_collections() -> List[str]:
    if db is None:
        return []
    with store_errors("list collections"):
        return db.list_collection_names()
