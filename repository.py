import copy
import re
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from bson import ObjectId

import database
from errors import NotFoundError
from schemas import POPULARITY_WEIGHTS, popularity_score

POSTER_COLLECTION = "poster"
SORT_FIELDS = ("price", "popularity", "title", "artist", "createdAt")
DEFAULT_PRICE_RANGE = {"min": 0, "max": 100}


# -------------------- Filter evaluation --------------------

def _values_at(doc: Any, path: str) -> List[Any]:
    """Candidate values at a dotted path. Arrays match on any element."""
    current = [doc]
    for part in path.split("."):
        nxt = []
        for item in current:
            if isinstance(item, dict) and part in item:
                nxt.append(item[part])
            elif isinstance(item, list):
                nxt.extend(el[part] for el in item if isinstance(el, dict) and part in el)
        current = nxt
        if not current:
            return []
    out: List[Any] = []
    for value in current:
        if isinstance(value, list):
            out.extend(value)
        out.append(value)
    return out


def _equals(value: Any, expected: Any) -> bool:
    if isinstance(expected, re.Pattern):
        return isinstance(value, str) and expected.search(value) is not None
    return value == expected


def _compare(values: Iterable[Any], op: str, operand: Any) -> bool:
    for value in values:
        if value is None or isinstance(value, (list, dict)):
            continue
        try:
            if op == "$gte" and value >= operand:
                return True
            if op == "$gt" and value > operand:
                return True
            if op == "$lte" and value <= operand:
                return True
            if op == "$lt" and value < operand:
                return True
        except TypeError:
            continue
    return False


def _match_condition(values: List[Any], condition: Any) -> bool:
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            if op in ("$gte", "$gt", "$lte", "$lt"):
                if not _compare(values, op, operand):
                    return False
            elif op == "$in":
                if not any(_equals(v, expected) for v in values for expected in operand):
                    return False
            elif op == "$ne":
                if any(_equals(v, operand) for v in values):
                    return False
            elif op == "$exists":
                if bool(values) != bool(operand):
                    return False
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        return True
    if not values:
        return condition is None
    return any(_equals(v, condition) for v in values)


def matches(doc: Dict[str, Any], filter_dict: Optional[Dict[str, Any]]) -> bool:
    for key, condition in (filter_dict or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif not _match_condition(_values_at(doc, key), condition):
            return False
    return True


# -------------------- Sorting --------------------

def localized_text(value: Any, language: str) -> str:
    if isinstance(value, dict):
        return value.get(language) or value.get("en") or ""
    return value or ""


def sort_value(doc: Dict[str, Any], sort_by: str, language: str = "en") -> Any:
    if sort_by == "price":
        return float((doc.get("pricing") or {}).get("basePrice") or 0)
    if sort_by == "popularity":
        return popularity_score(doc.get("stats"))
    if sort_by == "title":
        return localized_text(doc.get("title"), language).lower()
    if sort_by == "artist":
        return (doc.get("artist") or "").lower()
    return doc.get("createdAt") or ""


def sort_expression(sort_by: str, language: str = "en") -> Any:
    """Aggregation expression computing the same key as `sort_value`."""
    if sort_by == "price":
        return {"$ifNull": ["$pricing.basePrice", 0]}
    if sort_by == "popularity":
        return {
            "$add": [
                {"$multiply": [{"$ifNull": [f"$stats.{name}", 0]}, weight]}
                for name, weight in POPULARITY_WEIGHTS.items()
            ]
        }
    if sort_by == "title":
        if language == "en":
            return {"$toLower": "$title.en"}
        localized = f"$title.{language}"
        return {
            "$toLower": {
                "$cond": [
                    {"$gt": [{"$strLenCP": {"$ifNull": [localized, ""]}}, 0]},
                    localized,
                    "$title.en",
                ]
            }
        }
    if sort_by == "artist":
        return {"$toLower": {"$ifNull": ["$artist", ""]}}
    return {"$ifNull": ["$createdAt", ""]}


def build_pipeline(
    filter_dict: Dict[str, Any],
    sort_by: str,
    descending: bool,
    language: str,
    skip: int,
    limit: Optional[int],
) -> List[Dict[str, Any]]:
    pipeline: List[Dict[str, Any]] = [
        {"$match": filter_dict},
        {"$addFields": {"_sortKey": sort_expression(sort_by, language)}},
        {"$sort": {"_sortKey": -1 if descending else 1, "_id": 1}},
    ]
    if skip:
        pipeline.append({"$skip": skip})
    if limit:
        pipeline.append({"$limit": limit})
    pipeline.append({"$project": {"_sortKey": 0}})
    return pipeline


def _price_range(prices: List[float]) -> Dict[str, float]:
    if not prices:
        return dict(DEFAULT_PRICE_RANGE)
    return {"min": min(prices), "max": max(prices)}


# -------------------- Repositories --------------------

class PosterRepository:
    """Query interface shared by the MongoDB store and the in-process fixtures."""

    def new_id(self) -> str:
        raise NotImplementedError

    def find(
        self,
        filter_dict: Dict[str, Any],
        sort_by: str = "createdAt",
        descending: bool = True,
        language: str = "en",
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def count(self, filter_dict: Dict[str, Any]) -> int:
        raise NotImplementedError

    def facets(self) -> Dict[str, Any]:
        raise NotImplementedError

    def get(self, poster_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def insert(self, poster_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(self, poster_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def delete(self, poster_id: str) -> None:
        raise NotImplementedError

    def increment(self, poster_id: str, field: str, amount: int = 1) -> None:
        raise NotImplementedError


class MemoryPosterRepository(PosterRepository):
    def __init__(self, docs: Optional[Iterable[Dict[str, Any]]] = None):
        self._docs: Dict[str, Dict[str, Any]] = {}
        for doc in docs or []:
            doc = copy.deepcopy(doc)
            poster_id = str(doc.pop("id", None) or self.new_id())
            self._docs[poster_id] = doc

    def new_id(self) -> str:
        return uuid4().hex

    def _out(self, poster_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        out = copy.deepcopy(doc)
        out["id"] = poster_id
        return out

    def _require(self, poster_id: str) -> Dict[str, Any]:
        doc = self._docs.get(poster_id)
        if doc is None:
            raise NotFoundError("Poster not found")
        return doc

    def find(self, filter_dict, sort_by="createdAt", descending=True, language="en", skip=0, limit=None):
        hits = sorted(
            (poster_id, doc) for poster_id, doc in self._docs.items() if matches(doc, filter_dict)
        )
        hits.sort(key=lambda item: sort_value(item[1], sort_by, language), reverse=descending)
        end = skip + limit if limit else None
        return [self._out(poster_id, doc) for poster_id, doc in hits[skip:end]]

    def count(self, filter_dict):
        return sum(1 for doc in self._docs.values() if matches(doc, filter_dict))

    def facets(self):
        docs = list(self._docs.values())
        prices = [
            float(d["pricing"]["basePrice"])
            for d in docs
            if (d.get("pricing") or {}).get("basePrice") is not None
        ]
        return {
            "categories": sorted({d["category"] for d in docs if d.get("category")}),
            "artists": sorted({d["artist"] for d in docs if d.get("artist")}),
            "priceRange": _price_range(prices),
        }

    def get(self, poster_id):
        return self._out(poster_id, self._require(poster_id))

    def insert(self, poster_id, doc):
        now = database.now_iso()
        doc = copy.deepcopy(doc)
        doc.pop("id", None)
        doc.setdefault("createdAt", now)
        doc["updatedAt"] = now
        self._docs[poster_id] = doc
        return self._out(poster_id, doc)

    def update(self, poster_id, fields):
        doc = self._require(poster_id)
        doc.update(copy.deepcopy(fields))
        doc["updatedAt"] = database.now_iso()
        return self._out(poster_id, doc)

    def delete(self, poster_id):
        self._require(poster_id)
        del self._docs[poster_id]

    def increment(self, poster_id, field, amount=1):
        target = self._require(poster_id)
        *parents, leaf = field.split(".")
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = (target.get(leaf) or 0) + amount


class MongoPosterRepository(PosterRepository):
    def __init__(self, collection: str = POSTER_COLLECTION):
        self.collection = collection

    def new_id(self) -> str:
        return str(ObjectId())

    @staticmethod
    def _oid(poster_id: str) -> ObjectId:
        # A malformed id cannot exist in the collection
        if not ObjectId.is_valid(poster_id):
            raise NotFoundError("Poster not found")
        return ObjectId(poster_id)

    @staticmethod
    def _out(doc: Dict[str, Any]) -> Dict[str, Any]:
        if "_id" in doc:
            doc["id"] = str(doc.pop("_id"))
        return doc

    def find(self, filter_dict, sort_by="createdAt", descending=True, language="en", skip=0, limit=None):
        pipeline = build_pipeline(filter_dict, sort_by, descending, language, skip, limit)
        docs = database.aggregate_documents(self.collection, pipeline)
        return [self._out(d) for d in docs]

    def count(self, filter_dict):
        return database.count_documents(self.collection, filter_dict)

    def facets(self):
        stats = database.aggregate_documents(
            self.collection,
            [{"$group": {"_id": None, "min": {"$min": "$pricing.basePrice"}, "max": {"$max": "$pricing.basePrice"}}}],
        )
        if stats and stats[0].get("min") is not None:
            price_range = {"min": stats[0]["min"], "max": stats[0]["max"]}
        else:
            price_range = dict(DEFAULT_PRICE_RANGE)
        return {
            "categories": sorted(v for v in database.distinct_values(self.collection, "category") if v),
            "artists": sorted(v for v in database.distinct_values(self.collection, "artist") if v),
            "priceRange": price_range,
        }

    def get(self, poster_id):
        docs = database.get_documents(self.collection, {"_id": self._oid(poster_id)}, limit=1)
        if not docs:
            raise NotFoundError("Poster not found")
        return docs[0]

    def insert(self, poster_id, doc):
        doc = dict(doc)
        doc.pop("id", None)
        doc["_id"] = ObjectId(poster_id)
        return database.create_document(self.collection, doc)

    def update(self, poster_id, fields):
        matched = database.update_document(self.collection, {"_id": self._oid(poster_id)}, dict(fields))
        if not matched:
            raise NotFoundError("Poster not found")
        return self.get(poster_id)

    def delete(self, poster_id):
        deleted = database.delete_documents(self.collection, {"_id": self._oid(poster_id)})
        if not deleted:
            raise NotFoundError("Poster not found")

    def increment(self, poster_id, field, amount=1):
        if not database.increment_field(self.collection, {"_id": self._oid(poster_id)}, field, amount):
            raise NotFoundError("Poster not found")
