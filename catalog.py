import logging
import math
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, UpstreamUnavailable, ValidationError
from fixtures import poster_fixtures
from repository import MemoryPosterRepository, PosterRepository, localized_text
from schemas import PosterCreate, PosterUpdate, Stats, discounted_price, popularity_score, savings
from uploads import remove_poster_uploads, save_upload

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "title",
    "description",
    "artist",
    "category",
    "dimensions.width",
    "dimensions.height",
    "pricing.basePrice",
)
# Never written through update()
IGNORED_UPDATE_FIELDS = {"id", "_id", "createdAt", "updatedAt"}


class PosterQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1)
    category: Optional[str] = None
    artist: Optional[str] = None
    min_price: Optional[float] = Field(None, alias="minPrice")
    max_price: Optional[float] = Field(None, alias="maxPrice")
    tags: List[str] = Field(default_factory=list)
    search: Optional[str] = None
    sort_by: Literal["price", "popularity", "title", "artist", "createdAt"] = Field("createdAt", alias="sortBy")
    sort_order: Literal["asc", "desc"] = Field("desc", alias="sortOrder")
    featured: bool = False
    show_inactive: bool = Field(False, alias="showInactive")
    language: Literal["en", "ta"] = "en"

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


def _ci(text: str) -> "re.Pattern[str]":
    return re.compile(re.escape(text.strip()), re.IGNORECASE)


def build_filter(query: PosterQuery) -> Dict[str, Any]:
    """Mongo-style filter understood by every PosterRepository."""
    filt: Dict[str, Any] = {}
    if query.category:
        filt["category"] = _ci(query.category)
    if query.artist:
        filt["artist"] = _ci(query.artist)

    # Filters on list price, not the discounted price
    price: Dict[str, float] = {}
    if query.min_price is not None:
        price["$gte"] = query.min_price
    if query.max_price is not None:
        price["$lte"] = query.max_price
    if price:
        filt["pricing.basePrice"] = price

    tags = [t for t in query.tags if t and t.strip()]
    if tags:
        filt["tags"] = {"$in": [_ci(t) for t in tags]}

    if query.search and query.search.strip():
        rx = _ci(query.search)
        filt["$or"] = [
            {f"title.{query.language}": rx},
            {f"description.{query.language}": rx},
            {"artist": rx},
            {"tags": rx},
        ]

    if query.featured:
        filt["availability.isFeatured"] = True
    if not query.show_inactive:
        filt["availability.isActive"] = True
    return filt


def decorate(doc: Dict[str, Any], language: str = "en") -> Dict[str, Any]:
    """Attach the computed display fields to a stored poster."""
    out = dict(doc)
    pricing = out.get("pricing") or {}
    out["discountedPrice"] = discounted_price(pricing)
    out["savings"] = savings(pricing)
    out["popularityScore"] = round(popularity_score(out.get("stats")), 2)
    out["displayTitle"] = localized_text(out.get("title"), language)
    out["displayDescription"] = localized_text(out.get("description"), language)
    dims = out.get("dimensions") or {}
    if dims.get("width") and dims.get("height"):
        out["aspectRatio"] = round(float(dims["width"]) / float(dims["height"]), 2)
    return out


def _blank(value: Any) -> bool:
    if isinstance(value, dict):
        value = value.get("en")
    return value is None or (isinstance(value, str) and not value.strip())


def missing_fields(data: Dict[str, Any]) -> List[str]:
    missing = []
    for name in REQUIRED_FIELDS:
        value: Any = data
        for part in name.split("."):
            value = value.get(part) if isinstance(value, dict) else None
        if _blank(value):
            missing.append(name)
    return missing


def _invalid(error: PydanticValidationError) -> ValidationError:
    fields = [".".join(str(p) for p in err["loc"]) for err in error.errors()]
    details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors())
    return ValidationError(f"Invalid fields: {details}", fields)


def parse_query(params: Union[PosterQuery, Dict[str, Any], None]) -> PosterQuery:
    if isinstance(params, PosterQuery):
        return params
    try:
        return PosterQuery.model_validate(params or {})
    except PydanticValidationError as e:
        raise _invalid(e) from e


class CatalogService:
    """Poster listing, lookup and admin writes over a PosterRepository.

    Reads fall back to the fixture repository when the primary store is
    unreachable. Writes always go to the primary repository and surface
    their errors.
    """

    def __init__(
        self,
        repository: PosterRepository,
        fixtures: Optional[PosterRepository] = None,
        upload_dir: Path = Path("uploads"),
    ):
        self.repository = repository
        self.fixtures = fixtures if fixtures is not None else MemoryPosterRepository(poster_fixtures())
        self.upload_dir = upload_dir

    def _read(self, action: Callable[[PosterRepository], Any]) -> Any:
        try:
            return action(self.repository)
        except UpstreamUnavailable:
            if self.fixtures is self.repository:
                raise
            logger.warning("Poster store unavailable, serving fixture posters")
            return action(self.fixtures)

    # -------------------- Reads --------------------

    def list(self, params: Union[PosterQuery, Dict[str, Any], None] = None) -> Dict[str, Any]:
        query = parse_query(params)
        filt = build_filter(query)
        return self._read(lambda repo: self._list(repo, query, filt))

    def _list(self, repo: PosterRepository, query: PosterQuery, filt: Dict[str, Any]) -> Dict[str, Any]:
        skip = (query.page - 1) * query.limit
        docs = repo.find(
            filt,
            sort_by=query.sort_by,
            descending=query.sort_order == "desc",
            language=query.language,
            skip=skip,
            limit=query.limit,
        )
        total = repo.count(filt)
        total_pages = math.ceil(total / query.limit)
        return {
            "items": [decorate(d, query.language) for d in docs],
            "pagination": {
                "currentPage": query.page,
                "totalPages": total_pages,
                "totalItems": total,
                "itemsPerPage": query.limit,
                "hasNextPage": query.page < total_pages,
                "hasPrevPage": query.page > 1,
            },
            "facets": repo.facets(),
        }

    def get(self, poster_id: str, language: str = "en") -> Dict[str, Any]:
        return decorate(self._read(lambda repo: repo.get(poster_id)), language)

    def featured(self, language: str = "en") -> Dict[str, Any]:
        """Newest active, featured poster. Counts as a view."""
        return decorate(self._read(self._featured), language)

    @staticmethod
    def _featured(repo: PosterRepository) -> Dict[str, Any]:
        docs = repo.find(
            {"availability.isActive": True, "availability.isFeatured": True},
            sort_by="createdAt",
            descending=True,
            limit=1,
        )
        if not docs:
            raise NotFoundError("No active poster found")
        poster_id = docs[0]["id"]
        repo.increment(poster_id, "stats.views")
        return repo.get(poster_id)

    # -------------------- Writes --------------------

    def create(self, data: Dict[str, Any], image: Optional[Tuple[str, bytes]] = None) -> Dict[str, Any]:
        data = dict(data or {})
        missing = missing_fields(data)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)
        try:
            poster = PosterCreate.model_validate(data)
        except PydanticValidationError as e:
            raise _invalid(e) from e

        poster_id = self.repository.new_id()
        doc = poster.model_dump()
        doc["stats"] = Stats().model_dump()

        stored_image = False
        if image is not None:
            filename, raw = image
            doc["file"] = save_upload(self.upload_dir, poster_id, filename, raw)
            stored_image = True
        elif not doc["file"]["url"]:
            doc["file"]["url"] = f"/images/posters/poster-{poster_id}.jpg"

        try:
            created = self.repository.insert(poster_id, doc)
        except Exception:
            if stored_image:
                remove_poster_uploads(self.upload_dir, poster_id)
            raise
        logger.info("Created poster %s (%s)", poster_id, poster.title.en)
        return decorate(created)

    def update(
        self,
        poster_id: Optional[str],
        partial: Dict[str, Any],
        image: Optional[Tuple[str, bytes]] = None,
    ) -> Dict[str, Any]:
        """Shallow merge: each top-level field given replaces the stored one."""
        if not poster_id:
            raise ValidationError("Poster ID is required", ["id"])
        if not isinstance(partial, dict):
            raise ValidationError("Update body must be an object")

        fields = {k: v for k, v in partial.items() if k not in IGNORED_UPDATE_FIELDS}
        nulls = sorted(k for k, v in fields.items() if v is None)
        if nulls:
            raise ValidationError(f"Fields cannot be null: {', '.join(nulls)}", nulls)
        try:
            update = PosterUpdate.model_validate(fields)
        except PydanticValidationError as e:
            raise _invalid(e) from e

        dumped = update.model_dump()
        changes = {name: dumped[name] for name in update.model_fields_set}
        if image is not None:
            self.repository.get(poster_id)
            filename, raw = image
            changes["file"] = save_upload(self.upload_dir, poster_id, filename, raw)
        updated = self.repository.update(poster_id, changes)
        logger.info("Updated poster %s fields=%s", poster_id, sorted(changes))
        return decorate(updated)

    def delete(self, poster_id: Optional[str]) -> None:
        if not poster_id:
            raise ValidationError("Poster ID is required", ["id"])
        self.repository.delete(poster_id)
        remove_poster_uploads(self.upload_dir, poster_id)
        logger.info("Deleted poster %s", poster_id)

    def seed_fixtures(self) -> int:
        """Copy the fixture posters into an empty primary store."""
        if self.repository.count({}):
            return 0
        seeded = 0
        for doc in poster_fixtures():
            doc.pop("id", None)
            self.repository.insert(self.repository.new_id(), doc)
            seeded += 1
        return seeded
