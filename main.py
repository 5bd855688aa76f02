import json
import logging
import os
import re
from typing import Any, Dict, List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from catalog import CatalogService, PosterQuery
from config import Settings, load_settings
from content import (
    ContentResolver,
    ContentSource,
    FixtureContentSource,
    MongoContentSource,
    PageCache,
    create_record,
    seed_content,
)
from errors import CatalogError, ValidationError
from fixtures import poster_fixtures
from preferences import LANGUAGE_KEY, JsonPreferenceStore, MemoryPreferenceStore, get_accessibility, set_accessibility
from repository import MemoryPosterRepository, MongoPosterRepository, PosterRepository
from schemas import ContentRecord
from uploads import read_upload, save_upload

logger = logging.getLogger(__name__)

APP_TITLE = "TLS Website API"

router = APIRouter()


# Helpers

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_content_source(request: Request) -> ContentSource:
    return request.app.state.content_source


def admin_token_required(request: Request, x_admin_token: Optional[str] = Header(default=None)):
    settings = request.app.state.settings
    if settings.admin_token:
        if x_admin_token != settings.admin_token:
            raise HTTPException(status_code=401, detail="Invalid admin token")
    elif not settings.allow_open_writes:
        raise HTTPException(status_code=503, detail="Admin writes disabled: ADMIN_TOKEN is not configured")
    return True


def _allowed_methods(path: str) -> List[str]:
    methods = set()
    for route in router.routes:
        if isinstance(route, APIRoute) and route.path_regex.match(path):
            methods |= route.methods
    return sorted(methods)


def _form_value(value: str) -> Any:
    text = value.strip()
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            return value
    return value


def _set_nested(target: Dict[str, Any], key: str, value: Any) -> None:
    # "dimensions[width]" and "dimensions.width" both address a nested field
    parts = re.findall(r"[^.\[\]]+", key)
    if not parts:
        return
    for part in parts[:-1]:
        nxt = target.get(part)
        if not isinstance(nxt, dict):
            nxt = target[part] = {}
        target = nxt
    target[parts[-1]] = value


async def _read_poster_body(request: Request) -> Tuple[Dict[str, Any], Optional[Tuple[str, bytes]]]:
    """JSON body, or multipart form with an optional `image` file."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        settings = get_settings(request)
        form = await request.form()
        data: Dict[str, Any] = {}
        image = None
        for key in form.keys():
            values = form.getlist(key)
            files = [v for v in values if isinstance(v, StarletteUploadFile)]
            if files:
                if key == "image" and files[0].filename:
                    raw = await read_upload(files[0], settings.max_upload_bytes)
                    image = (files[0].filename, raw)
                continue
            parsed = [_form_value(v) for v in values]
            _set_nested(data, key, parsed if len(parsed) > 1 else parsed[0])
        return data, image

    try:
        data = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data, None


# Root & health

@router.get("/")
def root():
    return {"app": APP_TITLE, "status": "ok"}


@router.get("/test")
def test_database(request: Request):
    settings = get_settings(request)
    response = {
        "backend": "running",
        "database": "mock-data" if settings.use_mock_data else "connected",
        "collections": [],
    }
    if settings.use_mock_data:
        return response
    try:
        response["collections"] = database.list_collections()
    except CatalogError as e:
        response["database"] = f"error: {e.message[:80]}"
    return response


# Posters

@router.get("/api/posters")
def list_posters(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1),
    category: Optional[str] = None,
    artist: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    tags: Optional[List[str]] = Query(None),
    sort_by: Literal["price", "popularity", "title", "artist", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    search: Optional[str] = None,
    featured: bool = False,
    show_inactive: bool = Query(False, alias="showInactive"),
    language: Literal["en", "ta"] = "en",
    catalog: CatalogService = Depends(get_catalog),
):
    query = PosterQuery(
        page=page,
        limit=limit,
        category=category,
        artist=artist,
        min_price=min_price,
        max_price=max_price,
        tags=tags or [],
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        featured=featured,
        show_inactive=show_inactive,
        language=language,
    )
    result = catalog.list(query)
    return {
        "success": True,
        "data": result["items"],
        "pagination": result["pagination"],
        "filters": result["facets"],
    }


@router.post("/api/posters", status_code=201, dependencies=[Depends(admin_token_required)])
async def create_poster(request: Request, catalog: CatalogService = Depends(get_catalog)):
    data, image = await _read_poster_body(request)
    poster = await run_in_threadpool(catalog.create, data, image)
    return {"success": True, "data": poster, "message": "Poster created successfully"}


@router.put("/api/posters", dependencies=[Depends(admin_token_required)])
async def update_poster(
    request: Request,
    poster_id: Optional[str] = Query(None, alias="id"),
    catalog: CatalogService = Depends(get_catalog),
):
    if not poster_id:
        raise ValidationError("Poster ID is required", ["id"])
    data, image = await _read_poster_body(request)
    poster = await run_in_threadpool(catalog.update, poster_id, data, image)
    return {"success": True, "data": poster, "message": "Poster updated successfully"}


@router.delete("/api/posters", dependencies=[Depends(admin_token_required)])
def delete_poster(
    poster_id: Optional[str] = Query(None, alias="id"),
    catalog: CatalogService = Depends(get_catalog),
):
    catalog.delete(poster_id)
    return {"success": True, "message": "Poster deleted successfully"}


@router.get("/api/posters/active")
def active_poster(lang: Literal["en", "ta"] = "en", catalog: CatalogService = Depends(get_catalog)):
    return {"success": True, "data": catalog.featured(lang)}


@router.get("/api/posters/{poster_id}")
def get_poster(poster_id: str, language: Literal["en", "ta"] = "en", catalog: CatalogService = Depends(get_catalog)):
    return {"success": True, "data": catalog.get(poster_id, language)}


# File upload -> stored under UPLOAD_DIR/temp until a poster claims it
@router.post("/upload", dependencies=[Depends(admin_token_required)])
async def upload_image(request: Request, file: UploadFile = File(...)):
    settings = get_settings(request)
    raw = await read_upload(file, settings.max_upload_bytes)
    info = await run_in_threadpool(save_upload, settings.upload_dir, None, file.filename or "", raw)
    return {"success": True, "data": info}


# Website content

@router.get("/api/website-content/sections/{page}")
def page_sections(page: str, source: ContentSource = Depends(get_content_source)):
    return {"success": True, "data": source.fetch_page(page)}


@router.post("/api/website-content/sections/{page}", status_code=201, dependencies=[Depends(admin_token_required)])
def create_section(page: str, payload: ContentRecord, request: Request):
    record = create_record(page, payload)
    request.app.state.page_cache.invalidate(page)
    return {"success": True, "data": record, "message": "Section created successfully"}


@router.get("/api/website-content/global")
def global_sections(source: ContentSource = Depends(get_content_source)):
    return {"success": True, "data": source.fetch_global()}


@router.get("/api/website-content/resolve")
def resolve_content(
    request: Request,
    page: str,
    key: List[str] = Query(...),
    language: Optional[Literal["english", "tamil"]] = None,
    fallback: str = "",
):
    state = request.app.state
    settings = state.settings
    language = language or state.preferences.get(LANGUAGE_KEY, "english")
    resolver = ContentResolver(
        state.content_source,
        cache=state.page_cache,
        preferences=MemoryPreferenceStore({LANGUAGE_KEY: language}),
        retries=settings.content_retries,
        backoff=settings.content_backoff_seconds,
    )
    content = resolver.use_page(page)
    return {
        "success": True,
        "language": resolver.language,
        "fallback": content.fallback,
        "data": {k: resolver.resolve(k, fallback) for k in key},
    }


@router.delete("/api/website-content/cache/{page}", dependencies=[Depends(admin_token_required)])
def invalidate_content(page: str, request: Request):
    removed = request.app.state.page_cache.invalidate(page)
    return {"success": True, "invalidated": removed}


# Site preferences

class PreferencesUpdate(BaseModel):
    language: Optional[Literal["english", "tamil"]] = None
    highContrast: Optional[bool] = None
    fontSize: Optional[Literal["small", "medium", "large", "x-large"]] = None


@router.get("/api/preferences")
def read_preferences(request: Request):
    store = request.app.state.preferences
    return {"success": True, "data": {"language": store.get(LANGUAGE_KEY, "english"), **get_accessibility(store)}}


@router.put("/api/preferences", dependencies=[Depends(admin_token_required)])
def update_preferences(payload: PreferencesUpdate, request: Request):
    store = request.app.state.preferences
    if payload.language:
        store.set(LANGUAGE_KEY, payload.language)
    accessibility = set_accessibility(store, payload.highContrast, payload.fontSize)
    return {"success": True, "data": {"language": store.get(LANGUAGE_KEY, "english"), **accessibility}}


# Admin seed

@router.post("/admin/seed", dependencies=[Depends(admin_token_required)])
def admin_seed(request: Request):
    posters = get_catalog(request).seed_fixtures()
    # Fixture content is already served directly in mock mode
    sections = 0 if get_settings(request).use_mock_data else seed_content()
    return {"success": True, "seeded": {"posters": posters, "sections": sections}}


# Error handling

def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CatalogError)
    async def catalog_error(request: Request, exc: CatalogError):
        body: Dict[str, Any] = {"success": False, "message": exc.message}
        if isinstance(exc, ValidationError) and exc.fields:
            body["errors"] = exc.fields
        return JSONResponse(body, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err["loc"] if p not in ("query", "body", "path")) for err in exc.errors()]
        return JSONResponse(
            {"success": False, "message": "Invalid request parameters", "errors": fields},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(
                {"success": False, "message": f"Method {request.method} not allowed"},
                status_code=405,
                headers={"Allow": ", ".join(_allowed_methods(request.url.path))},
            )
        return JSONResponse(
            {"success": False, "message": str(exc.detail)},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        body: Dict[str, Any] = {"success": False, "message": "Internal server error"}
        if app.state.settings.is_development:
            body["error"] = str(exc)
        return JSONResponse(body, status_code=500)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[PosterRepository] = None,
    content_source: Optional[ContentSource] = None,
) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    database.init_db(settings)

    if repository is None:
        if settings.use_mock_data:
            repository = MemoryPosterRepository(poster_fixtures())
        else:
            repository = MongoPosterRepository()
    if content_source is None:
        content_source = FixtureContentSource() if settings.use_mock_data else MongoContentSource()

    app = FastAPI(title=APP_TITLE)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.catalog = CatalogService(
        repository,
        fixtures=repository if settings.use_mock_data else None,
        upload_dir=settings.upload_dir,
    )
    app.state.content_source = content_source
    app.state.page_cache = PageCache()
    app.state.preferences = JsonPreferenceStore(settings.preferences_path)

    # Static uploads directory
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(settings.upload_dir)), name="uploads")

    install_error_handlers(app)
    app.include_router(router)

    if settings.use_mock_data:
        logger.warning("USE_MOCK_DATA is set: serving fixture posters and content")
    if not settings.admin_token:
        if settings.allow_open_writes:
            logger.warning("ADMIN_TOKEN not configured and ALLOW_OPEN_WRITES is set: write endpoints are open")
        else:
            logger.warning("ADMIN_TOKEN not configured: write endpoints are disabled")
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
