"""
Bilingual display copy.

ContentResolver loads the records of one page plus the global records
(navigation, footer, ...) and answers key lookups against them:

    resolver.load_page("home")
    resolver.resolve("home.heroTitle", "Welcome")

A key is looked up as an exact sectionKey, then as "page.section", then
through the legacy key map (old HTML data-content names). Missing copy
resolves to the caller's fallback so rendering never breaks.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import database
from fixtures import CONTENT, content_fixtures
from preferences import LANGUAGE_KEY, MemoryPreferenceStore, PreferenceStore
from schemas import ContentRecord

logger = logging.getLogger(__name__)

CONTENT_COLLECTION = "websitecontent"
GLOBAL_PAGE = "global"
LANGUAGES = ("english", "tamil")

DEFAULT_KEY_MAP: Dict[str, str] = {
    # Navigation
    "nav-home": "navigation.homeLink",
    "nav-about": "navigation.aboutLink",
    "nav-projects": "navigation.projectsLink",
    "nav-ebooks": "navigation.ebooksLink",
    "nav-books": "navigation.booksLink",
    "nav-contact": "navigation.contactLink",
    "nav-login": "navigation.loginLink",
    "nav-signup": "navigation.signupLink",
    "logo-text": "navigation.logoText",
    "logo-image": "navigation.logoImage",
    # Home page
    "home-hero-title": "home.heroTitle",
    "home-hero-subtitle": "home.heroSubtitle",
    "home-hero-quote": "home.heroQuote",
    "home-features-title": "home.featuresTitle",
    # Footer
    "footer-description": "footer.description",
    "footer-copyright": "footer.copyright",
    "footer-logo-text": "footer.logoText",
    "footer-newsletter-title": "footer.newsletterTitle",
    "footer-newsletter-description": "footer.newsletterDescription",
}


@dataclass
class ContentSet:
    page: str
    page_records: List[Dict[str, Any]] = field(default_factory=list)
    global_records: List[Dict[str, Any]] = field(default_factory=list)
    fallback: bool = False

    @property
    def records(self) -> List[Dict[str, Any]]:
        return [*self.page_records, *self.global_records]


class PageCache:
    """Loaded content sets keyed by page name. No expiry."""

    def __init__(self) -> None:
        self._pages: Dict[str, ContentSet] = {}

    def get(self, page: str) -> Optional[ContentSet]:
        return self._pages.get(page)

    def set(self, page: str, content: ContentSet) -> None:
        self._pages[page] = content

    def invalidate(self, page: str) -> bool:
        return self._pages.pop(page, None) is not None

    def clear(self) -> None:
        self._pages.clear()

    def __contains__(self, page: str) -> bool:
        return page in self._pages


class ContentSource:
    def fetch_page(self, page: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def fetch_global(self) -> List[Dict[str, Any]]:
        raise NotImplementedError


class MongoContentSource(ContentSource):
    def __init__(self, collection: str = CONTENT_COLLECTION, status: Optional[str] = None):
        self.collection = collection
        self.status = status

    def _fetch(self, page: str) -> List[Dict[str, Any]]:
        filt: Dict[str, Any] = {"page": page}
        if self.status:
            filt["status"] = self.status
        return database.get_documents(self.collection, filt, sort=[("position", 1), ("createdAt", 1)])

    def fetch_page(self, page):
        return self._fetch(page)

    def fetch_global(self):
        return self._fetch(GLOBAL_PAGE)


class FixtureContentSource(ContentSource):
    """Serves the built-in fixtures; used when the store is switched off."""

    def fetch_page(self, page):
        return content_fixtures(page)

    def fetch_global(self):
        return []


class ContentResolver:
    def __init__(
        self,
        source: ContentSource,
        cache: Optional[PageCache] = None,
        preferences: Optional[PreferenceStore] = None,
        key_map: Optional[Dict[str, str]] = None,
        retries: int = 2,
        backoff: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.cache = cache if cache is not None else PageCache()
        self.preferences = preferences if preferences is not None else MemoryPreferenceStore()
        self.key_map = dict(DEFAULT_KEY_MAP if key_map is None else key_map)
        self.retries = retries
        self.backoff = backoff
        self._sleep = sleep
        self.current: Optional[ContentSet] = None

        language = self.preferences.get(LANGUAGE_KEY, "english")
        self.language = language if language in LANGUAGES else "english"

    def load_page(self, page: str) -> ContentSet:
        """Fetch page + global records, retrying, then falling back to fixtures. Never raises."""
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                page_records = self.source.fetch_page(page)
                global_records = self.source.fetch_global()
            except Exception as e:
                # Any source failure counts as a failed attempt
                logger.warning("Loading content for %s failed (attempt %d/%d): %s", page, attempt, attempts, e)
                if attempt < attempts:
                    self._sleep(self.backoff * attempt)
                continue
            content = ContentSet(page, page_records, global_records)
            break
        else:
            logger.warning("Serving fixture content for page %s", page)
            content = ContentSet(page, content_fixtures(page), [], fallback=True)

        self.cache.set(page, content)
        self.current = content
        return content

    def use_page(self, page: str) -> ContentSet:
        content = self.cache.get(page)
        if content is None:
            return self.load_page(page)
        self.current = content
        return content

    def find(self, key: str, _remapped: bool = False) -> Optional[Dict[str, Any]]:
        if not key or self.current is None:
            return None
        records = self.current.records

        for record in records:
            if record.get("sectionKey") == key:
                return record

        if "." in key:
            page, section = key.split(".", 1)
            for record in records:
                if record.get("page") == page and record.get("section") == section:
                    return record

        if not _remapped:
            mapped = self.key_map.get(key)
            if mapped and mapped != key:
                return self.find(mapped, _remapped=True)
        return None

    def localize(self, content: Any, fallback: str = "") -> str:
        if isinstance(content, str):
            return content or fallback
        if not isinstance(content, dict):
            return fallback
        if self.language == "tamil":
            tamil = content.get("tamil") or content.get("ta")
            if tamil:
                return tamil
        return content.get("english") or content.get("en") or fallback

    def resolve(self, key: str, fallback: str = "") -> str:
        record = self.find(key)
        if record is None:
            return fallback
        return self.localize(record.get("content"), fallback)

    def set_language(self, language: str) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"language must be one of {', '.join(LANGUAGES)}")
        self.language = language
        self.preferences.set(LANGUAGE_KEY, language)


def create_record(page: str, record: ContentRecord, collection: str = CONTENT_COLLECTION) -> Dict[str, Any]:
    data = record.model_dump()
    data["page"] = page
    data.setdefault("status", "active")
    return database.create_document(collection, data)


def seed_content(collection: str = CONTENT_COLLECTION) -> int:
    """Insert the fixture records that are not in the store yet."""
    seeded = 0
    for page in CONTENT:
        for raw in content_fixtures(page):
            if database.count_documents(collection, {"sectionKey": raw["sectionKey"]}):
                continue
            create_record(page, ContentRecord.model_validate(raw), collection)
            seeded += 1
    return seeded
