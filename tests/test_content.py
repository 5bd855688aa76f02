import json

import pytest
from pymongo.errors import OperationFailure

from content import ContentResolver, ContentSource, FixtureContentSource, PageCache
from errors import UpstreamUnavailable
from preferences import (
    LANGUAGE_KEY,
    JsonPreferenceStore,
    MemoryPreferenceStore,
    get_accessibility,
    set_accessibility,
)
from schemas import ContentRecord

HOME = [
    {"sectionKey": "home.heroTitle", "page": "home", "section": "heroTitle",
     "content": {"english": "Welcome", "tamil": "வணக்கம்"}},
    {"sectionKey": "hero-banner", "page": "home", "section": "banner",
     "content": {"english": "Banner", "tamil": ""}},
    {"sectionKey": "plain", "page": "home", "section": "plain", "content": "Just text"},
    {"sectionKey": "short", "page": "home", "section": "short", "content": {"en": "Short", "ta": "சுருக்கம்"}},
]
GLOBAL = [
    {"sectionKey": "navigation.homeLink", "page": "global", "section": "homeLink",
     "content": {"english": "Home", "tamil": "முகப்பு"}},
]


class StaticSource(ContentSource):
    def __init__(self, pages=None, global_records=None):
        self.pages = pages or {"home": HOME}
        self.global_records = GLOBAL if global_records is None else global_records
        self.calls = 0

    def fetch_page(self, page):
        self.calls += 1
        return list(self.pages.get(page, []))

    def fetch_global(self):
        return list(self.global_records)


class FlakySource(StaticSource):
    """Fails the first `failures` page reads."""

    def __init__(self, failures, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures

    def fetch_page(self, page):
        if self.failures:
            self.failures -= 1
            self.calls += 1
            raise UpstreamUnavailable("connection refused")
        return super().fetch_page(page)


def make_resolver(source=None, language="english", **kwargs):
    sleeps = []
    resolver = ContentResolver(
        source or StaticSource(),
        preferences=MemoryPreferenceStore({LANGUAGE_KEY: language}),
        sleep=sleeps.append,
        **kwargs,
    )
    resolver.sleeps = sleeps
    return resolver


# -------------------- Lookup --------------------

def test_nothing_loaded_resolves_to_fallback():
    resolver = make_resolver()
    assert resolver.resolve("home.heroTitle", "Default") == "Default"
    assert resolver.find("home.heroTitle") is None


def test_exact_section_key():
    resolver = make_resolver()
    resolver.load_page("home")
    assert resolver.resolve("home.heroTitle") == "Welcome"
    assert resolver.resolve("hero-banner") == "Banner"


def test_page_section_split():
    records = [{"sectionKey": "legacy-id", "page": "about", "section": "intro.text", "content": "Intro"}]
    resolver = make_resolver(StaticSource(pages={"about": records}, global_records=[]))
    resolver.load_page("about")
    # Only the first dot separates page from section
    assert resolver.resolve("about.intro.text") == "Intro"


def test_global_records_are_searched():
    resolver = make_resolver()
    resolver.load_page("home")
    assert resolver.resolve("navigation.homeLink") == "Home"


def test_legacy_key_remap():
    resolver = make_resolver()
    resolver.load_page("home")
    assert resolver.resolve("nav-home") == "Home"
    assert resolver.resolve("home-hero-title") == "Welcome"
    assert resolver.resolve("nav-about", "About us") == "About us"


def test_remap_is_applied_once():
    resolver = make_resolver(key_map={"a": "b", "b": "home.heroTitle"})
    resolver.load_page("home")
    assert resolver.resolve("b") == "Welcome"
    assert resolver.resolve("a", "fallback") == "fallback"


def test_remap_cycle_terminates():
    resolver = make_resolver(key_map={"a": "b", "b": "a"})
    resolver.load_page("home")
    assert resolver.resolve("a", "fallback") == "fallback"


def test_unknown_and_empty_keys():
    resolver = make_resolver()
    resolver.load_page("home")
    assert resolver.resolve("missing.key", "fb") == "fb"
    assert resolver.resolve("", "fb") == "fb"


# -------------------- Localization --------------------

def test_tamil_with_english_fallback():
    resolver = make_resolver(language="tamil")
    resolver.load_page("home")
    assert resolver.resolve("home.heroTitle") == "வணக்கம்"
    assert resolver.resolve("hero-banner") == "Banner"
    assert resolver.resolve("plain") == "Just text"
    assert resolver.resolve("short") == "சுருக்கம்"


def test_empty_content_uses_caller_fallback():
    records = [{"sectionKey": "empty", "page": "home", "section": "empty", "content": {"english": "", "tamil": ""}}]
    resolver = make_resolver(StaticSource(pages={"home": records}, global_records=[]), language="tamil")
    resolver.load_page("home")
    assert resolver.resolve("empty", "fb") == "fb"


def test_set_language_persists():
    store = MemoryPreferenceStore()
    resolver = ContentResolver(StaticSource(), preferences=store)
    assert resolver.language == "english"
    resolver.set_language("tamil")
    assert store.get(LANGUAGE_KEY) == "tamil"
    assert ContentResolver(StaticSource(), preferences=store).language == "tamil"
    with pytest.raises(ValueError):
        resolver.set_language("french")


def test_unknown_stored_language_is_ignored():
    resolver = ContentResolver(StaticSource(), preferences=MemoryPreferenceStore({LANGUAGE_KEY: "klingon"}))
    assert resolver.language == "english"


# -------------------- Loading, retries, cache --------------------

def test_retries_then_succeeds():
    resolver = make_resolver(FlakySource(failures=2))
    content = resolver.load_page("home")
    assert content.fallback is False
    assert resolver.sleeps == [1.0, 2.0]
    assert resolver.resolve("home.heroTitle") == "Welcome"


def test_falls_back_to_fixtures_after_retries():
    source = FlakySource(failures=10)
    resolver = make_resolver(source)
    content = resolver.load_page("home")
    assert content.fallback is True
    assert content.global_records == []
    assert source.calls == 3
    assert resolver.sleeps == [1.0, 2.0]
    assert resolver.resolve("home.heroTitle") == "Welcome to TLS"


class FailingSource(StaticSource):
    """Store reachable, but every read is rejected."""

    def fetch_page(self, page):
        self.calls += 1
        raise OperationFailure("Authentication failed.", code=18)


def test_store_rejections_fall_back_to_fixtures():
    source = FailingSource()
    resolver = make_resolver(source)
    content = resolver.load_page("home")
    assert content.fallback is True
    assert source.calls == 3
    assert resolver.sleeps == [1.0, 2.0]
    assert resolver.resolve("home.heroTitle") == "Welcome to TLS"


def test_unexpected_source_errors_fall_back():
    class BrokenGlobal(StaticSource):
        def fetch_global(self):
            raise KeyError("page")

    resolver = make_resolver(BrokenGlobal(), retries=1)
    assert resolver.load_page("navigation").fallback is True
    assert resolver.resolve("nav-home") == "Home"


def test_fallback_for_page_without_fixtures():
    resolver = make_resolver(FlakySource(failures=10), retries=0)
    content = resolver.load_page("ebooks")
    assert content.records == []
    assert resolver.sleeps == []
    assert resolver.resolve("ebooks.title", "E-books") == "E-books"


def test_load_overwrites_cache_entry():
    source = StaticSource()
    cache = PageCache()
    resolver = make_resolver(source, cache=cache)
    resolver.load_page("home")
    source.pages["home"] = [{"sectionKey": "home.heroTitle", "content": "Updated"}]
    assert resolver.resolve("home.heroTitle") == "Welcome"
    resolver.load_page("home")
    assert resolver.resolve("home.heroTitle") == "Updated"
    assert cache.get("home").page_records[0]["content"] == "Updated"


def test_use_page_reads_from_cache():
    source = StaticSource()
    cache = PageCache()
    make_resolver(source, cache=cache).use_page("home")
    other = make_resolver(source, cache=cache)
    other.use_page("home")
    assert source.calls == 1
    assert other.resolve("home.heroTitle") == "Welcome"

    assert cache.invalidate("home") is True
    assert cache.invalidate("home") is False
    other.use_page("home")
    assert source.calls == 2


def test_caches_are_isolated():
    first, second = make_resolver(), make_resolver()
    first.load_page("home")
    assert "home" in first.cache
    assert "home" not in second.cache


def test_fixture_source_pages():
    source = FixtureContentSource()
    assert [r["sectionKey"] for r in source.fetch_page("navigation")] == ["navigation.homeLink", "navigation.aboutLink"]
    assert source.fetch_page("unknown") == []
    assert source.fetch_global() == []


# -------------------- Records and preferences --------------------

def test_content_record_splits_section_key():
    record = ContentRecord(sectionKey="footer.newsletter.title", content={"english": "News"})
    assert (record.page, record.section) == ("footer", "newsletter.title")
    flat = ContentRecord(sectionKey="hero-banner", content="Banner")
    assert flat.page is None and flat.section is None


def test_json_preference_store(tmp_path):
    path = tmp_path / "prefs" / "preferences.json"
    store = JsonPreferenceStore(path)
    assert store.get(LANGUAGE_KEY, "english") == "english"
    store.set(LANGUAGE_KEY, "tamil")
    assert json.loads(path.read_text(encoding="utf-8")) == {LANGUAGE_KEY: "tamil"}
    assert JsonPreferenceStore(path).get(LANGUAGE_KEY) == "tamil"
    assert [p.name for p in path.parent.iterdir()] == ["preferences.json"]


def test_corrupt_preferences_file_reads_as_empty(tmp_path):
    path = tmp_path / "preferences.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonPreferenceStore(path)
    assert store.get(LANGUAGE_KEY) is None
    store.set(LANGUAGE_KEY, "english")
    assert store.get(LANGUAGE_KEY) == "english"


def test_accessibility_preferences():
    store = MemoryPreferenceStore()
    assert get_accessibility(store) == {"highContrast": False, "fontSize": "medium"}
    assert set_accessibility(store, high_contrast=True, font_size="large") == {
        "highContrast": True,
        "fontSize": "large",
    }
    with pytest.raises(ValueError):
        set_accessibility(store, font_size="huge")
    assert get_accessibility(store)["fontSize"] == "large"
