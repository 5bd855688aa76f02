import os
import tempfile

# The store is never contacted from the test suite
os.environ["USE_MOCK_DATA"] = "true"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="tls-uploads-"))
os.environ.setdefault("PREFERENCES_PATH", os.path.join(tempfile.mkdtemp(prefix="tls-prefs-"), "preferences.json"))

from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from catalog import CatalogService
from config import Settings
from errors import UpstreamUnavailable
from fixtures import poster_fixtures
from main import create_app
from repository import MemoryPosterRepository, PosterRepository


class UnavailableRepository(PosterRepository):
    """Behaves like a store that cannot be reached."""

    def new_id(self):
        return "0" * 24

    def _down(self, *args, **kwargs):
        raise UpstreamUnavailable("Database unavailable: connection refused")

    find = count = facets = get = insert = update = delete = increment = _down


@pytest.fixture
def settings(tmp_path):
    return Settings(
        use_mock_data=True,
        allow_open_writes=True,
        upload_dir=tmp_path / "uploads",
        preferences_path=tmp_path / "preferences.json",
        content_backoff_seconds=0,
    )


@pytest.fixture
def repository():
    return MemoryPosterRepository(poster_fixtures())


@pytest.fixture
def catalog(repository, tmp_path):
    return CatalogService(repository, fixtures=repository, upload_dir=tmp_path / "uploads")


@pytest.fixture
def empty_catalog(tmp_path):
    return CatalogService(MemoryPosterRepository(), upload_dir=tmp_path / "uploads")


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


@pytest.fixture
def valid_poster():
    return {
        "title": {"en": "Kolam Patterns", "ta": "கோலம் வடிவங்கள்"},
        "description": {"en": "Geometric kolam drawings.", "ta": "வடிவியல் கோலங்கள்."},
        "artist": "Lakshmi Narayanan",
        "category": "Traditional",
        "tags": ["kolam", "geometry"],
        "dimensions": {"width": 18, "height": 24},
        "pricing": {"basePrice": 40, "discount": 25},
    }


def make_image(mode="RGB", fmt="PNG", **save_args):
    buf = BytesIO()
    Image.new(mode, (8, 8)).save(buf, fmt, **save_args)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_image()
