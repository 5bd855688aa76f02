import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LANGUAGE_KEY = "selectedLanguage"
HIGH_CONTRAST_KEY = "highContrast"
FONT_SIZE_KEY = "fontSize"
FONT_SIZES = ("small", "medium", "large", "x-large")


class PreferenceStore:
    """Local key-value store for client preferences."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


class MemoryPreferenceStore(PreferenceStore):
    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values = dict(values or {})

    def get(self, key, default=None):
        return self._values.get(key, default)

    def set(self, key, value):
        self._values[key] = value


class JsonPreferenceStore(PreferenceStore):
    """Preferences kept in a JSON file, rewritten whole on every change."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable preferences file %s", self.path, exc_info=True)
            return {}

    def get(self, key, default=None):
        return self._load().get(key, default)

    def set(self, key, value):
        values = self._load()
        values[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(values, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def get_accessibility(store: PreferenceStore) -> Dict[str, Any]:
    return {
        "highContrast": bool(store.get(HIGH_CONTRAST_KEY, False)),
        "fontSize": store.get(FONT_SIZE_KEY, "medium"),
    }


def set_accessibility(
    store: PreferenceStore,
    high_contrast: Optional[bool] = None,
    font_size: Optional[str] = None,
) -> Dict[str, Any]:
    if font_size is not None and font_size not in FONT_SIZES:
        raise ValueError(f"font size must be one of {', '.join(FONT_SIZES)}")
    if high_contrast is not None:
        store.set(HIGH_CONTRAST_KEY, bool(high_contrast))
    if font_size is not None:
        store.set(FONT_SIZE_KEY, font_size)
    return get_accessibility(store)
