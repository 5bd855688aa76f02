import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "tls_website"
    db_timeout_ms: int = 5000
    use_mock_data: bool = False
    environment: str = "production"
    upload_dir: Path = Path("uploads")
    max_upload_mb: int = 10
    admin_token: Optional[str] = None
    # Without a token, writes are refused unless explicitly opened
    allow_open_writes: bool = False
    content_retries: int = 2
    content_backoff_seconds: float = 1.0
    preferences_path: Path = Path("preferences.json")
    log_level: str = "INFO"
    frontend_url: str = "*"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "tls_website"),
        db_timeout_ms=_int_env("DB_TIMEOUT_MS", 5000),
        use_mock_data=_bool_env("USE_MOCK_DATA"),
        environment=os.getenv("APP_ENV", "production"),
        upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")),
        max_upload_mb=_int_env("MAX_UPLOAD_MB", 10),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        allow_open_writes=_bool_env("ALLOW_OPEN_WRITES"),
        content_retries=_int_env("CONTENT_RETRIES", 2),
        content_backoff_seconds=_float_env("CONTENT_BACKOFF_SECONDS", 1.0),
        preferences_path=Path(os.getenv("PREFERENCES_PATH", "preferences.json")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        frontend_url=os.getenv("FRONTEND_URL", "*"),
    )
