import os
import tempfile
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    token_ttl_hours: int
    upload_tmp_dir: str
    max_upload_bytes: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///listdesk.db"),
        token_ttl_hours=_getenv_int("TOKEN_TTL_HOURS", 24),
        upload_tmp_dir=_getenv("UPLOAD_TMP_DIR", tempfile.gettempdir()),
        max_upload_bytes=_getenv_int("MAX_UPLOAD_BYTES", 5 * 1024 * 1024),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "TOKEN_TTL_HOURS": s.token_ttl_hours,
        "UPLOAD_TMP_DIR": s.upload_tmp_dir,
        "MAX_UPLOAD_BYTES": s.max_upload_bytes,
        # Werkzeug rejects larger bodies with 413 before the route runs.
        # Multipart overhead is allowed for on top of the file limit.
        "MAX_CONTENT_LENGTH": s.max_upload_bytes + 64 * 1024,
    }
