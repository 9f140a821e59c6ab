# ----------------------------------------------------------------
# Import configuration variables to be used throughout the project
# ----------------------------------------------------------------
import os
from dotenv import load_dotenv

# Load .env (allow container env to override file values)
load_dotenv(override=True)


def _rstrip_slash(s: str) -> str:
    return (s or "").rstrip("/")


def _get_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y"}


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        return default


class Settings:
    # ── Persistence ──────────────────────────────────────────────────────────
    # memory | sql | rest
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory").strip().lower()
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/catalog.db")

    # Hosted database REST endpoint (PostgREST style, e.g. https://xyz.example.co)
    STORE_URL: str = _rstrip_slash(os.getenv("STORE_URL", ""))
    STORE_API_KEY: str = os.getenv("STORE_API_KEY", "")
    STORE_TABLE: str = os.getenv("STORE_TABLE", "products")
    STORE_TIMEOUT: float = _get_float("STORE_TIMEOUT", 20.0)
    # Rows per page when reading; keep at or below the server's max-rows
    STORE_PAGE_SIZE: int = _get_int("STORE_PAGE_SIZE", 1000)

    # ── Sync ─────────────────────────────────────────────────────────────────
    # Store-side batch limit for bulk writes
    SYNC_CHUNK_SIZE: int = _get_int("SYNC_CHUNK_SIZE", 500)
    SYNC_ON_IMPORT: bool = _get_bool("SYNC_ON_IMPORT", False)

    # ── Logging ──────────────────────────────────────────────────────────────
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # ── Admin Panel ──────────────────────────────────────────────────────────
    ADMIN_USER: str = os.getenv("ADMIN_USER", "admin")
    ADMIN_PASS: str = os.getenv("ADMIN_PASS", "changeme")

    # ── CORS ─────────────────────────────────────────────────────────────────
    # Comma-separated list in .env, e.g. "https://example.com, https://foo.bar"
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
