import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"true", "1", "yes"}


def _csv(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


UPLOAD_DIR = os.getenv(
    "UPLOAD_DIR", os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "uploads"))
)
THUMBNAIL_DIR_NAME = "thumbnails"
THUMBNAIL_PREFIX = "thumb_"

DB_URL = os.getenv("DB_URL", "sqlite:///./sharebox.db")
DB_CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

# Storage ledger and upload limits
DEFAULT_MAX_STORAGE = int(os.getenv("DEFAULT_MAX_STORAGE_BYTES", str(1024 * 1024 * 1024)))
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE_BYTES", str(100 * 1024 * 1024)))
MAX_FILES_PER_UPLOAD = int(os.getenv("MAX_FILES_PER_UPLOAD", "10"))
ALLOWED_MIME_TYPES = _csv("ALLOWED_MIME_TYPES")
SHARE_ID_BYTES = max(8, int(os.getenv("SHARE_ID_BYTES", "16")))

# Derivatives
THUMBNAIL_SIZE = int(os.getenv("THUMBNAIL_SIZE", "200"))
THUMBNAIL_JPEG_QUALITY = int(os.getenv("THUMBNAIL_JPEG_QUALITY", "80"))
PREVIEW_MAX_DIMENSION = int(os.getenv("PREVIEW_MAX_DIMENSION", "800"))
PREVIEW_JPEG_QUALITY = int(os.getenv("PREVIEW_JPEG_QUALITY", "85"))
CACHE_MAX_AGE_SECONDS = int(os.getenv("CACHE_MAX_AGE_SECONDS", "3600"))

# Request context, set by the upstream authenticator
AUTH_USER_HEADER = os.getenv("AUTH_USER_HEADER", "x-user-id").lower()
AUTH_ROLE_HEADER = os.getenv("AUTH_ROLE_HEADER", "x-user-role").lower()

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
REDIS_URL = os.getenv("REDIS_URL", "")

ENABLE_LEDGER_AUDIT = _flag("ENABLE_LEDGER_AUDIT", "true")
LEDGER_AUDIT_INTERVAL_MINUTES = max(1, int(os.getenv("LEDGER_AUDIT_INTERVAL_MINUTES", "60")))

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
