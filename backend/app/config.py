import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in backend/.env take effect on process reload.
#
# Tests point DATABASE_URL at a temporary SQLite file; set DISABLE_DOTENV=1 so a
# developer's backend/.env does not override it.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_bool(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or default).strip() in {"1", "true", "True", "yes", "YES"}


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the backend can start out-of-the-box.
# Absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

# Sessions
# NOTE: keep a default for local dev so the server can boot even if SECRET_KEY isn't set.
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", str(60 * 24 * 7)) or str(60 * 24 * 7))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "jobboard_session")
SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", "0")

# HTTP
# e.g. API_PREFIX=/api when the SPA proxies everything under /api.
API_PREFIX = (os.getenv("API_PREFIX") or "").strip().rstrip("/")
FRONTEND_ORIGINS = [
    origin.strip()
    for origin in os.getenv("FRONTEND_ORIGINS", "").split(",")
    if origin.strip()
]

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
