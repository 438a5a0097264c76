# file: app/config.py

import os
from dotenv import load_dotenv

load_dotenv()

TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

APP_ENV = os.getenv("APP_ENV", "development").lower()
IS_DEVELOPMENT = APP_ENV == "development"
IS_PRODUCTION = APP_ENV == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# The debug endpoint is off in production unless explicitly switched on.
_test_endpoint_flag = os.getenv("ENABLE_TEST_ENDPOINT")
if _test_endpoint_flag is None:
    ENABLE_TEST_ENDPOINT = not IS_PRODUCTION
else:
    ENABLE_TEST_ENDPOINT = _test_endpoint_flag.lower() in ("1", "true", "yes")

FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "serviceAccountKey.json")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

NOTIFICATION_RETENTION_DAYS = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "90"))
CLEANUP_INTERVAL_SECONDS = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "86400"))


def _build_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if TESTING:
        return "sqlite+aiosqlite:///:memory:"

    db_user = os.getenv("DB_USER")
    db_password = os.getenv("DB_PASSWORD")
    db_host = os.getenv("DB_HOST", "localhost")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_NAME")

    if not db_password:
        raise ValueError("DB_PASSWORD environment variable is required")

    return f"postgresql+asyncpg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


DATABASE_URL = _build_database_url()
