import os
from pathlib import Path

from dotenv import load_dotenv


ENV_PATH = Path(__file__).resolve().parent / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _normalise_prefix(raw_prefix: str) -> str:
    raw_prefix = raw_prefix.strip()
    if not raw_prefix or raw_prefix == "/":
        return ""
    if not raw_prefix.startswith("/"):
        raw_prefix = f"/{raw_prefix}"
    return raw_prefix.rstrip("/")


def _split_list(raw_value: str) -> list[str]:
    return [item.strip() for item in raw_value.split(",") if item.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    URL_PREFIX = _normalise_prefix(os.environ.get("FLASK_URL_PREFIX", "/agenda"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    _db_user = os.environ.get("DATABASE_USER", "agenda")
    _db_password = os.environ.get("DATABASE_PASSWORD", "agenda")
    _db_host = os.environ.get("DATABASE_HOST", "localhost")
    _db_port = os.environ.get("DATABASE_PORT", "3306")
    _db_name = os.environ.get("DATABASE_NAME", "agenda")

    _default_uri = (
        f"mysql+pymysql://{_db_user}:{_db_password}@{_db_host}:{_db_port}/{_db_name}"
    )

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_uri)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens are issued by the identity provider; only verification lives here.
    AUTH_JWT_KEY = os.environ.get("AUTH_JWT_KEY", "")
    AUTH_JWT_ALGORITHMS = _split_list(os.environ.get("AUTH_JWT_ALGORITHMS", "HS256"))
    AUTH_JWT_AUDIENCE = os.environ.get("AUTH_JWT_AUDIENCE") or None
    AUTH_EMAIL_CLAIM = os.environ.get("AUTH_EMAIL_CLAIM", "email")

    # Replaced in tests by a stub implementing ``IdentityVerifier``.
    IDENTITY_VERIFIER = None

    # Optional ``HolidaySource``; only built-in celebrations are added without one.
    HOLIDAY_SOURCE = None


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    URL_PREFIX = ""
    AUTH_JWT_KEY = "test-secret-key-with-enough-length-0123456789"
    AUTH_JWT_ALGORITHMS = ["HS256"]
    AUTH_JWT_AUDIENCE = None
