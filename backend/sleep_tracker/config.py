from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"

APP_NAME = "Sleep Tracker API"
APP_VERSION = "1.0.0"

DEFAULT_DATABASE_URL = f"file://{DATA_DIR}"
DEFAULT_JWT_SECRET = "change-me"
DEFAULT_JWT_EXPIRE = "30d"
DEFAULT_COOKIE_EXPIRE_DAYS = 30
DEFAULT_PORT = 5000

TOKEN_COOKIE = "token"
LOGOUT_COOKIE_SECONDS = 10
LOG_EXCLUDED_PATHS = frozenset({"/favicon.ico"})

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (and `.env`)."""

    database_url: str = DEFAULT_DATABASE_URL
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expire: str = DEFAULT_JWT_EXPIRE
    cookie_expire_days: int = DEFAULT_COOKIE_EXPIRE_DAYS
    port: int = DEFAULT_PORT
    frontend_url: str = "*"
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "Settings":
        if load_dotenv_file:
            load_dotenv()
        settings = cls(
            database_url=os.getenv("DATABASE_URL") or os.getenv("MONGODB_URI") or DEFAULT_DATABASE_URL,
            jwt_secret=os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET),
            jwt_expire=os.getenv("JWT_EXPIRE", DEFAULT_JWT_EXPIRE),
            cookie_expire_days=_int_env("JWT_COOKIE_EXPIRE", DEFAULT_COOKIE_EXPIRE_DAYS),
            port=_int_env("PORT", DEFAULT_PORT),
            frontend_url=os.getenv("FRONTEND_URL", "*"),
            environment=os.getenv("NODE_ENV", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
        if settings.jwt_secret == DEFAULT_JWT_SECRET:
            _logger.warning("JWT_SECRET is not set; using an insecure development secret")
        return settings


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
