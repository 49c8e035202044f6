"""
core/config.py -- Deltask settings, read once from the environment.

Every tunable lives on Settings. Other modules call get_settings() and never
touch os.environ themselves; tests that need different values set the
environment and call get_settings.cache_clear().

Values come from environment variables (field name upper-cased, so
kanban_db_url is read from KANBAN_DB_URL) and from a .env file in the working
directory when one exists. Lists such as ALLOWED_HOSTS are given as JSON
arrays.

Layer rule: core/ imports nothing from api/, auth/ or kanban/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("deltask.config")

# Default SQLite files sit in the project root, beside main.py.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    log_level: str = "INFO"
    # "" means unset; check_secret_key() replaces or rejects it.
    secret_key: str = ""

    # Storage. Users and kanban data live in separate databases so the
    # kanban side never sees password hashes.
    kanban_db_url: str = f"sqlite:///{_PROJECT_ROOT / 'deltask_kanban.db'}"
    auth_db_url: str = f"sqlite:///{_PROJECT_ROOT / 'deltask_auth.db'}"
    cascade_deletes: bool = False

    # Sessions
    token_expire_seconds: int = 3600
    secure_cookies: bool = False
    self_registration_enabled: bool = True

    # HTTP surface
    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @model_validator(mode="after")
    def check_secret_key(self) -> "Settings":
        """Fill in a throwaway signing key under DEBUG, otherwise demand one.

        A generated key changes on every restart, so every issued token dies
        with the process. Keys under 32 characters are refused in both modes.
        """
        if not self.secret_key:
            if not self.debug:
                raise ValueError("SECRET_KEY is not set. Provide one, or set DEBUG=true for local development.")
            self.secret_key = secrets.token_hex(_MIN_SECRET_LENGTH)
            logger.warning("DEBUG is on and SECRET_KEY is unset; signing tokens with a per-process random key.")
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        self.log_level = self.log_level.upper()
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
