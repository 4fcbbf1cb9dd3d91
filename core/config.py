"""
core/config.py -- TaskGuard settings.

Every environment read happens here; other modules call get_settings().
Values come from the process environment or a .env file in the working
directory, matched case-insensitively to the field names below.

The signing key is the one setting that cannot be defaulted safely. Without
it a deployment would mint tokens that die on every restart, so only a
DEBUG=true process may run on a generated key.

Layer rule: no imports from api/, auth/, or tasks/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskguard.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'taskguard.db'}"


class Settings(BaseSettings):
    """TaskGuard settings. Every field has a default except the signing key,
    which validate_settings() fills in under DEBUG or refuses to go without.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Identity tokens live for 24 hours. There is no refresh flow; clients
    # log in again after expiry.
    token_expire_seconds: int = 86400
    # bcrypt work factor. Tests lower this to 4 to keep fixtures fast.
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Check the settings that other modules rely on without re-checking.

        SECRET_KEY: generated with a warning under DEBUG, required otherwise,
        and at least 32 characters either way. BCRYPT_ROUNDS must be a cost
        bcrypt accepts. TOKEN_EXPIRE_SECONDS must be positive.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("DEBUG is on and SECRET_KEY is unset: using a generated key, tokens will not survive a restart")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call.

    Tests set their environment before the first import of any app module;
    get_settings.cache_clear() forces a re-read.
    """
    return Settings()
