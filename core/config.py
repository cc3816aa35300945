"""
core/config.py -- Gatehouse settings, read once from the environment.

All environment variable reads for Gatehouse happen here. No module should
call os.getenv() or os.environ.get() directly. Components receive a Settings
instance through their constructor; only the application edge (asgi.py,
api/main.py) calls get_settings().

Design patterns used:
  Cached edge accessor: get_settings() builds Settings on first use and
      hands the same instance to every later caller.

  Frozen BaseSettings: Settings is immutable after construction, so a
      component that holds a reference can never observe a change in the
      signing secret or environment mid-request. Tests build their own
      Settings(...) with per-test secrets instead of patching the environment.

  @model_validator(mode="after"): Runs cross-field checks after all fields
      are resolved. A blank JWT_SECRET is not a startup failure -- every
      sign/verify call fails with SecretMissing instead -- but it is logged.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatehouse.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'gatehouse.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `jwt_secret` reads from JWT_SECRET, `environment` from ENVIRONMENT.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: Literal["development", "test", "production"] = "development"
    # Passed to FastAPI(debug=...): tracebacks in 500 responses. Never in production.
    debug: bool = False

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The token codec
    # raises SecretMissing on every call while it stays blank.
    jwt_secret: str = ""

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def secure_cookies(self) -> bool:
        """Cookies carry the Secure flag in every deployment except local development."""
        return self.environment != "development"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def warn_on_blank_secret(self) -> "Settings":
        if not self.jwt_secret.strip():
            logger.warning("JWT_SECRET is not set. Token signing and verification will fail until it is configured.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: construct Settings(...) directly and hand it to create_app(), or
    call get_settings.cache_clear() if you need to re-read the environment.
    """
    return Settings()
