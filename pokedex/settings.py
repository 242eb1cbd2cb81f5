"""Centralized configuration management for the Pokédex catalog client."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables defined in a local .env file before instantiating the
# settings singleton so every consumer importing :mod:`pokedex.settings` observes
# the same values.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_API_BASE_URL = "https://pokeapi.co/api/v2"
DEFAULT_CATALOG_RESOURCE = "pokemon"
DEFAULT_IMAGE_BASE_URL = "https://raw.githubusercontent.com/PokeAPI/sprites/master"
DEFAULT_CACHE_PATH = "./data/pokedex_cache.db"
DEFAULT_PAGE_SIZE = 10
DEFAULT_LOAD_MORE_THRESHOLD = 3
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "pokedex-client/0.1"
DEFAULT_LOG_LEVEL = "INFO"


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Values are read from the process environment (and ``.env``) using the
    ``POKEDEX_`` aliases below. Helper properties keep derived values such as the
    SQLAlchemy cache URL in one place.
    """

    _explicit_cache_path: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_cache_path = bool(
            {"cache_path", "pokedex_cache_path"} & normalized_keys
        )
        cache_env = os.getenv("POKEDEX_CACHE_PATH")
        if cache_env is not None and cache_env.strip():
            self._explicit_cache_path = True

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        alias="POKEDEX_API_BASE_URL",
        description="Root of the read-only catalog REST API.",
    )
    catalog_resource: str = Field(
        default=DEFAULT_CATALOG_RESOURCE,
        alias="POKEDEX_CATALOG_RESOURCE",
        description="Path segment of the paginated catalog collection.",
    )
    image_base_url: str = Field(
        default=DEFAULT_IMAGE_BASE_URL,
        alias="POKEDEX_IMAGE_BASE_URL",
        description="Host serving the official artwork sprites.",
    )
    page_size: int = Field(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        le=100,
        alias="POKEDEX_PAGE_SIZE",
        description="Number of catalog entries requested per page.",
    )
    load_more_threshold: int = Field(
        default=DEFAULT_LOAD_MORE_THRESHOLD,
        ge=1,
        alias="POKEDEX_LOAD_MORE_THRESHOLD",
        description="Trailing positions that trigger loading the next page.",
    )
    request_timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        alias="POKEDEX_REQUEST_TIMEOUT",
        description="Per-request timeout applied by the HTTP client.",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        alias="POKEDEX_USER_AGENT",
    )
    cache_path: str = Field(
        default=DEFAULT_CACHE_PATH,
        alias="POKEDEX_CACHE_PATH",
        description="SQLite file backing the offline cache.",
    )
    use_memory_cache: bool = Field(
        default=False,
        alias="POKEDEX_USE_MEMORY_CACHE",
        description=(
            "Keep the cache in memory only. Useful for tests and throwaway"
            " sessions where nothing should survive the process."
        ),
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )

    @property
    def resolved_cache_url(self) -> str:
        """Return the SQLAlchemy URL for the on-disk cache database."""

        return f"sqlite:///{Path(self.cache_path).expanduser()}"

    @property
    def catalog_url(self) -> str:
        """Return the collection endpoint without a trailing slash."""

        return f"{self.api_base_url.rstrip('/')}/{self.catalog_resource.strip('/')}"

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if self.use_memory_cache:
            warnings.append(
                "POKEDEX_USE_MEMORY_CACHE is enabled - cached catalog data and "
                "favorites will not survive restarts"
            )
        elif not self._explicit_cache_path:
            warnings.append(
                f"POKEDEX_CACHE_PATH is not set - using default {DEFAULT_CACHE_PATH}"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_CACHE_PATH",
    "DEFAULT_IMAGE_BASE_URL",
    "DEFAULT_LOAD_MORE_THRESHOLD",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_PAGE_SIZE",
    "get_settings",
]
