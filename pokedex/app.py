"""Composition root wiring settings, logging and the catalog services together."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from pokedex.cache import CacheStore, SQLiteKeyValueBackend, create_cache_store
from pokedex.services.catalog_client import CatalogClient
from pokedex.services.catalog_controller import CatalogController
from pokedex.services.connectivity import ConnectivityObserver, get_connectivity_observer
from pokedex.settings import AppSettings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(active_settings: AppSettings | None = None) -> None:
    """Configure root logging from the settings' ``log_level``."""

    active_settings = active_settings or get_settings()
    logging.basicConfig(level=active_settings.log_level_numeric, format=LOG_FORMAT)
    # httpx logs every request at INFO; keep it quiet unless debugging.
    if active_settings.log_level_numeric > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _validate_environment(*, active_settings: AppSettings | None = None) -> None:
    """Log warnings for optional configuration that was left unset."""

    active_settings = active_settings or get_settings()
    warnings = active_settings.optional_config_warnings()

    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning(f"  • {warning}")
        logger.warning("=" * 60)


def validate_environment() -> None:
    """Public wrapper so shells can trigger configuration validation."""

    _validate_environment()


def build_controller(
    *,
    active_settings: AppSettings | None = None,
    client: CatalogClient | None = None,
    cache: CacheStore | None = None,
    connectivity: ConnectivityObserver | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> CatalogController:
    """Create a :class:`CatalogController` with default collaborators.

    Any collaborator may be supplied explicitly, which is how tests and
    alternative shells swap in doubles.
    """

    active_settings = active_settings or get_settings()
    return CatalogController(
        client or CatalogClient.from_settings(active_settings, http_client=http_client),
        cache or create_cache_store(active_settings),
        connectivity or get_connectivity_observer(),
        page_size=active_settings.page_size,
        load_more_threshold=active_settings.load_more_threshold,
    )


@asynccontextmanager
async def catalog_session(
    *,
    active_settings: AppSettings | None = None,
    connectivity: ConnectivityObserver | None = None,
) -> AsyncIterator[CatalogController]:
    """Run a started controller for the lifetime of the ``async with`` block."""

    active_settings = active_settings or get_settings()
    _validate_environment(active_settings=active_settings)

    cache = create_cache_store(active_settings)
    async with CatalogClient.from_settings(active_settings) as client:
        controller = build_controller(
            active_settings=active_settings,
            client=client,
            cache=cache,
            connectivity=connectivity,
        )
        logger.info("Catalog session starting against %s", active_settings.catalog_url)
        try:
            async with controller:
                yield controller
        finally:
            backend = cache.backend
            if isinstance(backend, SQLiteKeyValueBackend):
                backend.dispose()
            logger.info("Catalog session closed")


__all__ = [
    "LOG_FORMAT",
    "build_controller",
    "catalog_session",
    "configure_logging",
    "validate_environment",
]
