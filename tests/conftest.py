"""Shared fixtures for the catalog client test suite."""

from __future__ import annotations

import pytest

from pokedex.cache import CacheStore
from pokedex.services.catalog_controller import CatalogController
from pokedex.services.connectivity import ConnectivityObserver
from tests.pokedex.support.fakes import FakeCatalogClient, RecordingBackend


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def cache(backend: RecordingBackend) -> CacheStore:
    return CacheStore(backend)


@pytest.fixture
def client() -> FakeCatalogClient:
    return FakeCatalogClient(total=25)


@pytest.fixture
def connectivity() -> ConnectivityObserver:
    observer = ConnectivityObserver(initially_connected=True)
    observer.start()
    return observer


@pytest.fixture
def controller(
    client: FakeCatalogClient,
    cache: CacheStore,
    connectivity: ConnectivityObserver,
) -> CatalogController:
    """Controller wired to doubles; not started, so no initial load runs."""

    return CatalogController(client, cache, connectivity, page_size=10)
