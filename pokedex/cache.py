from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import ValidationError
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from pokedex.db.connection import (
    create_engine,
    create_session_factory,
    ensure_schema,
    session_scope,
)
from pokedex.db.models import CacheEntry
from pokedex.schemas.catalog import ItemDetail, ListItem

if TYPE_CHECKING:
    from pokedex.settings import AppSettings

logger = logging.getLogger(__name__)

LIST_KEY = "cached_pokemon_list"
DETAILS_KEY = "cached_pokemon_details"
FAVORITES_KEY = "favorite_pokemons"


class KeyValueBackend(Protocol):
    """Minimal string store the :class:`CacheStore` persists documents into."""

    def get(self, key: str) -> str | None:
        """Return the raw value stored under ``key``."""

    def set(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``."""

    def delete(self, key: str) -> None:
        """Remove ``key`` when present."""


class InMemoryKeyValueBackend:
    """Process-local backend; nothing survives a restart."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def set(self, key: str, value: str) -> None:
        self.store[key] = value

    def delete(self, key: str) -> None:
        self.store.pop(key, None)


class SQLiteKeyValueBackend:
    """Durable backend storing one row per key in the ``cache_entries`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            ensure_schema(self._engine)
            self._schema_ready = True

    def get(self, key: str) -> str | None:
        self._ensure_schema()
        with session_scope(self._session_factory) as session:
            entry = session.get(CacheEntry, key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        self._ensure_schema()
        with session_scope(self._session_factory) as session:
            entry = session.get(CacheEntry, key)
            if entry is None:
                session.add(CacheEntry(key=key, value=value))
            else:
                entry.value = value

    def delete(self, key: str) -> None:
        self._ensure_schema()
        with session_scope(self._session_factory) as session:
            entry = session.get(CacheEntry, key)
            if entry is not None:
                session.delete(entry)

    def dispose(self) -> None:
        self._engine.dispose()


def _is_backend_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` came from the storage layer itself."""

    return isinstance(exc, (SQLAlchemyError, OSError))


class CacheStore:
    """Best-effort persistence for the list snapshot, details and favorites.

    Storage failures are logged and absorbed: reads degrade to a cache miss and
    writes are dropped. A document that no longer decodes is treated as absent.
    Errors that do not originate from the backend propagate unchanged.
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    # -- raw JSON helpers ----------------------------------------------------

    def _read_json(self, key: str) -> Any:
        try:
            return self._read_json_strict(key)
        except Exception as exc:  # type: ignore[broad-except]
            if _is_backend_error(exc):
                logger.debug(f"Cache read failed for key {key}: {exc}")
                return None
            raise

    def _read_json_strict(self, key: str) -> Any:
        """Like :meth:`_read_json` but lets backend errors through."""

        raw = self._backend.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Discarding undecodable cache entry %s", key)
            return None

    def _write_json(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.debug(f"Cache encode failed for key {key}: {exc}")
            return
        try:
            self._backend.set(key, encoded)
        except Exception as exc:  # type: ignore[broad-except]
            if _is_backend_error(exc):
                logger.warning(f"Cache write failed for key {key}: {exc}")
                return
            raise

    def _delete(self, key: str) -> None:
        try:
            self._backend.delete(key)
        except Exception as exc:  # type: ignore[broad-except]
            if _is_backend_error(exc):
                logger.warning(f"Cache delete failed for key {key}: {exc}")
                return
            raise

    # -- list snapshot -------------------------------------------------------

    def save_list(self, items: Iterable[ListItem]) -> None:
        self._write_json(LIST_KEY, [item.model_dump(mode="json") for item in items])

    def load_list(self) -> list[ListItem] | None:
        payload = self._read_json(LIST_KEY)
        if not isinstance(payload, list):
            return None
        try:
            return [ListItem.model_validate(entry) for entry in payload]
        except ValidationError:
            logger.debug("Cached list snapshot failed validation; ignoring it")
            return None

    # -- details -------------------------------------------------------------

    def _load_detail_mapping(self) -> dict[str, Any]:
        payload = self._read_json(DETAILS_KEY)
        return payload if isinstance(payload, dict) else {}

    def save_detail(self, item_id: str | int, detail: ItemDetail) -> None:
        # An unreadable mapping must not be replaced by one holding a single entry.
        try:
            payload = self._read_json_strict(DETAILS_KEY)
        except Exception as exc:  # type: ignore[broad-except]
            if _is_backend_error(exc):
                logger.warning(f"Skipping detail cache write for {item_id}: {exc}")
                return
            raise
        details = payload if isinstance(payload, dict) else {}
        details[str(item_id)] = detail.model_dump(mode="json")
        self._write_json(DETAILS_KEY, details)

    def load_detail(self, item_id: str | int) -> ItemDetail | None:
        cached = self._load_detail_mapping().get(str(item_id))
        if cached is None:
            return None
        try:
            return ItemDetail.model_validate(cached)
        except ValidationError:
            logger.debug("Cached detail for %s failed validation; ignoring it", item_id)
            return None

    # -- favorites -----------------------------------------------------------

    def save_favorites(self, favorites: Iterable[str]) -> None:
        self._write_json(FAVORITES_KEY, sorted(set(favorites)))

    def load_favorites(self) -> set[str]:
        payload = self._read_json(FAVORITES_KEY)
        if not isinstance(payload, list):
            return set()
        return {entry for entry in payload if isinstance(entry, str)}

    def clear_favorites(self) -> None:
        self._delete(FAVORITES_KEY)


def create_cache_store(active_settings: "AppSettings") -> CacheStore:
    """Build the cache store described by ``active_settings``."""

    if active_settings.use_memory_cache:
        logger.info("Using in-memory cache backend")
        return CacheStore(InMemoryKeyValueBackend())

    engine = create_engine(active_settings.resolved_cache_url)
    return CacheStore(SQLiteKeyValueBackend(engine))


__all__ = [
    "DETAILS_KEY",
    "FAVORITES_KEY",
    "LIST_KEY",
    "CacheStore",
    "InMemoryKeyValueBackend",
    "KeyValueBackend",
    "SQLiteKeyValueBackend",
    "create_cache_store",
]
