"""Orchestration core behind the catalog screens.

:class:`CatalogController` owns the observable :class:`ControllerState` and is
the only place it changes. Collaborators are injected:

* ``client`` – remote catalog access (:class:`~pokedex.services.catalog_client.CatalogClientProtocol`).
* ``cache`` – best-effort persistence (:class:`~pokedex.cache.CacheStore`).
* ``connectivity`` – reachability status (:class:`~pokedex.services.connectivity.ConnectivityObserver`).

All state mutations happen on the event loop the controller was started on.
Loading flags flip before the first ``await`` so a UI observing the state sees
the request begin immediately. Overlapping refreshes are resolved with a
generation counter: every refresh bumps it and any response that belongs to an
older generation is dropped without touching state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from dataclasses import dataclass, field, replace
from types import TracebackType
from typing import Any

from pokedex.cache import CacheStore
from pokedex.schemas.catalog import ItemDetail, ListItem
from pokedex.schemas.error import CatalogError, ErrorKind
from pokedex.services.catalog_client import CatalogClientProtocol
from pokedex.services.connectivity import ConnectivityObserver
from pokedex.settings import DEFAULT_LOAD_MORE_THRESHOLD, DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerState:
    """Immutable snapshot handed to state listeners."""

    items: tuple[ListItem, ...] = ()
    is_loading: bool = False
    is_loading_more: bool = False
    error: CatalogError | None = None
    favorites: frozenset[str] = field(default_factory=frozenset)
    has_more: bool = True

    @property
    def show_error(self) -> bool:
        return self.error is not None


StateListener = Callable[[ControllerState], None]


def _unique_by_slug(items: Iterable[ListItem], seen: set[str] | None = None) -> list[ListItem]:
    seen = set() if seen is None else seen
    unique: list[ListItem] = []
    for item in items:
        if item.slug in seen:
            continue
        seen.add(item.slug)
        unique.append(item)
    return unique


class CatalogController:
    """Coordinates pagination, cache fallback, detail lookups and favorites."""

    def __init__(
        self,
        client: CatalogClientProtocol,
        cache: CacheStore,
        connectivity: ConnectivityObserver,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        load_more_threshold: int = DEFAULT_LOAD_MORE_THRESHOLD,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._client = client
        self._cache = cache
        self._connectivity = connectivity
        self._page_size = page_size
        self._load_more_threshold = load_more_threshold

        self._state = ControllerState(favorites=frozenset(cache.load_favorites()))
        self._listeners: list[StateListener] = []
        self._offset = 0
        self._generation = 0
        self._last_failed_refresh: bool | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._detail_requests: dict[str, asyncio.Task[ItemDetail]] = {}
        self._unsubscribe_connectivity: Callable[[], None] | None = None
        self._started = False
        self._closed = False

    # -- observable state ----------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("State listener %r failed", listener)

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> asyncio.Task[None] | None:
        """Bind to the running loop, watch connectivity and kick off the first load.

        Returns the task running the initial refresh, or ``None`` when the
        controller was already started.
        """

        if self._started:
            return None
        if self._closed:
            raise RuntimeError("CatalogController has been closed")
        self._started = True
        self._loop = asyncio.get_running_loop()
        self._unsubscribe_connectivity = self._connectivity.subscribe(
            self._on_connectivity_report
        )
        self._connectivity.start()
        return self.request_load(refresh=True)

    async def close(self) -> None:
        """Detach from connectivity and cancel every task the controller owns."""

        if self._closed:
            return
        self._closed = True
        if self._unsubscribe_connectivity is not None:
            self._unsubscribe_connectivity()
            self._unsubscribe_connectivity = None

        current = asyncio.current_task()
        pending = [
            task
            for task in (*self._tasks, *self._detail_requests.values())
            if task is not current and not task.done()
        ]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._detail_requests.clear()
        self._listeners.clear()
        logger.debug("Catalog controller closed (%s tasks cancelled)", len(pending))

    async def __aenter__(self) -> "CatalogController":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def request_load(self, *, refresh: bool = False) -> asyncio.Task[None]:
        """Schedule :meth:`load_list` on a controller-owned task."""

        return self._spawn(self.load_list(refresh=refresh))

    async def wait_until_idle(self) -> None:
        """Wait for every load scheduled through :meth:`request_load` to settle.

        Failures are already logged by the task bookkeeping, so they are not
        re-raised here.
        """

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        if self._closed:
            coro.close()
            raise RuntimeError("CatalogController has been closed")
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_finished)
        return task

    def _task_finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background catalog task failed", exc_info=exc)

    # -- connectivity --------------------------------------------------------

    def _on_connectivity_report(self, connected: bool) -> None:
        # Reports may arrive on a platform thread; hop onto the owning loop.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_connectivity_change, connected)

    def _handle_connectivity_change(self, connected: bool) -> None:
        if self._closed:
            return
        if connected and not self._state.items:
            logger.info("Connection restored with an empty list; reloading catalog")
            self.request_load(refresh=True)

    # -- list loading --------------------------------------------------------

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    def _fail(self, error: CatalogError, *, refresh: bool) -> None:
        self._last_failed_refresh = refresh
        self._update(error=error, is_loading=False, is_loading_more=False)

    async def load_list(self, refresh: bool = False) -> None:
        """Load the first page (``refresh``) or append the next one."""

        if self._closed:
            return

        if refresh:
            self._generation += 1
            self._offset = 0
            self._update(is_loading=True, is_loading_more=False, has_more=True, error=None)
        else:
            state = self._state
            if state.is_loading_more or state.is_loading or not state.has_more:
                return
            self._update(is_loading_more=True, error=None)

        generation = self._generation

        if not self._connectivity.is_connected:
            if refresh:
                cached = self._cache.load_list()
                if cached is not None:
                    items = _unique_by_slug(cached)
                    self._offset = len(items)
                    logger.info("Offline; showing %s cached catalog entries", len(items))
                    self._update(items=tuple(items), is_loading=False, is_loading_more=False)
                    return
            self._fail(CatalogError.from_kind(ErrorKind.NO_INTERNET_CONNECTION), refresh=refresh)
            return

        offset = self._offset
        try:
            page = await self._client.fetch_page(offset, self._page_size)
        except CatalogError as exc:
            if self._is_stale(generation):
                return
            logger.warning("Catalog load at offset %s failed: %s", offset, exc.message)
            self._fail(exc, refresh=refresh)
            return
        except BaseException:
            if not self._is_stale(generation):
                self._update(is_loading=False, is_loading_more=False)
            raise

        if self._is_stale(generation):
            logger.debug("Dropping stale catalog page at offset %s", offset)
            return

        if refresh:
            items = _unique_by_slug(page.items)
        else:
            current = list(self._state.items)
            items = current + _unique_by_slug(
                page.items, seen={item.slug for item in current}
            )

        self._cache.save_list(items)
        self._offset = offset + self._page_size
        self._last_failed_refresh = None
        self._update(
            items=tuple(items),
            has_more=page.has_next,
            is_loading=False,
            is_loading_more=False,
        )

    async def load_more_if_needed(self, current_item: ListItem) -> None:
        """Load the next page once ``current_item`` is near the end of the list."""

        items = self._state.items
        index = next(
            (position for position, item in enumerate(items) if item.slug == current_item.slug),
            None,
        )
        if index is None:
            return
        if index >= len(items) - self._load_more_threshold:
            await self.load_list(refresh=False)

    async def retry(self) -> None:
        """Re-run the list operation that failed last (a refresh by default)."""

        refresh = True if self._last_failed_refresh is None else self._last_failed_refresh
        await self.load_list(refresh=refresh)

    def dismiss_error(self) -> None:
        if self._state.error is not None:
            self._update(error=None)

    # -- details -------------------------------------------------------------

    async def fetch_detail(self, item_id: str) -> ItemDetail:
        """Resolve a detail record, preferring the cache over the network.

        Concurrent calls for the same id share a single request. Cancelling one
        caller does not cancel the request for the others.
        """

        key = str(item_id)
        cached = self._cache.load_detail(key)
        if cached is not None:
            return cached

        if not self._connectivity.is_connected:
            raise CatalogError.from_kind(ErrorKind.NO_INTERNET_CONNECTION)
        if self._closed:
            raise RuntimeError("CatalogController has been closed")

        task = self._detail_requests.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch_and_cache_detail(key))
            self._detail_requests[key] = task
            task.add_done_callback(lambda done, key=key: self._detail_finished(key, done))
        return await asyncio.shield(task)

    async def _fetch_and_cache_detail(self, key: str) -> ItemDetail:
        detail = await self._client.fetch_detail(key)
        if not self._closed:
            self._cache.save_detail(key, detail)
        return detail

    def _detail_finished(self, key: str, task: asyncio.Task[ItemDetail]) -> None:
        if self._detail_requests.get(key) is task:
            del self._detail_requests[key]
        if task.cancelled():
            return
        exc = task.exception()
        if isinstance(exc, CatalogError):
            logger.warning("Detail fetch for %s failed: %s", key, exc.message)

    # -- favorites -----------------------------------------------------------

    def is_favorite(self, item_id: str) -> bool:
        return item_id in self._state.favorites

    def toggle_favorite(self, item_id: str) -> bool:
        """Flip membership of ``item_id`` and persist the whole set.

        Returns the new membership.
        """

        favorites = set(self._state.favorites)
        if item_id in favorites:
            favorites.remove(item_id)
        else:
            favorites.add(item_id)
        self._cache.save_favorites(favorites)
        self._update(favorites=frozenset(favorites))
        return item_id in favorites

    def remove_all_favorites(self) -> None:
        self._cache.clear_favorites()
        self._update(favorites=frozenset())

    def filtered_items(self, show_favorites: bool) -> list[ListItem]:
        items = self._state.items
        if not show_favorites:
            return list(items)
        favorites = self._state.favorites
        return [item for item in items if item.slug in favorites]


__all__ = ["CatalogController", "ControllerState", "StateListener"]
