"""Process-wide reachability tracking.

The platform's reachability facility pushes status updates through
:meth:`ConnectivityObserver.report`; nothing here polls. Subscribers are only
told about transitions, and only once the observer has been started.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from functools import lru_cache

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityObserver:
    """Holds the current ``connected`` status and notifies on change.

    ``report`` may be called from any thread. Listeners run on the reporting
    thread, so consumers that own state on an event loop must hop back onto it
    themselves.
    """

    def __init__(self, *, initially_connected: bool = True) -> None:
        self._connected = initially_connected
        self._started = False
        self._lock = threading.Lock()
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Begin dispatching transitions. Subsequent calls are ignored."""

        with self._lock:
            if self._started:
                logger.debug("Connectivity observer already started")
                return
            self._started = True
        logger.info("Connectivity observer started (connected=%s)", self._connected)

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def report(self, connected: bool) -> None:
        """Record the latest reachability status pushed by the platform."""

        with self._lock:
            changed = connected != self._connected
            self._connected = connected
            if not (changed and self._started):
                return
            listeners = list(self._listeners)

        logger.info("Connectivity changed: %s", "online" if connected else "offline")
        for listener in listeners:
            try:
                listener(connected)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)


@lru_cache(maxsize=1)
def get_connectivity_observer() -> ConnectivityObserver:
    """Return the process-wide :class:`ConnectivityObserver`."""

    return ConnectivityObserver()


__all__ = ["ConnectivityListener", "ConnectivityObserver", "get_connectivity_observer"]
