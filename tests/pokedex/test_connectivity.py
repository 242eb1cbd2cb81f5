"""Tests for the reachability observer."""

from __future__ import annotations

import logging
import threading

import pytest

from pokedex.services.connectivity import ConnectivityObserver, get_connectivity_observer


def test_reports_before_start_update_status_silently() -> None:
    observer = ConnectivityObserver()
    events: list[bool] = []
    observer.subscribe(events.append)

    observer.report(False)

    assert observer.is_connected is False
    assert events == []


def test_only_transitions_are_dispatched() -> None:
    observer = ConnectivityObserver()
    events: list[bool] = []
    observer.subscribe(events.append)
    observer.start()

    observer.report(True)
    observer.report(False)
    observer.report(False)
    observer.report(True)

    assert events == [False, True]


def test_start_is_idempotent() -> None:
    observer = ConnectivityObserver()
    events: list[bool] = []
    observer.subscribe(events.append)

    observer.start()
    observer.start()
    observer.report(False)

    assert observer.started
    assert events == [False]


def test_unsubscribe_stops_notifications() -> None:
    observer = ConnectivityObserver()
    observer.start()
    events: list[bool] = []
    unsubscribe = observer.subscribe(events.append)

    unsubscribe()
    unsubscribe()
    observer.report(False)

    assert events == []


def test_failing_listener_does_not_starve_others(caplog: pytest.LogCaptureFixture) -> None:
    observer = ConnectivityObserver()
    observer.start()
    events: list[bool] = []

    def broken(_: bool) -> None:
        raise RuntimeError("boom")

    observer.subscribe(broken)
    observer.subscribe(events.append)

    with caplog.at_level(logging.ERROR):
        observer.report(False)

    assert events == [False]
    assert "Connectivity listener" in caplog.text


def test_reports_from_worker_threads() -> None:
    observer = ConnectivityObserver()
    observer.start()
    events: list[bool] = []
    observer.subscribe(events.append)

    worker = threading.Thread(target=observer.report, args=(False,))
    worker.start()
    worker.join()

    assert observer.is_connected is False
    assert events == [False]


def test_process_wide_observer_is_shared() -> None:
    assert get_connectivity_observer() is get_connectivity_observer()
