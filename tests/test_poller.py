from __future__ import annotations

import threading

from configpersist.store.notifier import ChangeNotifier
from configpersist.store.poller import ConfigPoller


class FlakyPull:
    """Fails on the first call, reports a change on the second, then nothing."""

    def __init__(self) -> None:
        self.calls = 0
        self.called = threading.Event()

    def __call__(self) -> bool:
        self.calls += 1
        self.called.set()
        if self.calls == 1:
            raise RuntimeError("database went away")
        return self.calls == 2


def test_pull_errors_do_not_stop_the_loop():
    pull = FlakyPull()
    n = ChangeNotifier()
    poller = ConfigPoller(pull, n, interval_seconds=0.02)
    poller.start()
    try:
        assert n.watcher().wait(timeout=5) is True
        assert pull.calls >= 2
        assert poller.is_alive()
    finally:
        assert poller.stop(timeout=5) is True

    assert poller.stopped.is_set()
    assert not poller.is_alive()


def test_no_change_means_no_notification():
    n = ChangeNotifier()
    called = threading.Event()

    def pull() -> bool:
        called.set()
        return False

    poller = ConfigPoller(pull, n, interval_seconds=0.01)
    poller.start()
    try:
        assert called.wait(timeout=5)
        assert n.watcher().wait(timeout=0.1) is False
    finally:
        poller.stop(timeout=5)


def test_stop_while_waiting_for_the_next_tick_is_immediate():
    poller = ConfigPoller(lambda: False, ChangeNotifier(), interval_seconds=60)
    poller.start()
    assert poller.stop(timeout=2) is True
    assert poller.stopped.is_set()


def test_stop_releases_a_poller_stuck_on_an_undrained_notification():
    poller = ConfigPoller(lambda: True, ChangeNotifier(), interval_seconds=0.01)
    poller.start()

    # give it time to reach notify(); nobody is watching
    threading.Event().wait(0.1)

    assert poller.stop(timeout=5) is True
    assert not poller.is_alive()


def test_stop_before_start_is_harmless():
    poller = ConfigPoller(lambda: False, ChangeNotifier(), interval_seconds=1)
    assert poller.stop(timeout=1) is True
