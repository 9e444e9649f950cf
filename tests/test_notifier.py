from __future__ import annotations

import threading

from configpersist.store.notifier import ChangeNotifier


def _notify_in_thread(n: ChangeNotifier) -> tuple[threading.Thread, list[bool]]:
    result: list[bool] = []
    t = threading.Thread(target=lambda: result.append(n.notify()))
    t.start()
    return t, result


def test_notify_blocks_until_a_watcher_receives():
    n = ChangeNotifier()
    t, result = _notify_in_thread(n)

    t.join(timeout=0.1)
    assert t.is_alive(), "notify() must not return before someone receives"

    assert n.watcher().wait(timeout=2) is True
    t.join(timeout=2)
    assert result == [True]


def test_wait_times_out_without_a_signal():
    n = ChangeNotifier()
    assert n.watcher().wait(timeout=0.05) is False


def test_close_releases_blocked_watchers():
    n = ChangeNotifier()
    got: list[bool] = []
    t = threading.Thread(target=lambda: got.append(n.watcher().wait()))
    t.start()

    n.close()
    t.join(timeout=2)

    assert got == [False]
    assert n.watcher().closed is True


def test_iteration_yields_per_signal_and_ends_on_close():
    n = ChangeNotifier()
    seen: list[int] = []

    def consume():
        for _ in n.watcher():
            seen.append(1)

    t = threading.Thread(target=consume)
    t.start()

    assert n.notify() is True
    assert n.notify() is True
    n.close()
    t.join(timeout=2)

    assert not t.is_alive()
    assert seen == [1, 1]


def test_interrupt_releases_blocked_sender_and_withdraws_signal():
    n = ChangeNotifier()
    t, result = _notify_in_thread(n)

    n.interrupt()
    t.join(timeout=2)

    assert result == [False]
    # the undelivered signal must not leak to a late watcher
    assert n.watcher().wait(timeout=0.05) is False
    assert n.notify() is False


def test_notify_after_close_returns_false():
    n = ChangeNotifier()
    n.close()
    assert n.notify() is False
