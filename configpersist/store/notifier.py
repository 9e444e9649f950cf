from __future__ import annotations

import threading
import time
from typing import Iterator, Optional


class ChangeNotifier:
    """Unbuffered single-slot signal: `notify()` blocks until a watcher takes it.

    Only one thread (the poller) may call `notify()`. A watcher that never
    drains will stall that thread on the next change; consumers that cannot
    keep up should drain in a dedicated thread.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = False
        self._sent = 0
        self._received = 0
        self._interrupted = False
        self._closed = False

    def notify(self) -> bool:
        """Hand one signal to a watcher. Returns False if interrupted or closed before delivery."""
        with self._cond:
            if self._interrupted or self._closed:
                return False
            self._pending = True
            self._sent += 1
            seq = self._sent
            self._cond.notify_all()

            while self._received < seq and not (self._interrupted or self._closed):
                self._cond.wait()

            if self._received < seq:
                # nobody took it; withdraw so a later watcher does not see a stale signal
                self._pending = False
                return False
            return True

    def interrupt(self) -> None:
        """Release a blocked `notify()` and refuse further sends. Watchers are unaffected."""
        with self._cond:
            self._interrupted = True
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a signal arrives (True), the notifier closes or `timeout` expires (False)."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._pending and not self._closed:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(timeout=remaining)

            if not self._pending:
                return False
            self._pending = False
            self._received += 1
            self._cond.notify_all()
            return True

    def watcher(self) -> ChangeWatcher:
        return ChangeWatcher(self)


class ChangeWatcher:
    """Receive-only view of a ChangeNotifier.

    Iterating yields once per change until the notifier is closed:

        for _ in persister.change_watcher():
            reload(persister.read_persisted_config())
    """

    def __init__(self, notifier: ChangeNotifier):
        self._notifier = notifier

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._notifier.wait(timeout)

    @property
    def closed(self) -> bool:
        return self._notifier.closed

    def __iter__(self) -> Iterator[None]:
        while self._notifier.wait():
            yield None
