from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from configpersist.store.notifier import ChangeNotifier


logger = logging.getLogger("configpersist.poller")


class ConfigPoller:
    """Background thread that calls `pull` every `interval_seconds`.

    `pull` returns True when the cache changed; the poller then signals the
    notifier. Errors from `pull` are logged and retried on the next tick.

    Shutdown is a two-event handshake: `stop()` sets `shutdown`, and the
    thread sets `stopped` on its way out.
    """

    def __init__(self, pull: Callable[[], bool], notifier: ChangeNotifier, interval_seconds: float):
        self._pull = pull
        self._notifier = notifier
        self._interval = float(interval_seconds)

        self.shutdown = threading.Event()
        self.stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="configpersist-poller", daemon=True)
        self._thread.start()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        try:
            while not self.shutdown.wait(self._interval):
                try:
                    changed = self._pull()
                except Exception as e:
                    logger.warning(f"Received an error trying to fetch config updates: {e}")
                    continue
                if changed:
                    self._notifier.notify()
            logger.info("Received shutdown signal, shutting down config poller")
        finally:
            self.stopped.set()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Ask the thread to exit and wait for it. Returns False only if `timeout` expired first."""
        self.shutdown.set()
        # A notify() blocked on an absent watcher would otherwise never return.
        self._notifier.interrupt()
        if self._thread is None:
            return True
        if not self.stopped.wait(timeout):
            return False
        self._thread.join()
        return True
