from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import List

from sqlalchemy.exc import IntegrityError

from configpersist.shared.models import ServiceConfig, decode_config, encode_config
from configpersist.store.cache import VersionedCache
from configpersist.store.db import Connector, StorageGateway, is_duplicate_key
from configpersist.store.errors import ConfigNotFoundError, DuplicateConfigError
from configpersist.store.notifier import ChangeNotifier, ChangeWatcher
from configpersist.store.poller import ConfigPoller


logger = logging.getLogger("configpersist.store")


class PersisterState(str, Enum):
    uninitialized = "uninitialized"
    initializing = "initializing"
    running = "running"
    shutting_down = "shutting_down"
    closed = "closed"


class SqlPersister:
    """Versioned config store backed by the `service_configs` table.

    Construction connects, checks the table, and performs one synchronous pull;
    any failure there is raised and nothing is left running. After that a
    poller thread picks up new versions every `polling_interval` seconds and
    signals `change_watcher()`.

    Writes go straight to the table and are *not* applied to the cache; they
    become visible to readers (including the writer) on the next poll.
    """

    def __init__(self, connector: Connector, polling_interval: float):
        self._state = PersisterState.uninitialized
        self._state_lock = threading.Lock()

        self._cache = VersionedCache()
        self._notifier = ChangeNotifier()
        self._closed = threading.Event()

        self._set_state(PersisterState.initializing)
        engine = connector.connect()
        self._gateway = StorageGateway(engine)
        try:
            self._gateway.check_schema()
            self._pull_configs()
        except Exception:
            self._gateway.close()
            raise

        self._poller = ConfigPoller(self._pull_configs, self._notifier, polling_interval)
        self._poller.start()
        self._set_state(PersisterState.running)
        logger.info(
            f"Config persister running, latest version {self._cache.latest_version}",
            extra={"latest_version": self._cache.latest_version},
        )

    def _set_state(self, state: PersisterState) -> None:
        with self._state_lock:
            self._state = state

    @property
    def state(self) -> PersisterState:
        with self._state_lock:
            return self._state

    @property
    def latest_version(self) -> int:
        return self._cache.latest_version

    def _pull_configs(self) -> bool:
        """Fetch versions newer than the cache's latest; returns True if the cache grew.

        Only construction and the poller thread call this, so every cache advance after
        startup goes through the poller and reaches the watcher.
        """
        latest = self._cache.latest_version
        rows = self._gateway.fetch_since(latest)
        if not rows:
            return False
        return self._cache.merge(rows, decode_config)

    def persist_and_notify(self, label: str, config: ServiceConfig) -> None:
        """Publish `config` under its own version number.

        Raises DuplicateConfigError if that version was already published.
        """
        blob = encode_config(config)
        try:
            self._gateway.insert(config.version, blob)
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateConfigError(config.version) from e
            raise
        logger.info(
            f"Persisted config version {config.version}",
            extra={"version": config.version, "label": label},
        )

    def change_watcher(self) -> ChangeWatcher:
        """Signals once per poll that brought new versions.

        Drain it promptly: the poller blocks until each signal is received.
        """
        return self._notifier.watcher()

    def read_persisted_config(self) -> ServiceConfig:
        return self._cache.get_latest()

    def read_config(self, version: int) -> ServiceConfig:
        c = self._cache.get(version)
        if c is None:
            raise ConfigNotFoundError(version)
        return c

    def read_historical_configs(self) -> List[ServiceConfig]:
        return self._cache.list_all()

    def close(self) -> None:
        with self._state_lock:
            closing = self._state in (PersisterState.shutting_down, PersisterState.closed)
            if not closing:
                self._state = PersisterState.shutting_down

        if closing:
            # another close() owns the teardown; return only once it has finished
            self._poller.stop()
            self._closed.wait()
            return

        self._poller.stop()
        self._notifier.close()
        try:
            self._gateway.close()
        except Exception as e:
            logger.error(f"Could not terminate database connection: {e}")
        else:
            logger.info("Config persister shut down")
        self._set_state(PersisterState.closed)
        self._closed.set()

    def __enter__(self) -> SqlPersister:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
