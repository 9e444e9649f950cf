from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from configpersist.shared.models import ServiceConfig, clone_config
from configpersist.store.db import StoredRow
from configpersist.store.errors import ConfigDecodeError, NoConfigError


logger = logging.getLogger("configpersist.cache")

EMPTY_VERSION = -1


class SharedLock:
    """Readers-writer lock: many readers at once, or a single writer.

    Waiting writers block new readers so a steady stream of reads cannot starve the poller.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class VersionedCache:
    """In-memory map of version -> config that only ever grows.

    `latest_version` is always the largest cached version, or EMPTY_VERSION.
    Callers get deep copies; nothing outside holds a reference into the map.
    """

    def __init__(self) -> None:
        self._lock = SharedLock()
        self._configs: Dict[int, ServiceConfig] = {}
        self._latest_version = EMPTY_VERSION

    @property
    def latest_version(self) -> int:
        with self._lock.shared():
            return self._latest_version

    def __len__(self) -> int:
        with self._lock.shared():
            return len(self._configs)

    def get(self, version: int) -> Optional[ServiceConfig]:
        with self._lock.shared():
            c = self._configs.get(version)
            return clone_config(c) if c is not None else None

    def get_latest(self) -> ServiceConfig:
        with self._lock.shared():
            c = self._configs.get(self._latest_version)
            if c is None:
                raise NoConfigError("persister has no config")
            return clone_config(c)

    def list_all(self) -> List[ServiceConfig]:
        # dict order is insertion order, not version order
        with self._lock.shared():
            return [clone_config(self._configs[v]) for v in sorted(self._configs)]

    def merge(self, rows: Iterable[StoredRow], decode: Callable[[bytes], ServiceConfig]) -> bool:
        """Decode `rows` and add them; returns True if at least one new version was added."""
        decoded: List[tuple[int, ServiceConfig]] = []
        for r in rows:
            try:
                c = decode(r.config)
            except ConfigDecodeError as e:
                logger.warning(
                    f"Could not decode config version {r.version}, skipping: {e}",
                    extra={"version": r.version},
                )
                continue
            if c.version != r.version:
                logger.warning(
                    f"Config stored as version {r.version} declares version {c.version}, skipping",
                    extra={"version": r.version},
                )
                continue
            decoded.append((r.version, c))

        if not decoded:
            return False

        added = 0
        with self._lock.exclusive():
            for version, c in decoded:
                if version in self._configs:
                    continue
                self._configs[version] = c
                added += 1
                if version > self._latest_version:
                    self._latest_version = version
            latest = self._latest_version

        if added:
            logger.debug(f"Merged {added} config version(s)", extra={"rows": added, "latest_version": latest})
        return added > 0
