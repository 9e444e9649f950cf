from __future__ import annotations

from pathlib import Path

import pytest

from configpersist.shared.models import ServiceConfig, encode_config
from configpersist.store.db import StorageGateway, UrlConnector, init_db


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite file that already has the config table."""
    url = f"sqlite:///{tmp_path / 'configs.db'}"
    engine = UrlConnector(url).connect()
    init_db(engine)
    engine.dispose()
    return url


@pytest.fixture
def bare_db_url(tmp_path: Path) -> str:
    """URL of a SQLite file without the config table."""
    return f"sqlite:///{tmp_path / 'bare.db'}"


@pytest.fixture
def gateway(db_url: str):
    gw = StorageGateway(UrlConnector(db_url).connect())
    yield gw
    gw.close()


@pytest.fixture
def seed(gateway: StorageGateway):
    """Insert valid configs for the given versions straight into the table."""

    def _seed(*versions: int) -> None:
        for v in versions:
            gateway.insert(v, encode_config(ServiceConfig(version=v, user=f"user-{v}")))

    return _seed
