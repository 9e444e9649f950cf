from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException

from configpersist.shared.models import ServiceConfig
from configpersist.store.errors import ConfigNotFoundError, DuplicateConfigError, NoConfigError
from configpersist.store.persister import SqlPersister


logger = logging.getLogger("configpersist.api")


def create_app(persister: SqlPersister) -> FastAPI:
    """HTTP view over one persister. The caller owns the persister and closes it."""

    app = FastAPI(title="Config Persister")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "ok": True,
            "state": persister.state.value,
            "latest_version": persister.latest_version,
        }

    @app.get("/config")
    def latest_config():
        try:
            return persister.read_persisted_config().model_dump()
        except NoConfigError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.get("/configs")
    def list_configs():
        return {"configs": [c.model_dump() for c in persister.read_historical_configs()]}

    @app.get("/configs/{version}")
    def get_config(version: int):
        try:
            return persister.read_config(version).model_dump()
        except ConfigNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.post("/configs", status_code=201)
    def publish(config: ServiceConfig, label: str = "api"):
        try:
            persister.persist_and_notify(label, config)
        except DuplicateConfigError as e:
            raise HTTPException(status_code=409, detail=str(e))
        # Not in the cache until the next poll.
        return {"ok": True, "version": config.version}

    return app
