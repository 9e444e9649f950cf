from __future__ import annotations

import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class RuntimeConfig:
    """Runtime configuration shared by the CLI, the API and embedding services.

    Every switch is read from the environment here so callers never parse env vars themselves.
    """

    env: str
    log_level: str
    log_format: str

    # Backing table
    db_url: str
    polling_interval_seconds: float
    create_schema: bool

    # HTTP surface
    api_host: str
    api_port: int


def _env(name: str, default: str | None = None) -> str | None:
    v = os.environ.get(name)
    if v is None:
        return default
    v = str(v).strip()
    return v if v != "" else default


def _env_bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    return v.lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    v = _env(name)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def get_runtime_config() -> RuntimeConfig:
    env = (_env("CONFIGPERSIST_ENV", _env("ENV", "dev")) or "dev").lower()

    # Log format: json or text
    log_format = (_env("CONFIGPERSIST_LOG_FORMAT", "json") or "json").lower()
    log_level = (_env("CONFIGPERSIST_LOG_LEVEL", "INFO") or "INFO").upper()

    db_url = _env("CONFIGPERSIST_DB_URL", "sqlite:///./configpersist.db") or "sqlite:///./configpersist.db"
    # Never poll faster than 10/s, even if misconfigured.
    polling_interval_seconds = max(0.1, _env_float("CONFIGPERSIST_POLL_SECONDS", 5.0))
    # Dev convenience: create the table on startup instead of expecting it to exist.
    create_schema = _env_bool("CONFIGPERSIST_CREATE_SCHEMA", default=False)

    api_host = _env("CONFIGPERSIST_API_HOST", "127.0.0.1") or "127.0.0.1"
    api_port = int(_env_float("CONFIGPERSIST_API_PORT", 8120))

    return RuntimeConfig(
        env=env,
        log_level=log_level,
        log_format=log_format,
        db_url=db_url,
        polling_interval_seconds=polling_interval_seconds,
        create_schema=create_schema,
        api_host=api_host,
        api_port=api_port,
    )


def _json_log_record(level: str, msg: str, *, extra: Mapping[str, Any] | None = None) -> str:
    body: dict[str, Any] = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "level": level,
        "msg": msg,
    }
    if extra:
        for k, v in extra.items():
            if v is None:
                continue
            body[k] = v
    return json.dumps(body, ensure_ascii=False)


def setup_logging(*, service_name: str) -> None:
    cfg = get_runtime_config()
    root = logging.getLogger()
    root.setLevel(getattr(logging, cfg.log_level, logging.INFO))

    # Replace whatever handlers are installed (uvicorn adds its own)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)

    if cfg.log_format == "json":
        class JsonFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
                extra = {
                    "logger": record.name,
                    "service": service_name,
                    "env": cfg.env,
                }
                # Store code attaches these via `extra=`
                for key in ("version", "label", "rows", "latest_version"):
                    if hasattr(record, key):
                        extra[key] = getattr(record, key)
                if record.exc_info:
                    extra["exc"] = self.formatException(record.exc_info)
                return _json_log_record(record.levelname, record.getMessage(), extra=extra)

        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root.addHandler(handler)
