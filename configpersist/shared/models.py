from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from configpersist.store.errors import ConfigDecodeError


class ServiceConfig(BaseModel):
    """One published configuration version.

    The store treats everything except `version` as opaque payload.
    """

    version: int = Field(ge=0)

    user: Optional[str] = None
    date: Optional[int] = None  # unix seconds at publish time

    global_default_bucket: Optional[Dict[str, Any]] = None
    namespaces: Dict[str, Any] = Field(default_factory=dict)


def encode_config(config: ServiceConfig) -> bytes:
    return config.model_dump_json().encode("utf-8")


def decode_config(blob: bytes) -> ServiceConfig:
    try:
        return ServiceConfig.model_validate_json(blob)
    except ValidationError as e:
        raise ConfigDecodeError(str(e)) from e


def clone_config(config: ServiceConfig) -> ServiceConfig:
    return config.model_copy(deep=True)
