from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from configpersist.shared.models import ServiceConfig


def _read(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(data).__name__}")
    return data


def read_config_file(path: str | Path, *, version: int | None = None) -> ServiceConfig:
    """Load a config document (YAML or JSON) from disk.

    `version` overrides whatever version the document declares, which lets
    operators republish an old document under a new version number.
    """

    data = _read(Path(path))
    if version is not None:
        data["version"] = version
    return ServiceConfig.model_validate(data)
