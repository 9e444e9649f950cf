from __future__ import annotations


class PersisterError(Exception):
    """Base class for errors raised by the config persister."""


class SchemaMissingError(PersisterError):
    """The backing table is not reachable; raised only during construction."""


class ConfigDecodeError(PersisterError):
    """A stored payload could not be decoded into a ServiceConfig."""


class DuplicateConfigError(PersisterError):
    """A config with the provided version number already exists."""

    def __init__(self, version: int):
        super().__init__(f"config with version {version} already exists")
        self.version = version


class NoConfigError(PersisterError):
    """The persister has no config yet."""


class ConfigNotFoundError(NoConfigError):
    def __init__(self, version: int):
        super().__init__(f"config version {version} not found")
        self.version = version
