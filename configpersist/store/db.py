from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol

from sqlalchemy import Engine, Integer, LargeBinary, create_engine, literal, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from configpersist.store.errors import SchemaMissingError


TABLE_NAME = "service_configs"

# Storage-specific codes for "duplicate key" on the Version column.
MYSQL_DUPLICATE_ENTRY = 1062
POSTGRES_UNIQUE_VIOLATION = "23505"


class Base(DeclarativeBase):
    pass


class ConfigRow(Base):
    """One published config version. `Version` is the uniqueness key."""

    __tablename__ = TABLE_NAME

    version: Mapped[int] = mapped_column("Version", Integer, primary_key=True, autoincrement=False)
    config: Mapped[bytes] = mapped_column("Config", LargeBinary)


@dataclass(frozen=True)
class StoredRow:
    version: int
    config: bytes


class Connector(Protocol):
    def connect(self) -> Engine: ...


@dataclass(frozen=True)
class UrlConnector:
    url: str
    echo: bool = False

    def connect(self) -> Engine:
        engine = create_engine(self.url, future=True, echo=self.echo)
        # create_engine is lazy; open one connection so bad URLs fail here.
        try:
            with engine.connect():
                pass
        except Exception:
            engine.dispose()
            raise
        return engine


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(engine)


def is_duplicate_key(exc: IntegrityError) -> bool:
    """True if the integrity error is a uniqueness violation rather than e.g. a NOT NULL failure."""
    orig: Any = exc.orig

    args = getattr(orig, "args", ()) or ()
    if args and args[0] == MYSQL_DUPLICATE_ENTRY:
        return True

    if getattr(orig, "pgcode", None) == POSTGRES_UNIQUE_VIOLATION:
        return True
    if getattr(orig, "sqlstate", None) == POSTGRES_UNIQUE_VIOLATION:
        return True

    # sqlite3 only reports it in the message
    msg = str(orig)
    return "UNIQUE constraint failed" in msg or "PRIMARY KEY must be unique" in msg


class StorageGateway:
    """The only code that talks to the backing table.

    The engine's pool is shared between the poller thread and writer threads;
    every call checks out its own short-lived session.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def check_schema(self) -> None:
        q = select(literal(1)).select_from(ConfigRow.__table__).limit(1)
        try:
            with self._engine.connect() as conn:
                conn.execute(q)
        except SQLAlchemyError as e:
            raise SchemaMissingError(f"table {TABLE_NAME} does not exist") from e

    def fetch_since(self, version: int) -> List[StoredRow]:
        q = (
            select(ConfigRow.version, ConfigRow.config)
            .where(ConfigRow.version > version)
            .order_by(ConfigRow.version.asc())
        )
        with self._sessions() as s:
            return [StoredRow(version=int(v), config=bytes(c)) for v, c in s.execute(q).all()]

    def insert(self, version: int, blob: bytes) -> None:
        with self._sessions() as s:
            s.add(ConfigRow(version=version, config=blob))
            s.commit()

    def close(self) -> None:
        self._engine.dispose()
