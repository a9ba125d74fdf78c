"""
Relational storage for platforms and accounts.

LEGAL NOTICE:
This module handles local storage of credentials. Data stays on this device
and is never transmitted. Use only on devices you own or administer.
"""

import os
import logging
import itertools
import threading
from contextlib import contextmanager
from typing import Callable, Dict, FrozenSet, Iterator, Optional

from sqlalchemy import create_engine, event, inspect as sa_inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from . import config
from .errors import ConflictError, NotFoundError, StorageError, ValidationError, VaultError
from .schema import AccountRow, Base, PlatformRow
from .utils import set_private_permissions

logger = logging.getLogger(__name__)

PLATFORM_TABLE = PlatformRow.__tablename__
ACCOUNT_TABLE = AccountRow.__tablename__

ChangeCallback = Callable[[FrozenSet[str]], None]

MEMORY_PATH = ":memory:"


def sqlite_url(path: str) -> str:
    """SQLAlchemy URL for a database file (or ":memory:")."""
    if path == MEMORY_PATH:
        return "sqlite://"
    return f"sqlite:///{os.path.abspath(path)}"


def translate_error(exc: SQLAlchemyError) -> VaultError:
    """Map a driver error onto the vault error taxonomy."""
    if isinstance(exc, IntegrityError):
        message = str(exc.orig) if exc.orig is not None else str(exc)
        upper = message.upper()
        if "UNIQUE" in upper:
            return ConflictError(message)
        if "FOREIGN KEY" in upper:
            return NotFoundError(message)
        if "NOT NULL" in upper:
            return ValidationError(message)
    return StorageError(str(exc))


class Store:

    """
    Owns the SQLite engine, the single write lock and the change subscribers.
    One instance is created by the entry point and passed to every repository.
    """

    def __init__(self, url: str, schema_version: int = config.SCHEMA_VERSION):

        """
        Initialize the store.
        Args:
            url: SQLAlchemy URL of the SQLite database
            schema_version: Version expected in PRAGMA user_version
        """
        self.url = url
        self.schema_version = schema_version
        self._engine = self._create_engine(url)
        self._sessionmaker = sessionmaker(
            bind=self._engine,
            class_=Session,
            autoflush=False,
            expire_on_commit=False,
        )
        self._write_lock = threading.RLock()
        self._batch = threading.local()
        self._subscribers: Dict[int, ChangeCallback] = {}
        self._subscribers_lock = threading.Lock()
        # Serializes deliveries so the last re-query runs after the last commit
        self._notify_lock = threading.RLock()
        self._tokens = itertools.count(1)

    @classmethod
    def open(cls, path: str, schema_version: int = config.SCHEMA_VERSION) -> 'Store':
        """
        Open (or create) the database file at `path` and bring its schema up to date.
        """
        if path != MEMORY_PATH:
            directory = os.path.dirname(os.path.abspath(path))
            os.makedirs(directory, exist_ok=True)

        store = cls(sqlite_url(path), schema_version=schema_version)
        store.init_schema()

        if path != MEMORY_PATH and not set_private_permissions(path):
            logger.warning(f"Failed to set secure file permissions for database: {path}.")
        return store

    @staticmethod
    def _create_engine(url: str) -> Engine:
        in_memory = url == "sqlite://"
        engine_kwargs: Dict[str, object] = {
            "future": True,
            "connect_args": {
                "check_same_thread": False,
                "timeout": config.SQLITE_BUSY_TIMEOUT_SECONDS,
            },
        }
        if in_memory:
            # Every thread has to see the same in-memory database
            engine_kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **engine_kwargs)

        @event.listens_for(engine, "connect")
        def _receive_connect(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
                if not in_memory:
                    cursor.execute("PRAGMA journal_mode=WAL")
            finally:
                cursor.close()

        return engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_schema(self) -> None:
        """
        Create the tables. A database stamped with another schema version is
        wiped first; migrations are destructive.
        """
        with self._write_lock:
            try:
                with self._engine.begin() as conn:
                    current = conn.exec_driver_sql("PRAGMA user_version").scalar() or 0
                    existing = sa_inspect(conn).get_table_names()
                    if existing and current != self.schema_version:
                        logger.warning(
                            f"Schema version changed ({current} -> {self.schema_version}); discarding stored data"
                        )
                        Base.metadata.drop_all(conn)
                    Base.metadata.create_all(conn)
                    conn.exec_driver_sql(f"PRAGMA user_version = {int(self.schema_version)}")
            except SQLAlchemyError as e:
                logger.error(f"Schema initialisation failed for {self.url}: {e}", exc_info=True)
                raise translate_error(e) from e

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read session. Nothing is committed."""
        s = self._sessionmaker()
        try:
            yield s
        except SQLAlchemyError as e:
            raise translate_error(e) from e
        finally:
            s.close()

    @contextmanager
    def transaction(self, *tables: str) -> Iterator[Session]:
        """
        Write session under the write lock. Commits on success, rolls back on
        error and notifies subscribers that `tables` changed.
        """
        with self._write_lock:
            s = self._sessionmaker()
            try:
                yield s
                s.commit()
            except SQLAlchemyError as e:
                s.rollback()
                raise translate_error(e) from e
            except Exception:
                s.rollback()
                raise
            finally:
                s.close()
        self._changed(tables)

    @contextmanager
    def write_batch(self) -> Iterator[None]:
        """
        Hold the write lock across several transactions and deliver a single
        change notification when the batch ends, even if it ends with an error.
        """
        if getattr(self._batch, "pending", None) is not None:
            yield
            return

        changed = set()
        try:
            with self._write_lock:
                self._batch.pending = changed
                try:
                    yield
                finally:
                    self._batch.pending = None
        finally:
            if changed:
                self._notify(frozenset(changed))

    def subscribe(self, callback: ChangeCallback) -> int:
        """
        Register `callback` for change notifications. It is called on the
        writing thread with the set of changed table names.
        Returns:
            Token for unsubscribe()
        """
        token = next(self._tokens)
        with self._subscribers_lock:
            self._subscribers[token] = callback
        return token

    def unsubscribe(self, token: Optional[int]) -> None:
        with self._subscribers_lock:
            self._subscribers.pop(token, None)

    def _changed(self, tables) -> None:
        if not tables:
            return
        pending = getattr(self._batch, "pending", None)
        if pending is not None:
            pending.update(tables)
            return
        self._notify(frozenset(tables))

    def _notify(self, tables: FrozenSet[str]) -> None:
        with self._subscribers_lock:
            callbacks = list(self._subscribers.values())
        with self._notify_lock:
            for callback in callbacks:
                try:
                    callback(tables)
                except Exception as e:
                    logger.error(f"Change subscriber failed for {sorted(tables)}: {e}", exc_info=True)

    def close(self) -> None:
        """Release every pooled connection."""
        with self._subscribers_lock:
            self._subscribers.clear()
        self._engine.dispose()
