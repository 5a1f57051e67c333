from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import mysql.connector


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: We create short-lived connections per operation. Inside
    ``transaction()`` every ``db_cursor`` shares one connection and the
    whole block commits (or rolls back) once.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._bound: ContextVar[Optional[Any]] = ContextVar(f"db_tx_{id(self)}", default=None)

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
        )

    def current(self):
        """Connection bound by an enclosing ``transaction()``, if any."""
        return self._bound.get()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        outer = self._bound.get()
        if outer is not None:
            yield outer
            return

        conn = self.connect()
        token = self._bound.set(conn)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._bound.reset(token)
            conn.close()
