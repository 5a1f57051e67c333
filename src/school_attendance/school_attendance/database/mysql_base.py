from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, time, timedelta
from typing import Any, Dict, Iterator, List, Optional

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..common.datetime_utils import parse_clock_time
from ..core.constants import QUERY_BATCH_SIZE
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    bound = conn_factory.current()
    if bound is not None:
        # Enclosing transaction() owns commit/rollback/close.
        cur = bound.cursor(dictionary=dictionary)
        try:
            yield bound, cur
        finally:
            cur.close()
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def iter_rows(cur, *, batch_size: int = QUERY_BATCH_SIZE) -> Iterator[Dict[str, Any]]:
    while True:
        rows = cur.fetchmany(batch_size)
        if not rows:
            return
        yield from rows


def is_duplicate_key(exc: BaseException) -> bool:
    return isinstance(exc, IntegrityError) and getattr(exc, "errno", None) == errorcode.ER_DUP_ENTRY


def normalize_mysql_time(value: Any) -> Optional[time]:
    """TIME columns arrive as ``time``, ``timedelta`` or text depending on the connector build."""

    if value is None or isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % 86400
        return (datetime.min + timedelta(seconds=seconds)).time()
    if isinstance(value, str):
        return parse_clock_time(value.strip())
    raise TypeError(f"Unsupported MySQL TIME value type: {type(value)!r}")
