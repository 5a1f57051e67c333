from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

# Quoted literals are matched whole so a ';' inside them never ends a statement.
_SQL_TOKEN = re.compile(r"'(?:\\.|''|[^'\\])*'|\"(?:\\.|[^\"\\])*\"|;|[^'\";]+|['\"]", re.S)
_CREATE_DB_OR_USE = re.compile(r"(?im)^\s*(?:CREATE\s+DATABASE|USE)\b[^;]*;\s*$")


def _config_from(db_config: dict) -> DBConfig:
    return DBConfig(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "school_attendance")),
    )


def _server_connection(config: DBConfig, *, select_database: bool = True):
    params = {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "use_pure": True,
    }
    if select_database:
        params["database"] = config.database
    return mysql.connector.connect(**params)


def split_sql_statements(sql: str) -> Iterator[str]:
    """Yield the statements of a schema/seed script; ``--`` comment lines are dropped."""

    body = "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))
    pending: list[str] = []
    for token in _SQL_TOKEN.findall(body):
        if token != ";":
            pending.append(token)
            continue
        statement = "".join(pending).strip()
        pending = []
        if statement:
            yield statement

    tail = "".join(pending).strip()
    if tail:
        yield tail


def run_sql_file(db_config: dict, path: str | Path) -> int:
    """Execute a script against the configured database; returns the statement count.

    ``CREATE DATABASE`` / ``USE`` lines are ignored so the target database name
    always comes from settings.
    """

    config = _config_from(db_config)
    script = _CREATE_DB_OR_USE.sub("", Path(path).read_text(encoding="utf-8"))

    conn = _server_connection(config)
    try:
        cur = conn.cursor()
        executed = 0
        for statement in split_sql_statements(script):
            cur.execute(statement)
            executed += 1
        conn.commit()
    finally:
        conn.close()

    logger.info("Applied %s (%d statements) to %s", Path(path).name, executed, config.database)
    return executed


def ensure_database_exists(db_config: dict) -> None:
    config = _config_from(db_config)
    conn = _server_connection(config, select_database=False)
    try:
        conn.cursor().execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    run_sql_file(db_config, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    run_sql_file(db_config, seed_path)


def list_tables(db_config: dict) -> list[str]:
    conn = _server_connection(_config_from(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
