"""SQLite-based alias storage."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from ..alias import Alias, Aliases, Filter
from ..errors import AliasNotFoundError, ReadOnlyError, StorageError
from ..timestamps import ZERO_TIME, Clock, format_precise, is_zero, parse_rfc3339, utc_now
from .base import alias_key

logger = logging.getLogger(__name__)

COLUMNS = "alias, domain, addresses, description, suspended, created_ts, modified_ts, suspended_ts"


def _ts_to_db(ts: datetime) -> str | None:
    return None if is_zero(ts) else format_precise(ts)


def _ts_from_db(value: str | None) -> datetime:
    if not value:
        return ZERO_TIME
    return parse_rfc3339(value)


class SqliteStorage:
    """Store aliases as rows in a SQLite database."""

    type = "sqlite3"
    description = "SQLite3 backed alias storage"

    def __init__(self, db_path: Path, clock: Clock = utc_now):
        self._db_path = Path(db_path)
        self._clock = clock
        self._read_only = False
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    def open(self, read_only: bool = False) -> None:
        """Open database connection. The schema is only created when writable."""
        self._read_only = read_only
        try:
            if read_only:
                self._conn = sqlite3.connect(
                    f"file:{self._db_path}?mode=ro", uri=True, timeout=30.0
                )
            else:
                self._db_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self._db_path, timeout=30.0)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open SQLite DB {self._db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        if not read_only:
            self._create_schema()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if not self._conn:
            raise RuntimeError("Not connected. Call open() first.")
        return self._conn

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_schema(self) -> None:
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS alias (
                alias         VARCHAR(64),
                addresses     VARCHAR(255),
                domain        VARCHAR(255),
                description   VARCHAR(255),
                suspended     TINYINT(1) NOT NULL DEFAULT '0',
                created_ts    TIMESTAMP,
                modified_ts   TIMESTAMP,
                suspended_ts  TIMESTAMP DEFAULT NULL,
                PRIMARY KEY   (alias, domain)
            );
        """)
        self.conn.commit()

    def _check_writable(self) -> None:
        if self._read_only:
            raise ReadOnlyError("SQLite DB opened readonly")

    def _row_to_alias(self, row: sqlite3.Row) -> Alias:
        addresses = row["addresses"] or ""
        return Alias(
            alias=row["alias"],
            domain=row["domain"],
            email_addresses=[e for e in addresses.split(",") if e],
            description=row["description"] or "",
            suspended=bool(row["suspended"]),
            created_ts=_ts_from_db(row["created_ts"]),
            modified_ts=_ts_from_db(row["modified_ts"]),
            suspended_ts=_ts_from_db(row["suspended_ts"]),
        )

    def _execute(self, sql: str, params: tuple) -> sqlite3.Cursor:
        try:
            cur = self.conn.execute(sql, params)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}") from e
        return cur

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}") from e

    def get(self, alias: str, domain: str) -> Alias | None:
        rows = self._query(
            f"SELECT {COLUMNS} FROM alias WHERE alias = ? AND domain = ?",
            (alias, domain),
        )
        if not rows:
            return None
        return self._row_to_alias(rows[0])

    def _write(self, a: Alias, update_modified: bool) -> None:
        now = self._clock()
        created = now if is_zero(a.created_ts) else a.created_ts
        modified = now if update_modified else a.modified_ts
        self._execute(
            """INSERT OR REPLACE INTO alias
               (alias, addresses, domain, description, suspended, created_ts, modified_ts, suspended_ts)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                a.alias,
                ",".join(a.email_addresses),
                a.domain,
                a.description,
                int(a.suspended),
                _ts_to_db(created),
                _ts_to_db(modified),
                _ts_to_db(a.suspended_ts),
            ),
        )

    def put(self, a: Alias, update_modified: bool = False) -> None:
        self._check_writable()
        self._write(a, update_modified)

    def update(self, a: Alias, update_modified: bool = False) -> None:
        self._check_writable()
        self._write(a, update_modified)

    def search(self, criteria: Filter, match_any: bool = False) -> Aliases:
        rows = self._query(f"SELECT {COLUMNS} FROM alias")
        return Aliases(self._row_to_alias(row) for row in rows).filter(criteria, match_any)

    def suspend(self, alias: str, domain: str) -> None:
        self._check_writable()
        now = format_precise(self._clock())
        cur = self._execute(
            """UPDATE alias SET suspended = 1, modified_ts = ?, suspended_ts = ?
               WHERE alias = ? AND domain = ?""",
            (now, now, alias, domain),
        )
        if cur.rowcount == 0:
            raise AliasNotFoundError(alias_key(alias, domain))

    def unsuspend(self, alias: str, domain: str) -> None:
        self._check_writable()
        now = format_precise(self._clock())
        cur = self._execute(
            """UPDATE alias SET suspended = 0, modified_ts = ?, suspended_ts = NULL
               WHERE alias = ? AND domain = ?""",
            (now, alias, domain),
        )
        if cur.rowcount == 0:
            raise AliasNotFoundError(alias_key(alias, domain))

    def delete(self, alias: str, domain: str) -> None:
        self._check_writable()
        cur = self._execute(
            "DELETE FROM alias WHERE alias = ? AND domain = ?",
            (alias, domain),
        )
        if cur.rowcount == 0:
            raise AliasNotFoundError(alias_key(alias, domain))
        logger.debug("deleted %s from %s", alias_key(alias, domain), self._db_path)
