"""RecordSource implementation backed by a local SQLite database."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from tokenproof.chains import Chain
from tokenproof.errors import RecordSourceError
from tokenproof.records.source import TokenRecord

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS citizen_tokens (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    citizen_id INTEGER NOT NULL,
    token TEXT NOT NULL,
    chain TEXT NOT NULL,
    used INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_citizen_tokens_chain_id ON citizen_tokens(chain, id);
"""


def _wrap(operation: str, exc: sqlite3.Error) -> RecordSourceError:
    # Locked/busy databases and dropped files surface as OperationalError.
    return RecordSourceError(
        operation, exc, retryable=isinstance(exc, sqlite3.OperationalError)
    )


class SQLiteRecordSource:
    """Token records stored in SQLite with WAL mode.

    Each instance owns its own connection; the rebuild worker opens a fresh
    one so it never shares a connection with the serving path.
    """

    def __init__(self, db_path: str = "data/tokens.db", timeout: float = 5.0) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(path)
        try:
            self._conn = sqlite3.connect(
                self.db_path, isolation_level=None, timeout=timeout, check_same_thread=False
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise _wrap("connect", e) from e

    # -- RecordSource protocol -------------------------------------------------

    def count(self, chain: Chain) -> int:
        """Number of tokens currently stored for *chain*."""
        try:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM citizen_tokens WHERE chain = ?", (chain.value,)
            ).fetchone()
        except sqlite3.Error as e:
            raise _wrap("count", e) from e
        return row[0]

    def fetch_page(self, chain: Chain, after_id: int, limit: int) -> list[TokenRecord]:
        """Next page of tokens for *chain* after the *after_id* cursor."""
        try:
            rows = self._conn.execute(
                "SELECT id, citizen_id, token FROM citizen_tokens "
                "WHERE chain = ? AND id > ? ORDER BY id ASC LIMIT ?",
                (chain.value, after_id, limit),
            ).fetchall()
        except sqlite3.Error as e:
            raise _wrap("fetch_page", e) from e
        return [
            TokenRecord(id=id_, citizen_id=citizen_id, token=str(token), chain=chain)
            for id_, citizen_id, token in rows
        ]

    def close(self) -> None:
        self._conn.close()

    # -- extras ----------------------------------------------------------------

    def insert_many(self, rows: Iterable[tuple[int, str, Chain]]) -> int:
        """Insert (citizen_id, token, chain) rows in one transaction."""
        now = datetime.now(UTC).isoformat()
        params = [
            (citizen_id, str(token), chain.value, now, now)
            for citizen_id, token, chain in rows
        ]
        cursor = self._conn.cursor()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            cursor.executemany(
                "INSERT INTO citizen_tokens (citizen_id, token, chain, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                params,
            )
            cursor.execute("COMMIT")
        except sqlite3.Error as e:
            self._conn.rollback()
            raise _wrap("insert_many", e) from e
        return len(params)

    def stats(self) -> dict[str, int]:
        """Count tokens grouped by chain."""
        try:
            rows = self._conn.execute(
                "SELECT chain, COUNT(*) FROM citizen_tokens GROUP BY chain"
            ).fetchall()
        except sqlite3.Error as e:
            raise _wrap("stats", e) from e
        return {chain: count for chain, count in rows}
