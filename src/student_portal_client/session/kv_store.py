from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path


class KeyValueStore:
    """String key/value table in sqlite. Each bulk call runs in one transaction."""

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialize_schema()

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    def multi_get(self, keys: Iterable[str]) -> dict[str, str | None]:
        wanted = list(keys)
        result: dict[str, str | None] = {key: None for key in wanted}
        if not wanted:
            return result
        placeholders = ", ".join("?" for _ in wanted)
        rows = self._conn.execute(
            f"SELECT key, value FROM kv_entries WHERE key IN ({placeholders})",
            tuple(wanted),
        ).fetchall()
        for row in rows:
            result[row["key"]] = row["value"]
        return result

    def multi_set(self, items: Iterable[tuple[str, str]]) -> None:
        with self.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO kv_entries (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                list(items),
            )

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self.transaction() as conn:
            conn.executemany(
                "DELETE FROM kv_entries WHERE key = ?",
                [(key,) for key in keys],
            )

    def replace(self, items: Iterable[tuple[str, str]], removed: Iterable[str]) -> None:
        with self.transaction() as conn:
            conn.executemany(
                "DELETE FROM kv_entries WHERE key = ?",
                [(key,) for key in removed],
            )
            conn.executemany(
                """
                INSERT INTO kv_entries (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                list(items),
            )

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS kv_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        self._conn.commit()
