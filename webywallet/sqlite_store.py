"""Wallet store backed by an SQLite database."""

from __future__ import annotations

import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from .schema import initialize_schema
from .store import Store, StoreError


class SqliteStore(Store):
    """Store that keeps wallet state in SQLite tables.

    A lock serialises access to the connection. Inside ``atomic`` every
    operation runs in one transaction, committed when the block ends and
    rolled back if it raises.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "SqliteStore":
        """Open (or create) a database file and set up its schema."""
        try:
            connection = sqlite3.connect(os.fspath(path), check_same_thread=False)
            initialize_schema(connection)
        except sqlite3.Error as exc:
            raise StoreError(f"open {os.fspath(path)}: {exc}") from exc
        return cls(connection)

    @classmethod
    def in_memory(cls) -> "SqliteStore":
        """Create a store on a fresh in-memory database."""
        try:
            connection = sqlite3.connect(":memory:", check_same_thread=False)
            initialize_schema(connection)
        except sqlite3.Error as exc:
            raise StoreError(f"open in-memory database: {exc}") from exc
        return cls(connection)

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ── helpers ──────────────────────────────────────────────────

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        with self._lock:
            try:
                self._conn.execute(sql, params)
                if self._depth == 0 and self._conn.in_transaction:
                    self._conn.commit()
            except sqlite3.Error as exc:
                if self._depth == 0:
                    try:
                        if self._conn.in_transaction:
                            self._conn.rollback()
                    except sqlite3.Error:
                        pass
                raise StoreError(str(exc)) from exc

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def _scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        rows = self._query(sql, params)
        return rows[0][0] if rows else None

    # ── metadata ─────────────────────────────────────────────────

    def get_meta(self, key: str) -> str | None:
        try:
            return self._scalar("SELECT value FROM wallet_metadata WHERE key = ?", (key,))
        except StoreError as exc:
            raise StoreError(f"get_meta: {exc}") from exc

    def set_meta(self, key: str, value: str) -> None:
        self._execute(
            "INSERT OR REPLACE INTO wallet_metadata (key, value) VALUES (?, ?)",
            (key, value),
        )

    def get_all_meta(self) -> dict[str, str]:
        rows = self._query("SELECT key, value FROM wallet_metadata ORDER BY key")
        return {key: value for key, value in rows}

    # ── outputs ──────────────────────────────────────────────────

    def insert_output(self, secret_hash: bytes, secret: str, amount: int) -> None:
        self._execute(
            "INSERT INTO unspent_outputs (secret_hash, secret, amount, spent) "
            "VALUES (?, ?, ?, 0)",
            (bytes(secret_hash), secret, amount),
        )

    def mark_spent(self, secret_hash: bytes) -> None:
        self._execute(
            "UPDATE unspent_outputs SET spent = 1 WHERE secret_hash = ?",
            (bytes(secret_hash),),
        )

    def get_unspent(self) -> list[tuple[str, int]]:
        rows = self._query(
            "SELECT secret, amount FROM unspent_outputs WHERE spent = 0 ORDER BY amount DESC"
        )
        return [(secret, amount) for secret, amount in rows]

    def get_all_outputs(self) -> list[tuple[str, int, str, int]]:
        rows = self._query(
            "SELECT secret, amount, created_at, spent FROM unspent_outputs ORDER BY id"
        )
        return [(secret, amount, created, spent) for secret, amount, created, spent in rows]

    def get_unspent_full(self) -> list[tuple[str, int, str]]:
        rows = self._query(
            "SELECT secret, amount, created_at FROM unspent_outputs WHERE spent = 0"
        )
        return [(secret, amount, created) for secret, amount, created in rows]

    def count_outputs(self) -> int:
        return int(self._scalar("SELECT COUNT(*) FROM unspent_outputs"))

    def count_unspent(self) -> int:
        return int(self._scalar("SELECT COUNT(*) FROM unspent_outputs WHERE spent = 0"))

    def sum_unspent(self) -> int:
        total = self._scalar(
            "SELECT COALESCE(SUM(amount), 0) FROM unspent_outputs WHERE spent = 0"
        )
        return int(total or 0)

    def update_output_amount(self, secret_hash: bytes, new_amount: int) -> None:
        self._execute(
            "UPDATE unspent_outputs SET amount = ? WHERE secret_hash = ? AND spent = 0",
            (new_amount, bytes(secret_hash)),
        )

    # ── spent hashes ─────────────────────────────────────────────

    def insert_spent_hash(self, hash: bytes) -> None:
        self._execute(
            "INSERT OR IGNORE INTO spent_hashes (hash) VALUES (?)", (bytes(hash),)
        )

    def count_spent_hashes(self) -> int:
        return int(self._scalar("SELECT COUNT(*) FROM spent_hashes"))

    def get_spent_hashes_with_time(self) -> list[tuple[bytes, str]]:
        rows = self._query("SELECT hash, spent_at FROM spent_hashes ORDER BY id")
        return [(bytes(hash_value), spent_at) for hash_value, spent_at in rows]

    # ── chain depths ─────────────────────────────────────────────

    def get_depth(self, chain: str) -> int:
        depth = self._scalar(
            "SELECT depth FROM walletdepths WHERE chain_code = ?", (chain,)
        )
        return int(depth) if depth is not None else 0

    def set_depth(self, chain: str, depth: int) -> None:
        self._execute(
            "INSERT INTO walletdepths (chain_code, depth) VALUES (?, ?) "
            "ON CONFLICT(chain_code) DO UPDATE SET depth = excluded.depth",
            (chain, depth),
        )

    def get_all_depths(self) -> dict[str, int]:
        rows = self._query("SELECT chain_code, depth FROM walletdepths")
        return {chain: int(depth) for chain, depth in rows}

    # ── bulk ─────────────────────────────────────────────────────

    def clear_all(self) -> None:
        self._execute("DELETE FROM wallet_metadata")
        self._execute("DELETE FROM unspent_outputs")
        self._execute("DELETE FROM spent_hashes")

    @contextmanager
    def atomic(self) -> Iterator[Store]:
        """Run the enclosed operations in a single SQLite transaction."""
        with self._lock:
            if self._depth:
                # Already inside a transaction: run directly.
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            try:
                if not self._conn.in_transaction:
                    self._conn.execute("BEGIN")
            except sqlite3.Error as exc:
                raise StoreError(f"begin transaction: {exc}") from exc

            self._depth = 1
            try:
                yield self
            except BaseException:
                self._depth = 0
                try:
                    self._conn.rollback()
                except sqlite3.Error:
                    pass
                raise
            self._depth = 0
            try:
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"commit transaction: {exc}") from exc