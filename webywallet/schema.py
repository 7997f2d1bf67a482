"""SQLite schema set-up for the wallet database."""

from __future__ import annotations

import sqlite3

from .store import CHAINS

_TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "unspent_outputs": (
        "id INTEGER PRIMARY KEY",
        "secret_hash BLOB UNIQUE NOT NULL",
        "secret TEXT NOT NULL",
        "amount INTEGER NOT NULL",
        "created_at DATETIME DEFAULT CURRENT_TIMESTAMP",
        "spent INTEGER DEFAULT 0",
    ),
    "spent_hashes": (
        "id INTEGER PRIMARY KEY",
        "hash BLOB UNIQUE NOT NULL",
        "spent_at DATETIME DEFAULT CURRENT_TIMESTAMP",
    ),
    "wallet_metadata": (
        "key TEXT PRIMARY KEY",
        "value TEXT NOT NULL",
    ),
    "walletdepths": (
        "chain_code TEXT PRIMARY KEY",
        "depth INTEGER NOT NULL DEFAULT 0",
    ),
}

_INDEXED_COLUMNS = (
    ("unspent_outputs", "secret_hash"),
    ("unspent_outputs", "spent"),
    ("spent_hashes", "hash"),
)


def _create_table(table: str, columns: tuple[str, ...]) -> str:
    return f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(columns)})"


def _create_index(table: str, column: str) -> str:
    return f"CREATE INDEX IF NOT EXISTS idx_{table}_{column} ON {table}({column})"


def enable_wal_mode(connection: sqlite3.Connection) -> None:
    """Switch the database to WAL journalling with NORMAL synchronisation."""
    connection.execute("PRAGMA journal_mode = WAL")
    connection.execute("PRAGMA synchronous = NORMAL")


def initialize_schema(connection: sqlite3.Connection) -> None:
    """Create the wallet tables, default chain depths and indexes (idempotent)."""
    enable_wal_mode(connection)
    with connection:
        for table, columns in _TABLE_COLUMNS.items():
            connection.execute(_create_table(table, columns))
        connection.executemany(
            "INSERT OR IGNORE INTO walletdepths (chain_code, depth) VALUES (?, 0)",
            [(chain,) for chain in CHAINS],
        )
        for table, column in _INDEXED_COLUMNS:
            connection.execute(_create_index(table, column))