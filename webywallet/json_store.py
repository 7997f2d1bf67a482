"""Wallet store kept in memory and mirrored to a JSON file."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .store import MemOutput, MemState, MemStore, Store, StoreError


class _AppendingStore(MemStore):
    """In-memory store whose outputs are appended without a uniqueness check."""

    def insert_output(self, secret_hash: bytes, secret: str, amount: int) -> None:
        self._state.outputs.append(MemOutput(bytes(secret_hash), secret, amount))
        self._changed()


class JsonStore(_AppendingStore):
    """Store whose state lives in memory and is written to a JSON file.

    With a path, the whole state is rewritten to that file after every
    change. Without one it is purely in memory; use ``to_json`` to read it.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        super().__init__(MemState.new())
        self._path = Path(path) if path is not None else None

    @property
    def path(self) -> Path | None:
        """The file the state is written to, if any."""
        return self._path

    @classmethod
    def from_json(
        cls, text: str | bytes, path: str | os.PathLike[str] | None = None
    ) -> "JsonStore":
        """Create a store from a JSON state, optionally backed by ``path``."""
        store = cls(path)
        store._state = MemState.from_json(text)
        return store

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "JsonStore":
        """Open a JSON file, creating it with a fresh state if it is missing."""
        path = Path(path)
        if path.exists():
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise StoreError(f"read {path}: {exc}") from exc
            return cls.from_json(text, path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"mkdir {path.parent}: {exc}") from exc
        store = cls(path)
        store._flush()
        return store

    def to_json(self) -> str:
        """Serialise the current state to indented JSON."""
        return self._state.to_json(pretty=True)

    def _flush(self) -> None:
        if self._path is None:
            return
        try:
            self._path.write_text(self.to_json(), encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"write {self._path}: {exc}") from exc

    def _changed(self) -> None:
        self._flush()

    @contextmanager
    def atomic(self) -> Iterator[Store]:
        """Run a batch on a copy of the state; commit and write once on success."""
        batch = _AppendingStore(self._state.copy())
        yield batch
        self._state = batch._state
        self._flush()