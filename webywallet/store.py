"""Storage interface for the wallet engine and its in-memory backend."""

from __future__ import annotations

import abc
import json
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator

CHAINS = ("RECEIVE", "PAY", "CHANGE", "MINING")


class StoreError(Exception):
    """Raised when a storage operation fails."""


class Store(abc.ABC):
    """Minimal storage interface the wallet needs from its backend."""

    @abc.abstractmethod
    def get_meta(self, key: str) -> str | None:
        """Return the metadata value for ``key``, or None."""

    @abc.abstractmethod
    def set_meta(self, key: str, value: str) -> None:
        """Set a metadata value, replacing any existing one."""

    @abc.abstractmethod
    def insert_output(self, secret_hash: bytes, secret: str, amount: int) -> None:
        """Store a new unspent output."""

    @abc.abstractmethod
    def mark_spent(self, secret_hash: bytes) -> None:
        """Flag the output with this hash as spent."""

    @abc.abstractmethod
    def insert_spent_hash(self, hash: bytes) -> None:
        """Record a spent hash, ignoring duplicates."""

    @abc.abstractmethod
    def get_unspent(self) -> list[tuple[str, int]]:
        """Return (secret, amount) of unspent outputs, largest amount first."""

    @abc.abstractmethod
    def get_all_outputs(self) -> list[tuple[str, int, str, int]]:
        """Return (secret, amount, created_at, spent) for every output."""

    @abc.abstractmethod
    def count_outputs(self) -> int:
        """Return the number of outputs, spent or not."""

    @abc.abstractmethod
    def count_unspent(self) -> int:
        """Return the number of unspent outputs."""

    @abc.abstractmethod
    def count_spent_hashes(self) -> int:
        """Return the number of recorded spent hashes."""

    @abc.abstractmethod
    def sum_unspent(self) -> int:
        """Return the total amount of unspent outputs."""

    @abc.abstractmethod
    def update_output_amount(self, secret_hash: bytes, new_amount: int) -> None:
        """Change the amount of an unspent output."""

    @abc.abstractmethod
    def get_depth(self, chain: str) -> int:
        """Return the derivation depth of a chain (0 if unknown)."""

    @abc.abstractmethod
    def set_depth(self, chain: str, depth: int) -> None:
        """Set the derivation depth of a chain."""

    @abc.abstractmethod
    def get_all_depths(self) -> dict[str, int]:
        """Return every chain depth."""

    @abc.abstractmethod
    def get_all_meta(self) -> dict[str, str]:
        """Return every metadata entry."""

    @abc.abstractmethod
    def get_spent_hashes_with_time(self) -> list[tuple[bytes, str]]:
        """Return (hash, spent_at) for every spent hash."""

    @abc.abstractmethod
    def get_unspent_full(self) -> list[tuple[str, int, str]]:
        """Return (secret, amount, created_at) for unspent outputs."""

    @abc.abstractmethod
    def clear_all(self) -> None:
        """Remove metadata, outputs and spent hashes; depths are kept."""

    @contextmanager
    def atomic(self) -> Iterator["Store"]:
        """Group operations; by default no transaction is used."""
        yield self


@dataclass
class MemOutput:
    """One output held by an in-memory state."""

    secret_hash: bytes
    secret: str
    amount: int
    created_at: str = ""
    spent: bool = False

    def _to_dict(self) -> dict[str, Any]:
        return {
            "secret_hash": list(self.secret_hash),
            "secret": self.secret,
            "amount": self.amount,
            "created_at": self.created_at,
            "spent": self.spent,
        }

    @classmethod
    def _from_dict(cls, data: Any) -> "MemOutput":
        data = _expect(data, dict, "output")
        return cls(
            secret_hash=_bytes(data["secret_hash"]),
            secret=_expect(data["secret"], str, "secret"),
            amount=_int(data["amount"], "amount"),
            created_at=_expect(data["created_at"], str, "created_at"),
            spent=_expect(data["spent"], bool, "spent"),
        )


def _expect(value: Any, kind: type, what: str) -> Any:
    if not isinstance(value, kind):
        raise TypeError(f"{what}: expected {kind.__name__}")
    return value


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{what}: expected integer")
    return value


def _bytes(value: Any) -> bytes:
    return bytes(_expect(value, list, "hash"))


@dataclass
class MemState:
    """Wallet state as plain data, serialisable to JSON."""

    meta: dict[str, str] = field(default_factory=dict)
    outputs: list[MemOutput] = field(default_factory=list)
    spent_hashes: list[tuple[bytes, str]] = field(default_factory=list)
    depths: dict[str, int] = field(default_factory=dict)

    @classmethod
    def new(cls) -> "MemState":
        """Return an empty state with every chain at depth 0."""
        return cls(depths={chain: 0 for chain in CHAINS})

    @classmethod
    def from_json(cls, text: str | bytes) -> "MemState":
        """Parse a state from its JSON form."""
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StoreError(str(exc)) from exc
        try:
            data = _expect(data, dict, "state")
            meta = {
                _expect(k, str, "meta key"): _expect(v, str, "meta value")
                for k, v in _expect(data["meta"], dict, "meta").items()
            }
            outputs = [
                MemOutput._from_dict(item)
                for item in _expect(data["outputs"], list, "outputs")
            ]
            spent = []
            for item in _expect(data["spent_hashes"], list, "spent_hashes"):
                hash_value, spent_at = _expect(item, list, "spent hash")
                spent.append((_bytes(hash_value), _expect(spent_at, str, "spent_at")))
            depths = {}
            for chain, depth in _expect(data["depths"], dict, "depths").items():
                if _int(depth, "depth") < 0:
                    raise ValueError("depth must not be negative")
                depths[chain] = depth
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"invalid wallet state: {exc}") from exc
        return cls(meta=meta, outputs=outputs, spent_hashes=spent, depths=depths)

    def to_json(self, pretty: bool = False) -> str:
        """Serialise the state to JSON, indented when ``pretty`` is true."""
        data = {
            "meta": self.meta,
            "outputs": [output._to_dict() for output in self.outputs],
            "spent_hashes": [[list(h), t] for h, t in self.spent_hashes],
            "depths": self.depths,
        }
        if pretty:
            return json.dumps(data, indent=2)
        return json.dumps(data, separators=(",", ":"))

    def copy(self) -> "MemState":
        """Return an independent copy of the state."""
        return MemState(
            meta=dict(self.meta),
            outputs=[replace(output) for output in self.outputs],
            spent_hashes=list(self.spent_hashes),
            depths=dict(self.depths),
        )


class MemStore(Store):
    """Store that keeps its state in memory."""

    def __init__(self, state: MemState | None = None) -> None:
        self._state = state if state is not None else MemState.new()
        self._on_change: Callable[[], None] | None = None

    @classmethod
    def from_json(cls, text: str | bytes) -> "MemStore":
        """Create a store from a JSON state."""
        return cls(MemState.from_json(text))

    def to_json(self) -> str:
        """Serialise the current state to compact JSON."""
        return self._state.to_json()

    def _changed(self) -> None:
        """Notify the registered listener, if any, that the state changed."""
        if self._on_change is not None:
            self._on_change()

    def _find(self, secret_hash: bytes, *, unspent_only: bool = False) -> MemOutput | None:
        wanted = bytes(secret_hash)
        return next(
            (
                output
                for output in self._state.outputs
                if output.secret_hash == wanted and not (unspent_only and output.spent)
            ),
            None,
        )

    def _unspent(self) -> Iterator[MemOutput]:
        return (output for output in self._state.outputs if not output.spent)

    def get_meta(self, key: str) -> str | None:
        return self._state.meta.get(key)

    def set_meta(self, key: str, value: str) -> None:
        self._state.meta[key] = value
        self._changed()

    def insert_output(self, secret_hash: bytes, secret: str, amount: int) -> None:
        if self._find(secret_hash) is not None:
            raise StoreError("UNIQUE constraint: output already exists")
        self._state.outputs.append(MemOutput(bytes(secret_hash), secret, amount))
        self._changed()

    def mark_spent(self, secret_hash: bytes) -> None:
        output = self._find(secret_hash)
        if output is not None:
            output.spent = True
        self._changed()

    def insert_spent_hash(self, hash: bytes) -> None:
        wanted = bytes(hash)
        if all(existing != wanted for existing, _ in self._state.spent_hashes):
            self._state.spent_hashes.append((wanted, ""))
        self._changed()

    def get_unspent(self) -> list[tuple[str, int]]:
        rows = [(output.secret, output.amount) for output in self._unspent()]
        return sorted(rows, key=lambda row: row[1], reverse=True)

    def get_all_outputs(self) -> list[tuple[str, int, str, int]]:
        return [
            (o.secret, o.amount, o.created_at, int(o.spent)) for o in self._state.outputs
        ]

    def count_outputs(self) -> int:
        return len(self._state.outputs)

    def count_unspent(self) -> int:
        return sum(1 for _ in self._unspent())

    def count_spent_hashes(self) -> int:
        return len(self._state.spent_hashes)

    def sum_unspent(self) -> int:
        return sum(output.amount for output in self._unspent())

    def update_output_amount(self, secret_hash: bytes, new_amount: int) -> None:
        output = self._find(secret_hash, unspent_only=True)
        if output is not None:
            output.amount = new_amount
        self._changed()

    def get_depth(self, chain: str) -> int:
        return self._state.depths.get(chain, 0)

    def set_depth(self, chain: str, depth: int) -> None:
        self._state.depths[chain] = depth
        self._changed()

    def get_all_depths(self) -> dict[str, int]:
        return dict(self._state.depths)

    def get_all_meta(self) -> dict[str, str]:
        return dict(self._state.meta)

    def get_spent_hashes_with_time(self) -> list[tuple[bytes, str]]:
        return list(self._state.spent_hashes)

    def get_unspent_full(self) -> list[tuple[str, int, str]]:
        return [(o.secret, o.amount, o.created_at) for o in self._unspent()]

    def clear_all(self) -> None:
        self._state.meta.clear()
        self._state.outputs.clear()
        self._state.spent_hashes.clear()
        self._changed()