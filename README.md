# webywallet

Storage backends and an HTTP client for a Webcash HD wallet.

## Installation

```
pip install webywallet
```

## Storage

Every backend implements the abstract `Store` interface in `webywallet.store`.
It covers metadata, outputs, spent hashes and HD chain depths. A fresh state
has the chains `RECEIVE`, `PAY`, `CHANGE` and `MINING`, each at depth 0.
`clear_all()` removes metadata, outputs and spent hashes but keeps the depths.

- `MemStore` (`webywallet.store`) keeps the whole wallet state, a `MemState`,
  in memory. `MemStore.from_json()` and `to_json()` read and write it as
  compact JSON.
- `JsonStore` (`webywallet.json_store`) keeps the same state in memory. When it
  has a path, it rewrites the whole state to that file as indented JSON after
  every change. `JsonStore.open(path)` loads an existing file, or creates the
  file (and its parent directories) with a fresh state.
- `SqliteStore` (`webywallet.sqlite_store`) keeps the state in an SQLite
  database. `SqliteStore.open(path)` and `SqliteStore.in_memory()` set up the
  schema from `webywallet.schema` (`initialize_schema`, which also turns on WAL
  journalling). The store can be used as a context manager that closes the
  connection.

```python
from webywallet.sqlite_store import SqliteStore

with SqliteStore.in_memory() as store:
    store.insert_output(b"\x01" * 32, "secret", 100_000_000)
    assert store.sum_unspent() == 100_000_000

    with store.atomic() as tx:
        tx.mark_spent(b"\x01" * 32)
        tx.insert_spent_hash(b"\x01" * 32)
        tx.set_depth("PAY", 1)
```

### Batches

`atomic()` is a context manager that yields a store to run a batch on.

- `SqliteStore` runs the batch in one transaction. It commits when the block
  ends and rolls back if the block raises.
- `JsonStore` runs the batch on a copy of its state. The copy replaces the
  state, and the file is written once, only when the block ends without an
  error.
- `MemStore` has no transaction. The batch changes the state directly, so
  anything done before an error is kept.

### Errors

`StoreError` is raised when a store operation fails. Examples are a database
error, a file that cannot be read or written, or JSON that is not a valid
wallet state. Inserting an output whose hash is already stored raises
`StoreError` in `MemStore` and `SqliteStore`. `JsonStore` does not check for
this: it appends the output anyway.

## Server client

`webywallet.server` talks to a Webcash server. `NetworkMode.production()`,
`NetworkMode.testnet()` and `NetworkMode.custom(url)` choose the server.
`ServerConfig` holds the network and a request timeout, which defaults to 30
seconds.

```python
from webywallet.server import NetworkMode, ServerConfig, ServerClient

with ServerClient(ServerConfig(network=NetworkMode.testnet())) as client:
    target = client.get_target()
    print(target.difficulty_target_bits, target.mining_amount)
```

The client has these methods:

- `health_check(webcash)`: returns a `HealthResponse`.
- `replace(ReplaceRequest)`: returns a `ReplaceResponse`.
- `get_target()`: returns a `TargetResponse`.
- `submit_mining_report(MiningReportRequest)`: returns a
  `MiningReportResponse`.

You can pass in your own `requests.Session`. In that case `close()` leaves it
open.

The client raises `ServerError` in these cases:

- the connection fails;
- the server answers with a status other than 2xx;
- the reply is not the expected JSON.

For `replace`, the error message includes the server's `error` field when the
reply has one.

## What this package does not do

This package has storage and a server client only. It has no wallet logic:

- no HD key derivation;
- no paying, inserting, merging or recovering of webcash;
- no mining;
- no encryption of the wallet;
- no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```