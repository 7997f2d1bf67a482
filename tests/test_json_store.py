import hashlib
import json

import pytest

from webywallet.json_store import JsonStore
from webywallet.store import CHAINS, MemState, StoreError


def _hash(secret: str) -> bytes:
    return hashlib.sha256(secret.encode()).digest()


def test_new_store_has_default_depths():
    store = JsonStore()
    assert store.get_all_depths() == {chain: 0 for chain in CHAINS}
    assert store.get_depth("RECEIVE") == 0
    assert store.get_depth("UNKNOWN") == 0


def test_open_creates_file_with_default_state(tmp_path):
    path = tmp_path / "nested" / "wallet.json"
    JsonStore.open(path)
    assert path.exists()
    state = MemState.from_json(path.read_text())
    assert state.depths == {chain: 0 for chain in CHAINS}
    assert state.outputs == []
    assert state.meta == {}


def test_mutations_persist_across_reopen(tmp_path):
    path = tmp_path / "wallet.json"
    store = JsonStore.open(path)
    store.set_meta("master_secret", "ab" * 32)
    store.insert_output(_hash("s1"), "s1", 500)
    store.set_depth("PAY", 7)
    reopened = JsonStore.open(path)
    assert reopened.get_meta("master_secret") == "ab" * 32
    assert reopened.get_unspent() == [("s1", 500)]
    assert reopened.get_depth("PAY") == 7


def test_duplicate_outputs_are_appended():
    store = JsonStore()
    store.insert_output(_hash("s"), "s", 10)
    store.insert_output(_hash("s"), "s", 10)
    assert store.count_outputs() == 2


def test_unspent_sorted_by_amount_descending():
    store = JsonStore()
    store.insert_output(_hash("a"), "a", 5)
    store.insert_output(_hash("b"), "b", 50)
    store.insert_output(_hash("c"), "c", 20)
    assert [amount for _, amount in store.get_unspent()] == [50, 20, 5]


def test_mark_spent_updates_counts_and_sum():
    store = JsonStore()
    store.insert_output(_hash("a"), "a", 5)
    store.insert_output(_hash("b"), "b", 50)
    store.mark_spent(_hash("b"))
    assert store.count_unspent() == 1
    assert store.sum_unspent() == 5
    assert store.get_all_outputs()[1][3] == 1


def test_update_amount_only_for_unspent():
    store = JsonStore()
    store.insert_output(_hash("a"), "a", 5)
    store.insert_output(_hash("b"), "b", 8)
    store.mark_spent(_hash("b"))
    store.update_output_amount(_hash("a"), 9)
    store.update_output_amount(_hash("b"), 99)
    amounts = {secret: amount for secret, amount, _, _ in store.get_all_outputs()}
    assert amounts == {"a": 9, "b": 8}


def test_spent_hashes_are_deduplicated():
    store = JsonStore()
    store.insert_spent_hash(_hash("x"))
    store.insert_spent_hash(_hash("x"))
    assert store.count_spent_hashes() == 1
    assert store.get_spent_hashes_with_time() == [(_hash("x"), "")]


def test_clear_all_keeps_depths():
    store = JsonStore()
    store.set_meta("k", "v")
    store.insert_output(_hash("a"), "a", 1)
    store.insert_spent_hash(_hash("a"))
    store.set_depth("CHANGE", 3)
    store.clear_all()
    assert store.get_all_meta() == {}
    assert store.count_outputs() == 0
    assert store.count_spent_hashes() == 0
    assert store.get_depth("CHANGE") == 3


def test_to_json_round_trip():
    store = JsonStore()
    store.set_meta("k", "v")
    store.insert_output(_hash("a"), "a", 42)
    text = store.to_json()
    assert "\n" in text
    copy = JsonStore.from_json(text)
    assert copy.get_all_meta() == {"k": "v"}
    assert copy.get_unspent_full() == [("a", 42, "")]
    assert json.loads(copy.to_json()) == json.loads(text)


def test_from_json_invalid_raises():
    with pytest.raises(StoreError):
        JsonStore.from_json("not json")
    with pytest.raises(StoreError):
        JsonStore.from_json('{"meta": {}}')


def test_from_json_with_path_writes_on_first_change(tmp_path):
    path = tmp_path / "wallet.json"
    store = JsonStore.from_json(JsonStore().to_json(), path)
    assert not path.exists()
    store.set_meta("k", "v")
    assert MemState.from_json(path.read_text()).meta == {"k": "v"}


def test_atomic_commits_and_writes_once(tmp_path):
    path = tmp_path / "wallet.json"
    store = JsonStore.open(path)
    before = path.read_text()
    with store.atomic() as batch:
        batch.insert_output(_hash("a"), "a", 3)
        batch.set_depth("PAY", 1)
        assert path.read_text() == before
        assert store.count_outputs() == 0
    assert store.count_outputs() == 1
    assert store.get_depth("PAY") == 1
    assert MemState.from_json(path.read_text()).depths["PAY"] == 1


def test_atomic_rolls_back_on_error(tmp_path):
    path = tmp_path / "wallet.json"
    store = JsonStore.open(path)
    store.insert_output(_hash("a"), "a", 3)
    before = path.read_text()
    with pytest.raises(RuntimeError):
        with store.atomic() as batch:
            batch.mark_spent(_hash("a"))
            batch.set_depth("CHANGE", 5)
            raise RuntimeError("boom")
    assert store.count_unspent() == 1
    assert store.get_depth("CHANGE") == 0
    assert path.read_text() == before


def test_open_fails_when_parent_is_a_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(StoreError):
        JsonStore.open(blocker / "wallet.json")


def test_memory_store_writes_no_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    store = JsonStore()
    store.set_meta("k", "v")
    assert store.path is None
    assert list(tmp_path.iterdir()) == []