"""Tests for snapshot files and the generation store."""

from __future__ import annotations

import gzip
import json
from pathlib import Path

import pytest

from tokenproof.chains import Chain
from tokenproof.errors import SnapshotCorruptError, SnapshotNotFoundError
from tokenproof.merkle import DEFAULT_OPTIONS, MerkleTree, TreeOptions
from tokenproof.merkle.hashing import hash_token
from tokenproof.snapshot import SnapshotStore, load, persist, read_payload, snapshot_filename


def _tree(n: int = 5) -> MerkleTree:
    return MerkleTree([hash_token(i, i + 1) for i in range(n)])


def _write_raw(path: Path, payload) -> None:
    path.write_bytes(gzip.compress(json.dumps(payload).encode()))


# ── Codec ────────────────────────────────────────────────────────────


class TestCodec:
    def test_filename(self):
        assert snapshot_filename(Chain.ETH) == "ETH_tree.json.gz"
        assert snapshot_filename(Chain.AVAX) == "AVAX_tree.json.gz"

    def test_round_trip(self, tmp_path):
        tree = _tree()
        path = persist(tmp_path / "ETH_tree.json.gz", Chain.ETH, tree.root, tree.leaves, tree.options)

        loaded = load(path)

        assert loaded.root == tree.root
        assert loaded.leaves == tree.leaves
        assert loaded.options == tree.options

    def test_payload_layout(self, tmp_path):
        tree = _tree(2)
        path = persist(tmp_path / "x.json.gz", Chain.ARB, tree.root, tree.leaves, DEFAULT_OPTIONS)

        payload = read_payload(path)

        assert payload["chain"] == "ARB"
        assert payload["root"] == tree.hex_root
        assert payload["leaves"] == tree.hex_leaves()
        assert payload["options"] == {"hashLeaves": False, "sortPairs": True}

    def test_empty_tree_round_trip(self, tmp_path):
        tree = MerkleTree()
        path = persist(tmp_path / "POL.json.gz", Chain.POL, tree.root, [], DEFAULT_OPTIONS)
        assert load(path).root == b""

    def test_leaves_not_rehashed_on_load(self, tmp_path):
        """Stored leaves are already hashed; load must not hash them again."""
        tree = _tree(3)
        path = persist(tmp_path / "t.json.gz", Chain.ETH, tree.root, tree.leaves, DEFAULT_OPTIONS)
        assert load(path).leaves == tree.leaves

    def test_options_preserved(self, tmp_path):
        options = TreeOptions(sort_pairs=False)
        tree = MerkleTree([hash_token(i, 0) for i in range(4)], options)
        path = persist(tmp_path / "t.json.gz", Chain.ETH, tree.root, tree.leaves, options)
        loaded = load(path)
        assert loaded.options == options
        assert loaded.root == tree.root

    def test_no_temp_files_left(self, tmp_path):
        tree = _tree()
        persist(tmp_path / "ETH_tree.json.gz", Chain.ETH, tree.root, tree.leaves, DEFAULT_OPTIONS)
        assert [p.name for p in tmp_path.iterdir()] == ["ETH_tree.json.gz"]

    def test_overwrite_replaces_whole_file(self, tmp_path):
        path = tmp_path / "ETH_tree.json.gz"
        first, second = _tree(3), _tree(7)
        persist(path, Chain.ETH, first.root, first.leaves, DEFAULT_OPTIONS)
        persist(path, Chain.ETH, second.root, second.leaves, DEFAULT_OPTIONS)
        assert load(path).root == second.root

    def test_missing_file(self, tmp_path):
        with pytest.raises(SnapshotNotFoundError):
            load(tmp_path / "nope.json.gz")

    def test_garbage_is_corrupt(self, tmp_path):
        path = tmp_path / "bad.json.gz"
        path.write_bytes(b"definitely not gzip")
        with pytest.raises(SnapshotCorruptError):
            load(path)

    def test_truncated_gzip_is_corrupt(self, tmp_path):
        tree = _tree()
        path = persist(tmp_path / "t.json.gz", Chain.ETH, tree.root, tree.leaves, DEFAULT_OPTIONS)
        data = path.read_bytes()
        path.write_bytes(data[: len(data) // 2])
        with pytest.raises(SnapshotCorruptError):
            load(path)

    def test_non_object_payload_is_corrupt(self, tmp_path):
        path = tmp_path / "list.json.gz"
        _write_raw(path, ["0x00"])
        with pytest.raises(SnapshotCorruptError):
            load(path)

    def test_missing_leaves_is_corrupt(self, tmp_path):
        path = tmp_path / "t.json.gz"
        _write_raw(path, {"options": {"hashLeaves": False, "sortPairs": True}})
        with pytest.raises(SnapshotCorruptError, match="Malformed"):
            load(path)

    def test_bad_leaf_hex_is_corrupt(self, tmp_path):
        path = tmp_path / "t.json.gz"
        _write_raw(path, {"leaves": ["0xzz"], "options": {"hashLeaves": False, "sortPairs": True}})
        with pytest.raises(SnapshotCorruptError):
            load(path)

    def test_root_mismatch_is_corrupt(self, tmp_path):
        tree = _tree()
        path = tmp_path / "t.json.gz"
        _write_raw(path, {
            "leaves": tree.hex_leaves(),
            "options": {"hashLeaves": False, "sortPairs": True},
            "root": "0x" + "00" * 32,
        })
        with pytest.raises(SnapshotCorruptError, match="root mismatch"):
            load(path)

    def test_legacy_payload_without_root(self, tmp_path):
        """Artifacts holding only leaves and options still load."""
        tree = _tree(4)
        path = tmp_path / "ETH_tree.json.gz"
        _write_raw(path, {
            "leaves": tree.hex_leaves(),
            "options": {"hashLeaves": False, "sortPairs": True},
        })
        assert load(path).root == tree.root


# ── Generation store ─────────────────────────────────────────────────


def _stage_all(store: SnapshotStore, generation: str, chains=(Chain.ETH, Chain.ARB)) -> None:
    for i, chain in enumerate(chains):
        tree = _tree(i + 2)
        store.stage(generation, chain, tree.root, tree.leaves, tree.options)


class TestSnapshotStore:
    def test_nothing_committed(self, store):
        assert store.current_generation() is None
        assert store.generations() == []
        with pytest.raises(SnapshotNotFoundError):
            store.load_all([Chain.ETH])

    def test_stage_is_invisible_until_commit(self, store):
        _stage_all(store, "gen-1")
        assert store.current_generation() is None
        assert store.generations() == ["gen-1"]

    def test_commit_and_load(self, store):
        _stage_all(store, "gen-1")
        store.commit("gen-1")

        trees = store.load_all([Chain.ETH, Chain.ARB])

        assert store.current_generation() == "gen-1"
        assert set(trees) == {Chain.ETH, Chain.ARB}
        assert trees[Chain.ETH].root == _tree(2).root
        assert trees[Chain.ARB].root == _tree(3).root

    def test_locate_paths(self, store):
        _stage_all(store, "gen-1")
        store.commit("gen-1")
        paths = store.locate([Chain.ETH])
        assert paths[Chain.ETH] == store.directory / "gen-1" / "ETH_tree.json.gz"

    def test_missing_chain_in_generation(self, store):
        _stage_all(store, "gen-1", chains=(Chain.ETH,))
        store.commit("gen-1")
        with pytest.raises(SnapshotNotFoundError, match="ARB"):
            store.load_all([Chain.ETH, Chain.ARB])

    def test_commit_unknown_generation(self, store):
        store.directory.mkdir(parents=True)
        with pytest.raises(SnapshotNotFoundError):
            store.commit("gen-missing")

    def test_new_commit_switches_current(self, store):
        _stage_all(store, "gen-1")
        store.commit("gen-1")
        _stage_all(store, "gen-2", chains=(Chain.ARB, Chain.ETH))
        store.commit("gen-2")

        assert store.current_generation() == "gen-2"
        assert store.load_all([Chain.ETH])[Chain.ETH].root == _tree(3).root

    def test_prune_keeps_recent_generations(self, store):
        for n in (1, 2, 3):
            _stage_all(store, f"gen-{n}")
            store.commit(f"gen-{n}")
        assert store.generations() == ["gen-2", "gen-3"]

    def test_prune_never_touches_newer_staging(self, tmp_path):
        store = SnapshotStore(tmp_path / "trees", keep_generations=1)
        _stage_all(store, "gen-1")
        store.commit("gen-1")
        _stage_all(store, "gen-2")

        assert store.prune() == []
        assert store.generations() == ["gen-1", "gen-2"]

    def test_discard_staged(self, store):
        _stage_all(store, "gen-1")
        store.commit("gen-1")
        _stage_all(store, "gen-2")

        store.discard("gen-2")

        assert store.generations() == ["gen-1"]

    def test_discard_refuses_current(self, store):
        _stage_all(store, "gen-1")
        store.commit("gen-1")
        store.discard("gen-1")
        assert store.generations() == ["gen-1"]
        assert store.load_all([Chain.ETH])

    def test_bad_pointer_is_corrupt(self, store):
        store.directory.mkdir(parents=True)
        (store.directory / "CURRENT").write_text("../../etc\n")
        with pytest.raises(SnapshotCorruptError):
            store.current_generation()

    def test_generation_ids_are_validated(self, store):
        with pytest.raises(ValueError):
            store.generation_dir("../outside")

    def test_new_generation_format(self, store):
        generation = store.new_generation()
        assert generation.startswith("gen-")
        store.generation_dir(generation)

    def test_keep_generations_must_be_positive(self, tmp_path):
        with pytest.raises(ValueError):
            SnapshotStore(tmp_path, keep_generations=0)
