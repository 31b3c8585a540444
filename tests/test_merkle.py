"""Tests for poolpayout.services.merkle."""

import random

import pytest
from poseidon_py.poseidon_hash import poseidon_hash_many

from poolpayout.services.merkle import (
    EMPTY_ROOT_SENTINEL,
    alarm_leaf_hash,
    build_merkle_tree,
    focus_leaf_hash,
    hash_pair,
    verify_proof,
)
from poolpayout.services.schemas.results import MerkleLeaf


def _leaves(count: int) -> list[MerkleLeaf]:
    return [
        MerkleLeaf(identity_key=f"0x{i:x}", hash=alarm_leaf_hash(f"0x{i:x}", i * 10))
        for i in range(1, count + 1)
    ]


def _assert_all_proofs_valid(leaves: list[MerkleLeaf]) -> str:
    tree = build_merkle_tree(leaves)
    assert set(tree.proofs) == {leaf.identity_key for leaf in leaves}
    for leaf in leaves:
        assert verify_proof(leaf.hash, tree.proofs[leaf.identity_key], tree.root)
    return tree.root


class TestLeafHashes:
    def test_alarm_leaf_splits_reward(self) -> None:
        reward: int = (3 << 128) | 9
        assert alarm_leaf_hash("0xabc", reward) == poseidon_hash_many([0xABC, 9, 3])

    def test_focus_leaf_includes_session(self) -> None:
        assert focus_leaf_hash("0xabc", 5, 100) == poseidon_hash_many([0xABC, 5, 100, 0])
        assert focus_leaf_hash("0xabc", 5, 100) != focus_leaf_hash("0xabc", 6, 100)

    def test_hash_pair_is_order_independent(self) -> None:
        assert hash_pair(1, 2) == hash_pair(2, 1) == poseidon_hash_many([1, 2])


class TestBuildMerkleTree:
    def test_empty(self) -> None:
        first = build_merkle_tree([])
        second = build_merkle_tree([])
        assert first.root == second.root
        assert first.root == hex(poseidon_hash_many([EMPTY_ROOT_SENTINEL]))
        assert int(first.root, 16) != 0
        assert first.proofs == {}

    def test_single_leaf(self) -> None:
        leaf = _leaves(1)[0]
        tree = build_merkle_tree([leaf])
        assert tree.root == hex(leaf.hash)
        assert tree.proofs == {leaf.identity_key: []}

    def test_two_leaves(self) -> None:
        a, b = _leaves(2)
        tree = build_merkle_tree([a, b])
        assert tree.root == hex(hash_pair(a.hash, b.hash))
        assert tree.proofs[a.identity_key] == [hex(b.hash)]
        assert tree.proofs[b.identity_key] == [hex(a.hash)]

    def test_three_leaves_duplicates_last_node(self) -> None:
        leaves = _leaves(3)
        root = _assert_all_proofs_valid(leaves)
        ordered = sorted(leaves, key=lambda leaf: leaf.hash)
        left = hash_pair(ordered[0].hash, ordered[1].hash)
        right = hash_pair(ordered[2].hash, ordered[2].hash)
        assert root == hex(hash_pair(left, right))

    @pytest.mark.parametrize("count", [2, 3, 4, 5, 7, 8, 13])
    def test_round_trip(self, count: int) -> None:
        _assert_all_proofs_valid(_leaves(count))

    def test_zero_reward_leaves_verify(self) -> None:
        leaves = [
            MerkleLeaf(identity_key="0x1", hash=alarm_leaf_hash("0x1", 108)),
            MerkleLeaf(identity_key="0x2", hash=alarm_leaf_hash("0x2", 0)),
            MerkleLeaf(identity_key="0x3", hash=alarm_leaf_hash("0x3", 0)),
        ]
        _assert_all_proofs_valid(leaves)

    def test_root_independent_of_input_order(self) -> None:
        leaves = _leaves(9)
        expected = build_merkle_tree(leaves).root
        rng = random.Random(1234)
        for _ in range(5):
            shuffled = leaves[:]
            rng.shuffle(shuffled)
            assert build_merkle_tree(shuffled).root == expected

    def test_duplicate_keys_rejected(self) -> None:
        leaf = _leaves(1)[0]
        with pytest.raises(ValueError):
            build_merkle_tree([leaf, leaf])

    def test_proof_entries_are_lowercase_hex(self) -> None:
        tree = build_merkle_tree(_leaves(4))
        for proof in tree.proofs.values():
            for entry in proof:
                assert entry.startswith("0x")
                assert entry == entry.lower()


def test_verify_proof_rejects_wrong_leaf() -> None:
    leaves = _leaves(4)
    tree = build_merkle_tree(leaves)
    assert not verify_proof(leaves[0].hash + 1, tree.proofs[leaves[0].identity_key], tree.root)
