"""Poseidon merkle commitments compatible with the on-chain claim verifier.

Pairs are hashed in sorted order, so proofs carry no left/right bits: a
verifier folds ``H(min(acc, sibling), max(acc, sibling))`` from the leaf up.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from poseidon_py.poseidon_hash import poseidon_hash_many

from poolpayout.services.numeric import split_u256, to_hex_string, to_int
from poolpayout.services.schemas.results import MerkleCommitment, MerkleLeaf

logger = structlog.get_logger(__name__)

# Short string "no_rewards@@"; a pool without leaves still needs a non-zero root.
EMPTY_ROOT_SENTINEL: int = 0x6E6F5F726577617264734040


@dataclass
class _Node:
    hash: int
    keys: list[str]


def alarm_leaf_hash(address: str | int, reward: int) -> int:
    low, high = split_u256(reward)
    return poseidon_hash_many([to_int(address), low, high])


def focus_leaf_hash(address: str | int, session_id: int, reward: int) -> int:
    low, high = split_u256(reward)
    return poseidon_hash_many([to_int(address), session_id, low, high])


def hash_pair(a: int, b: int) -> int:
    return poseidon_hash_many([min(a, b), max(a, b)])


def empty_root() -> int:
    return poseidon_hash_many([EMPTY_ROOT_SENTINEL])


def build_merkle_tree(leaves: Sequence[MerkleLeaf]) -> MerkleCommitment:
    """Build the commitment root and a proof per leaf identity key.

    Leaves are put in canonical (hash, key) order first, so the root does not
    depend on the order they were passed in. An odd node at any level pairs
    with itself and records its own hash as the proof entry.
    """
    if not leaves:
        logger.info("Built empty merkle tree")
        return MerkleCommitment(root=to_hex_string(empty_root()), proofs={})

    keys: list[str] = [leaf.identity_key for leaf in leaves]
    if len(set(keys)) != len(keys):
        raise ValueError("Merkle leaves must have unique identity keys")

    if len(leaves) == 1:
        only: MerkleLeaf = leaves[0]
        logger.info("Built single-leaf merkle tree")
        return MerkleCommitment(root=to_hex_string(only.hash), proofs={only.identity_key: []})

    ordered: list[MerkleLeaf] = sorted(leaves, key=lambda leaf: (leaf.hash, leaf.identity_key))
    proofs: dict[str, list[str]] = {leaf.identity_key: [] for leaf in ordered}
    level: list[_Node] = [_Node(hash=leaf.hash, keys=[leaf.identity_key]) for leaf in ordered]

    while len(level) > 1:
        next_level: list[_Node] = []
        for i in range(0, len(level), 2):
            left: _Node = level[i]
            right: _Node = level[i + 1] if i + 1 < len(level) else left

            for key in left.keys:
                proofs[key].append(to_hex_string(right.hash))
            if right is not left:
                for key in right.keys:
                    proofs[key].append(to_hex_string(left.hash))

            merged: list[str] = left.keys + right.keys if right is not left else list(left.keys)
            next_level.append(_Node(hash=hash_pair(left.hash, right.hash), keys=merged))
        level = next_level

    root: str = to_hex_string(level[0].hash)
    logger.info("Built merkle tree", root=root, leaf_count=len(leaves))
    return MerkleCommitment(root=root, proofs=proofs)


def compute_root_from_proof(leaf_hash: int, proof: Sequence[str | int]) -> int:
    acc: int = leaf_hash
    for sibling in proof:
        acc = hash_pair(acc, to_int(sibling))
    return acc


def verify_proof(leaf_hash: int, proof: Sequence[str | int], root: str | int) -> bool:
    return compute_root_from_proof(leaf_hash, proof) == to_int(root)
