"""Merkle tree subsystem: leaf hashing, incremental tree, streaming builder."""

from tokenproof.merkle.builder import RetryPolicy, StreamingTreeBuilder
from tokenproof.merkle.hashing import (
    combine_pair,
    from_hex,
    hash_token,
    to_hex,
    verify_proof,
)
from tokenproof.merkle.models import (
    DEFAULT_OPTIONS,
    BuildProgress,
    BuildResult,
    TreeOptions,
)
from tokenproof.merkle.tree import MerkleTree


def build_tree(leaves, options: TreeOptions = DEFAULT_OPTIONS) -> MerkleTree:
    """Convenience wrapper for a tree over an in-memory leaf list."""
    return MerkleTree(leaves, options)


__all__ = [
    "DEFAULT_OPTIONS",
    "BuildProgress",
    "BuildResult",
    "MerkleTree",
    "RetryPolicy",
    "StreamingTreeBuilder",
    "TreeOptions",
    "build_tree",
    "combine_pair",
    "from_hex",
    "hash_token",
    "to_hex",
    "verify_proof",
]
