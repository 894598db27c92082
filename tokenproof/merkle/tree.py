"""Append-only binary Merkle tree over pre-hashed leaves."""

from __future__ import annotations

from collections.abc import Iterable

from eth_utils import keccak

from tokenproof.errors import LeafNotFoundError
from tokenproof.merkle.hashing import HASH_SIZE, combine_pair, to_hex
from tokenproof.merkle.models import DEFAULT_OPTIONS, TreeOptions


class MerkleTree:
    """Layered Merkle tree that grows by batches of leaves.

    Layer rule: nodes are paired left to right; with ``sort_pairs`` each pair
    is ordered bytewise before hashing; an odd trailing node is promoted to
    the next layer unchanged. The root of an empty tree is ``b""``.

    Appends recompute only the right edge of every layer, so feeding a tree
    page by page costs the same as building it in one go.
    """

    def __init__(
        self,
        leaves: Iterable[bytes] = (),
        options: TreeOptions = DEFAULT_OPTIONS,
    ) -> None:
        self.options = options
        self._layers: list[list[bytes]] = [[]]
        # leaf -> index of its first occurrence
        self._index: dict[bytes, int] = {}
        self.add_leaves(leaves)

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def add_leaves(self, leaves: Iterable[bytes]) -> None:
        """Append a batch of leaves and refresh the affected nodes."""
        base = self._layers[0]
        start = len(base)
        for leaf in leaves:
            if self.options.hash_leaves:
                leaf = keccak(leaf)
            elif len(leaf) != HASH_SIZE:
                raise ValueError(f"leaf must be {HASH_SIZE} bytes, got {len(leaf)}")
            self._index.setdefault(leaf, len(base))
            base.append(leaf)
        if len(base) > start:
            self._recompute_from(start)

    def add_leaf(self, leaf: bytes) -> None:
        self.add_leaves([leaf])

    def _recompute_from(self, start: int) -> None:
        level = 0
        while len(self._layers[level]) > 1:
            layer = self._layers[level]
            if level + 1 == len(self._layers):
                self._layers.append([])
            parents = self._layers[level + 1]
            # A node at an odd tail was promoted; recompute it along with
            # everything to its right.
            first_parent = start // 2
            del parents[first_parent:]
            for i in range(first_parent * 2, len(layer), 2):
                if i + 1 < len(layer):
                    parents.append(combine_pair(layer[i], layer[i + 1], self.options.sort_pairs))
                else:
                    parents.append(layer[i])
            start = first_parent
            level += 1
        del self._layers[level + 1:]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @property
    def root(self) -> bytes:
        top = self._layers[-1]
        return top[0] if top else b""

    @property
    def hex_root(self) -> str:
        return to_hex(self.root)

    @property
    def leaf_count(self) -> int:
        return len(self._layers[0])

    @property
    def depth(self) -> int:
        """Number of layers above the leaves."""
        return len(self._layers) - 1

    @property
    def leaves(self) -> list[bytes]:
        """Copy of the ordered leaf sequence."""
        return list(self._layers[0])

    def hex_leaves(self) -> list[str]:
        return [to_hex(leaf) for leaf in self._layers[0]]

    def __len__(self) -> int:
        return self.leaf_count

    def __contains__(self, leaf: object) -> bool:
        return leaf in self._index

    def index_of(self, leaf: bytes) -> int:
        """Index of the first occurrence of *leaf*, or -1."""
        return self._index.get(leaf, -1)

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def get_proof(self, leaf: bytes) -> list[bytes]:
        """Sibling hashes from *leaf* up to (not including) the root.

        Raises LeafNotFoundError if the leaf was never appended.
        """
        index = self._index.get(leaf)
        if index is None:
            raise LeafNotFoundError(to_hex(leaf))
        return self._proof_at(index)

    def _proof_at(self, index: int) -> list[bytes]:
        proof: list[bytes] = []
        for layer in self._layers[:-1]:
            sibling = index ^ 1
            if sibling < len(layer):
                proof.append(layer[sibling])
            index //= 2
        return proof

    def get_hex_proof(self, leaf: bytes) -> list[str]:
        return [to_hex(node) for node in self.get_proof(leaf)]

    def verify(self, proof: list[bytes], leaf: bytes, root: bytes | None = None) -> bool:
        """Check *proof* for *leaf* against *root* (defaults to this tree's root).

        Without pair sorting the sibling side matters, so the leaf's position
        in this tree's layers decides the order.
        """
        target = self.root if root is None else root
        node = leaf
        if self.options.sort_pairs:
            for sibling in proof:
                node = combine_pair(node, sibling, sort_pairs=True)
            return node == target

        index = self._index.get(leaf)
        if index is None:
            return False
        remaining = list(proof)
        for layer in self._layers[:-1]:
            if index ^ 1 < len(layer):
                if not remaining:
                    return False
                sibling = remaining.pop(0)
                if index % 2:
                    node = combine_pair(sibling, node, sort_pairs=False)
                else:
                    node = combine_pair(node, sibling, sort_pairs=False)
            index //= 2
        return not remaining and node == target
