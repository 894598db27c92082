"""The tree set currently being served, and the holder that swaps it."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from tokenproof.chains import Chain
from tokenproof.merkle.tree import MerkleTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishedTreeSet:
    """Every chain's tree and root from one generation.

    Never mutated after construction; a rebuild publishes a whole new set.
    """

    trees: Mapping[Chain, MerkleTree]
    roots: Mapping[Chain, str]
    generation: str
    published_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_trees(cls, trees: Mapping[Chain, MerkleTree], generation: str) -> PublishedTreeSet:
        return cls(
            trees=MappingProxyType(dict(trees)),
            roots=MappingProxyType({chain: tree.hex_root for chain, tree in trees.items()}),
            generation=generation,
        )

    @property
    def chains(self) -> tuple[Chain, ...]:
        return tuple(self.trees)


class TreeSetHolder:
    """Thread-safe handle on the current PublishedTreeSet.

    Readers call current() once per request and keep that reference, so a
    swap mid-request never mixes generations.
    """

    def __init__(self, initial: PublishedTreeSet | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial

    def current(self) -> PublishedTreeSet | None:
        with self._lock:
            return self._current

    def publish(self, tree_set: PublishedTreeSet) -> PublishedTreeSet | None:
        """Replace the current set; returns the one it replaced."""
        with self._lock:
            previous, self._current = self._current, tree_set
        logger.info(
            "published generation %s (%s)",
            tree_set.generation,
            ", ".join(f"{c.value}={r}" for c, r in tree_set.roots.items()),
        )
        return previous

    def clear(self) -> None:
        with self._lock:
            self._current = None
