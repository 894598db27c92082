"""Data models for the Merkle tree subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field

from tokenproof.chains import Chain


@dataclass(frozen=True)
class TreeOptions:
    """Combination rule a tree was built with.

    Recorded verbatim in snapshots; proofs only verify when the exact rule
    is reproduced.
    """

    hash_leaves: bool = False
    sort_pairs: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {"hashLeaves": self.hash_leaves, "sortPairs": self.sort_pairs}

    @classmethod
    def from_dict(cls, data: dict) -> TreeOptions:
        hash_leaves = data.get("hashLeaves", False)
        sort_pairs = data.get("sortPairs", False)
        if not isinstance(hash_leaves, bool) or not isinstance(sort_pairs, bool):
            raise ValueError(f"tree options must be booleans, got {data!r}")
        return cls(hash_leaves=hash_leaves, sort_pairs=sort_pairs)


DEFAULT_OPTIONS = TreeOptions()


@dataclass(frozen=True)
class BuildProgress:
    """Emitted after each page a builder appends."""

    chain: Chain
    processed: int
    total: int
    root: bytes

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return min(100, self.processed * 100 // self.total)


@dataclass(frozen=True)
class BuildResult:
    """Everything the snapshot codec needs from one chain's build."""

    chain: Chain
    root: bytes
    leaves: list[bytes] = field(repr=False)
    options: TreeOptions = DEFAULT_OPTIONS
    record_count: int = 0
