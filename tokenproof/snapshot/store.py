"""Generation-based snapshot directory.

Layout::

    <directory>/
        CURRENT                       # name of the committed generation
        gen-20260101T000000000000/
            ETH_tree.json.gz
            ARB_tree.json.gz
            ...

A rebuild stages every chain into a new generation directory and only then
swings ``CURRENT`` over with an atomic rename. A crash or failed build leaves
the previous generation current.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from tokenproof.chains import Chain
from tokenproof.errors import SnapshotCorruptError, SnapshotNotFoundError
from tokenproof.merkle.models import TreeOptions
from tokenproof.merkle.tree import MerkleTree
from tokenproof.snapshot import codec

logger = logging.getLogger(__name__)

POINTER_FILE = "CURRENT"
GENERATION_PREFIX = "gen-"


class SnapshotStore:
    """Stages, commits, and loads snapshot generations under one directory."""

    def __init__(self, directory: str | Path = "merkle_trees", keep_generations: int = 2) -> None:
        if keep_generations < 1:
            raise ValueError("keep_generations must be at least 1")
        self.directory = Path(directory)
        self.keep_generations = keep_generations

    # -- writing -----------------------------------------------------------

    def new_generation(self) -> str:
        """Fresh generation id; sorts after every earlier one."""
        return GENERATION_PREFIX + datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")

    def generation_dir(self, generation: str) -> Path:
        if not generation.startswith(GENERATION_PREFIX) or "/" in generation or ".." in generation:
            raise ValueError(f"Invalid generation id: {generation!r}")
        return self.directory / generation

    def stage(
        self,
        generation: str,
        chain: Chain,
        root: bytes,
        leaves: Sequence[bytes],
        options: TreeOptions,
    ) -> Path:
        """Write one chain's snapshot into an uncommitted generation."""
        path = self.generation_dir(generation) / codec.snapshot_filename(chain)
        return codec.persist(path, chain, root, leaves, options)

    def commit(self, generation: str) -> None:
        """Make *generation* current, then prune old ones."""
        gen_dir = self.generation_dir(generation)
        if not gen_dir.is_dir():
            raise SnapshotNotFoundError(f"No staged generation {generation}")

        fd, tmp_name = tempfile.mkstemp(prefix=f".{POINTER_FILE}.", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(generation + "\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.directory / POINTER_FILE)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("committed snapshot generation %s", generation)
        self.prune()

    def discard(self, generation: str) -> None:
        """Delete a staged generation. The current one is never removed."""
        if generation == self.current_generation():
            logger.warning("refusing to discard current generation %s", generation)
            return
        shutil.rmtree(self.generation_dir(generation), ignore_errors=True)
        logger.debug("discarded snapshot generation %s", generation)

    def prune(self) -> list[str]:
        """Remove committed generations beyond ``keep_generations``.

        Only generations older than the current one are candidates, so a
        rebuild staging concurrently is never touched.
        """
        current = self.current_generation()
        if current is None:
            return []
        older = [g for g in self.generations() if g < current]
        excess = older[: max(0, len(older) - (self.keep_generations - 1))]
        for generation in excess:
            shutil.rmtree(self.directory / generation, ignore_errors=True)
            logger.debug("pruned snapshot generation %s", generation)
        return excess

    # -- reading -----------------------------------------------------------

    def generations(self) -> list[str]:
        """All generation directories on disk, oldest first."""
        if not self.directory.is_dir():
            return []
        return sorted(
            p.name for p in self.directory.iterdir()
            if p.is_dir() and p.name.startswith(GENERATION_PREFIX)
        )

    def current_generation(self) -> str | None:
        pointer = self.directory / POINTER_FILE
        try:
            name = pointer.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        if not name.startswith(GENERATION_PREFIX):
            raise SnapshotCorruptError(f"Bad generation pointer in {pointer}: {name!r}")
        return name

    def locate(
        self, chains: Iterable[Chain], generation: str | None = None
    ) -> dict[Chain, Path]:
        """Artifact path per chain for *generation* (default: current)."""
        generation = generation or self.current_generation()
        if generation is None:
            raise SnapshotNotFoundError(f"No committed snapshot generation in {self.directory}")
        gen_dir = self.generation_dir(generation)
        paths: dict[Chain, Path] = {}
        for chain in chains:
            path = gen_dir / codec.snapshot_filename(chain)
            if not path.is_file():
                raise SnapshotNotFoundError(f"No {chain.value} snapshot in generation {generation}")
            paths[chain] = path
        return paths

    def load_all(
        self, chains: Iterable[Chain], generation: str | None = None
    ) -> dict[Chain, MerkleTree]:
        """Load every chain's tree from one generation."""
        paths = self.locate(chains, generation)
        trees: dict[Chain, MerkleTree] = {}
        for chain, path in paths.items():
            logger.info("Loading Merkle tree for %s...", chain.value)
            trees[chain] = codec.load(path)
        return trees
