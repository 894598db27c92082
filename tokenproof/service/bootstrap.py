"""Startup: serve persisted snapshots, or rebuild before accepting requests."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from tokenproof.chains import Chain
from tokenproof.errors import SnapshotNotFoundError, TreesNotReadyError
from tokenproof.service.published import PublishedTreeSet, TreeSetHolder
from tokenproof.snapshot.store import SnapshotStore

if TYPE_CHECKING:
    from tokenproof.rebuild.orchestrator import RebuildOrchestrator

logger = logging.getLogger(__name__)


def load_published(
    holder: TreeSetHolder,
    store: SnapshotStore,
    chains: Sequence[Chain],
) -> PublishedTreeSet:
    """Load the committed generation straight into *holder*.

    Raises SnapshotNotFoundError if any chain is missing and
    SnapshotCorruptError if an artifact can't be trusted.
    """
    generation = store.current_generation()
    if generation is None:
        raise SnapshotNotFoundError(f"No committed snapshot generation in {store.directory}")
    trees = store.load_all(chains, generation)
    tree_set = PublishedTreeSet.from_trees(trees, generation)
    holder.publish(tree_set)
    return tree_set


def bootstrap(
    holder: TreeSetHolder,
    store: SnapshotStore,
    orchestrator: RebuildOrchestrator,
    force_rebuild: bool = False,
) -> PublishedTreeSet:
    """Make a tree set available before the service starts answering.

    Corrupt snapshots are not papered over: SnapshotCorruptError propagates
    so an operator can inspect them or force a rebuild.
    """
    started = time.monotonic()
    chains = orchestrator.chains

    if not force_rebuild:
        try:
            tree_set = load_published(holder, store, chains)
            logger.info(
                "Loaded snapshot generation %s in %.2fs",
                tree_set.generation, time.monotonic() - started,
            )
            return tree_set
        except SnapshotNotFoundError as e:
            logger.info("%s; starting initial Merkle tree generation...", e)
    else:
        logger.info("Forced rebuild requested; starting Merkle tree generation...")

    orchestrator.run_blocking()
    tree_set = holder.current()
    if tree_set is None:
        raise TreesNotReadyError("rebuild completed but published nothing to this holder")
    logger.info("Initial generation took %.2f minutes", (time.monotonic() - started) / 60)
    return tree_set
