"""Single-flight rebuild of every chain's tree, published as one swap."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from tokenproof.chains import DEFAULT_CHAINS, Chain
from tokenproof.errors import (
    RebuildFailedError,
    RebuildInProgressError,
    SnapshotCorruptError,
)
from tokenproof.merkle.builder import RetryPolicy
from tokenproof.rebuild.messages import CompleteMessage, ErrorMessage, ProgressMessage
from tokenproof.rebuild.status import RebuildState, RebuildStatus
from tokenproof.rebuild.worker import run_rebuild
from tokenproof.records.source import RecordSource
from tokenproof.service.published import PublishedTreeSet, TreeSetHolder
from tokenproof.snapshot import codec
from tokenproof.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)

# How often the pump checks that the worker is still alive
_POLL_SECONDS = 0.5


class RebuildOrchestrator:
    """Runs at most one rebuild at a time in a background worker thread.

    The worker builds and stages each chain, posting progress messages.
    A pump thread applies them to the session status and, once every chain
    succeeded, loads the staged snapshots, commits the generation, and
    swaps the new set into the holder. A failure anywhere leaves the
    published set and the committed generation as they were.
    """

    def __init__(
        self,
        holder: TreeSetHolder,
        source_factory: Callable[[], RecordSource],
        store: SnapshotStore,
        chains: Sequence[Chain] = DEFAULT_CHAINS,
        page_size: int = 100_000,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not chains:
            raise ValueError("at least one chain is required")
        self._holder = holder
        self._source_factory = source_factory
        self._store = store
        self._chains = tuple(chains)
        self._page_size = page_size
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

        self._lock = threading.Lock()
        self._running = False
        self._status = RebuildStatus()
        self._done = threading.Event()
        self._done.set()

    @property
    def chains(self) -> tuple[Chain, ...]:
        return self._chains

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def status(self) -> RebuildStatus:
        """Current session status; safe to call from any thread."""
        with self._lock:
            return self._status.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Start / wait
    # ------------------------------------------------------------------

    def start_rebuild(self) -> RebuildStatus:
        """Launch a rebuild in the background.

        Raises RebuildInProgressError if one is already running; requests
        are never queued.
        """
        with self._lock:
            if self._running:
                raise RebuildInProgressError()
            self._running = True
            generation = self._store.new_generation()
            self._status = RebuildStatus(
                state=RebuildState.running,
                generation=generation,
                chain_progress={chain: 0 for chain in self._chains},
                started_at=datetime.now(UTC),
            )
            self._done.clear()
            started = self._status

        outbox: queue.Queue = queue.Queue()
        worker = threading.Thread(
            target=run_rebuild,
            args=(outbox,),
            kwargs={
                "source_factory": self._source_factory,
                "store": self._store,
                "chains": self._chains,
                "generation": generation,
                "page_size": self._page_size,
                "retry": self._retry,
                "sleep": self._sleep,
            },
            name=f"tokenproof-rebuild-{generation}",
            daemon=True,
        )
        pump = threading.Thread(
            target=self._pump,
            args=(outbox, worker, generation),
            name=f"tokenproof-rebuild-pump-{generation}",
            daemon=True,
        )
        try:
            worker.start()
            pump.start()
        except RuntimeError as e:
            self._finish(generation, error=f"could not start rebuild: {e}")
            raise
        logger.info("Merkle tree regeneration %s initiated", generation)
        return started

    def wait(self, timeout: float | None = None) -> RebuildStatus:
        """Block until the running session (if any) ends, then return its status."""
        self._done.wait(timeout)
        return self.status()

    def run_blocking(self) -> RebuildStatus:
        """Start a rebuild and wait for it. Raises RebuildFailedError on failure."""
        self.start_rebuild()
        status = self.wait()
        if status.state != RebuildState.completed:
            raise RebuildFailedError(status.error or "rebuild failed")
        return status

    # ------------------------------------------------------------------
    # Pump thread
    # ------------------------------------------------------------------

    def _pump(self, outbox: queue.Queue, worker: threading.Thread, generation: str) -> None:
        error: str | None = None
        try:
            while True:
                try:
                    message = outbox.get(timeout=_POLL_SECONDS)
                except queue.Empty:
                    if worker.is_alive():
                        continue
                    # Drain anything posted between the timeout and the check.
                    if not outbox.empty():
                        continue
                    error = "rebuild worker exited without reporting a result"
                    break

                if isinstance(message, ProgressMessage):
                    self._apply_progress(message)
                elif isinstance(message, CompleteMessage):
                    worker.join()
                    self._publish(message)
                    break
                elif isinstance(message, ErrorMessage):
                    worker.join()
                    error = message.error
                    break
        except Exception as e:
            logger.exception("Failed to publish regenerated Merkle trees")
            error = str(e)

        self._finish(generation, error=error)

    def _apply_progress(self, message: ProgressMessage) -> None:
        with self._lock:
            progress = dict(self._status.chain_progress)
            chain = message.current_chain
            progress[chain] = max(progress.get(chain, 0), message.chain_progress)
            self._status = self._status.model_copy(update={
                "current_chain": chain,
                "chain_progress": progress,
                "overall": max(self._status.overall, message.overall),
                "chains_completed": max(self._status.chains_completed, message.chains_completed),
            })
        logger.debug(
            "Regeneration progress: Overall %d%%, Current Chain: %s (%d%%), Chains Completed: %d",
            message.overall, chain.value, message.chain_progress, message.chains_completed,
        )

    def _publish(self, message: CompleteMessage) -> None:
        trees = {}
        for chain in self._chains:
            tree = codec.load(message.paths[chain])
            if tree.hex_root != message.roots[chain]:
                raise SnapshotCorruptError(
                    f"{chain.value} snapshot root {tree.hex_root} != built root {message.roots[chain]}"
                )
            trees[chain] = tree
            logger.info("Merkle tree for %s loaded into memory.", chain.value)

        tree_set = PublishedTreeSet.from_trees(trees, message.generation)
        self._store.commit(message.generation)
        self._holder.publish(tree_set)
        logger.info("Merkle tree regeneration completed")

    def _finish(self, generation: str, error: str | None) -> None:
        if error is not None:
            logger.error("Merkle tree regeneration %s failed: %s", generation, error)
            try:
                self._store.discard(generation)
            except (OSError, ValueError, SnapshotCorruptError):
                logger.warning("could not discard generation %s", generation, exc_info=True)

        with self._lock:
            update: dict = {"finished_at": datetime.now(UTC)}
            if error is None:
                update.update(
                    state=RebuildState.completed,
                    overall=100,
                    chains_completed=len(self._chains),
                )
            else:
                update.update(state=RebuildState.failed, error=error)
            self._status = self._status.model_copy(update=update)
            self._running = False
        self._done.set()
