"""Thread body that rebuilds and stages every chain's tree."""

from __future__ import annotations

import logging
import queue
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from tokenproof.chains import Chain
from tokenproof.merkle.builder import RetryPolicy, StreamingTreeBuilder
from tokenproof.merkle.hashing import to_hex
from tokenproof.merkle.models import BuildProgress, BuildResult
from tokenproof.rebuild.messages import CompleteMessage, ErrorMessage, ProgressMessage
from tokenproof.rebuild.status import overall_percent
from tokenproof.records.source import RecordSource
from tokenproof.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)


def _stage(
    store: SnapshotStore,
    generation: str,
    result: BuildResult,
    retry: RetryPolicy,
    sleep: Callable[[float], None],
) -> Path:
    """Write one chain's snapshot, retrying filesystem errors with backoff."""
    attempts = retry.max_attempts
    for attempt in range(1, attempts + 1):
        try:
            return store.stage(generation, result.chain, result.root, result.leaves, result.options)
        except OSError as e:
            if attempt >= attempts:
                raise
            delay = retry.delay(attempt)
            logger.warning(
                "%s snapshot write failed (attempt %d/%d), retrying in %.1fs: %s",
                result.chain.value, attempt, attempts, delay, e,
            )
            sleep(delay)
    raise AssertionError("unreachable")


def run_rebuild(
    outbox: queue.Queue,
    *,
    source_factory: Callable[[], RecordSource],
    store: SnapshotStore,
    chains: Sequence[Chain],
    generation: str,
    page_size: int,
    retry: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Build and stage each chain in order, reporting through *outbox*.

    Always ends by posting exactly one CompleteMessage or ErrorMessage.
    Opens its own record source so no connection is shared with the
    serving path.
    """
    logger.info("Starting Merkle tree regeneration for %d chain(s)...", len(chains))
    source: RecordSource | None = None
    current: Chain | None = None
    count = len(chains)
    try:
        source = source_factory()
        builder = StreamingTreeBuilder(source, page_size=page_size, retry=retry, sleep=sleep)
        paths: dict[Chain, Path] = {}
        roots: dict[Chain, str] = {}

        for index, chain in enumerate(chains):
            current = chain
            logger.info("Regenerating Merkle tree for chain: %s", chain.value)
            outbox.put(ProgressMessage(chain, 0, overall_percent(index, 0, count), index))

            def report(progress: BuildProgress, index: int = index) -> None:
                pct = progress.percent
                outbox.put(ProgressMessage(
                    progress.chain, pct, overall_percent(index, pct, count), index,
                ))

            result = builder.build(chain, on_progress=report)
            paths[chain] = _stage(store, generation, result, retry, sleep)
            roots[chain] = to_hex(result.root)
            del result

            outbox.put(ProgressMessage(chain, 100, overall_percent(index + 1, 0, count), index + 1))
            logger.info("Merkle tree for %s regenerated. Root hash: %s", chain.value, roots[chain])

        outbox.put(CompleteMessage(generation=generation, paths=paths, roots=roots))
    except Exception as e:
        logger.exception("Error generating Merkle trees")
        outbox.put(ErrorMessage(generation=generation, chain=current, error=str(e)))
    finally:
        if source is not None:
            try:
                source.close()
            except Exception:
                logger.warning("failed to close record source", exc_info=True)
