"""Builds one chain's Merkle tree by streaming pages from a record source."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from tokenproof.chains import Chain
from tokenproof.errors import BuildError, RecordSourceError
from tokenproof.merkle.hashing import hash_token, to_hex
from tokenproof.merkle.models import DEFAULT_OPTIONS, BuildProgress, BuildResult, TreeOptions
from tokenproof.merkle.tree import MerkleTree
from tokenproof.records.source import RecordSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries with exponential backoff for record source calls."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number *attempt* (1-based)."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


class StreamingTreeBuilder:
    """Feeds a chain's records into an incremental MerkleTree, one page at a time.

    The total is read once up front. Records inserted after that point are
    left for the next rebuild: the build stops as soon as it has seen
    ``total`` records, or when a page comes back empty.
    """

    def __init__(
        self,
        source: RecordSource,
        page_size: int = 100_000,
        retry: RetryPolicy | None = None,
        options: TreeOptions = DEFAULT_OPTIONS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._source = source
        self._page_size = page_size
        self._retry = retry or RetryPolicy()
        self._options = options
        self._sleep = sleep

    def build(
        self,
        chain: Chain,
        on_progress: Callable[[BuildProgress], None] | None = None,
    ) -> BuildResult:
        """Stream every record of *chain* into a fresh tree.

        Raises BuildError if the source fails permanently or retries run out.
        """
        try:
            total = self._call(chain, "count", lambda: self._source.count(chain))
            logger.info("Total tokens for %s: %d", chain.value, total)

            tree = MerkleTree(options=self._options)
            cursor = 0
            processed = 0

            while processed < total:
                page = self._call(
                    chain,
                    "fetch_page",
                    lambda: self._source.fetch_page(chain, cursor, self._page_size),
                )
                if not page:
                    break

                # Never read past the count snapshot taken above.
                page = page[: total - processed]
                tree.add_leaves(hash_token(r.token, r.citizen_id) for r in page)
                processed += len(page)
                cursor = page[-1].id
                del page

                logger.debug(
                    "%s: %d/%d leaves, interim root %s",
                    chain.value, processed, total, tree.hex_root,
                )
                if on_progress is not None:
                    on_progress(BuildProgress(chain, processed, total, tree.root))
        except BuildError:
            raise
        except (RecordSourceError, ValueError) as e:
            raise BuildError(chain.value, e) from e

        if processed < total:
            logger.warning(
                "%s: source ran dry at %d of %d counted records", chain.value, processed, total
            )
        if total == 0 and on_progress is not None:
            on_progress(BuildProgress(chain, 0, 0, tree.root))

        return BuildResult(
            chain=chain,
            root=tree.root,
            leaves=tree.leaves,
            options=tree.options,
            record_count=processed,
        )

    def _call(self, chain: Chain, operation: str, fn: Callable[[], T]) -> T:
        """Run *fn*, retrying retryable RecordSourceErrors with backoff."""
        attempts = self._retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except RecordSourceError as e:
                if not e.retryable or attempt >= attempts:
                    raise BuildError(chain.value, e) from e
                delay = self._retry.delay(attempt)
                logger.warning(
                    "%s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    chain.value, operation, attempt, attempts, delay, e,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")
