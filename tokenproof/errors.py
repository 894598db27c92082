"""Named error kinds raised across tokenproof.

Low-level exceptions (sqlite3, OSError, gzip, json) are converted into one of
these close to where they happen, so the serving path only ever sees this
taxonomy.
"""

from __future__ import annotations


class TokenProofError(Exception):
    """Base class for every error tokenproof raises on purpose."""


# -- request-time ------------------------------------------------------------


class UnknownPartitionError(TokenProofError, ValueError):
    """The requested chain is outside the configured set."""

    def __init__(self, chain: str) -> None:
        self.chain = chain
        super().__init__(f"Invalid or unsupported chain: {chain}")


class InvalidLeafInputError(TokenProofError, ValueError):
    """A token or citizen id can't be encoded as uint256."""


class LeafNotFoundError(TokenProofError):
    """The candidate leaf is not part of the published tree."""

    def __init__(self, leaf: str, chain: str | None = None) -> None:
        self.leaf = leaf
        self.chain = chain
        where = f"{chain} tree" if chain else "tree"
        super().__init__(f"Leaf {leaf} not found in {where}")


class TreesNotReadyError(TokenProofError):
    """No tree set has been published yet."""


# -- record source / build -----------------------------------------------------


class RecordSourceError(TokenProofError):
    """Wraps backend-specific record source failures with context."""

    def __init__(self, operation: str, cause: Exception, retryable: bool = False) -> None:
        self.operation = operation
        self.retryable = retryable
        super().__init__(f"record source {operation} failed: {cause}")
        self.__cause__ = cause


class BuildError(TokenProofError):
    """Building one chain's tree failed; the rebuild session is aborted."""

    def __init__(self, chain: str, cause: Exception) -> None:
        self.chain = chain
        super().__init__(f"build for {chain} failed: {cause}")
        self.__cause__ = cause


# -- snapshots ---------------------------------------------------------------


class SnapshotError(TokenProofError):
    """Base class for snapshot load problems."""


class SnapshotNotFoundError(SnapshotError):
    """No snapshot exists yet. Normal on first start."""


class SnapshotCorruptError(SnapshotError):
    """A snapshot exists but can't be decoded or fails its root checksum."""


# -- rebuild -----------------------------------------------------------------


class RebuildInProgressError(TokenProofError):
    """A rebuild was requested while another one is running."""

    def __init__(self) -> None:
        super().__init__("Regeneration already in progress")


class RebuildFailedError(TokenProofError):
    """A rebuild run synchronously ended in the failed state."""
