"""Persisted tree snapshots."""

from tokenproof.snapshot.codec import load, persist, read_payload, snapshot_filename
from tokenproof.snapshot.store import SnapshotStore

__all__ = [
    "SnapshotStore",
    "load",
    "persist",
    "read_payload",
    "snapshot_filename",
]
