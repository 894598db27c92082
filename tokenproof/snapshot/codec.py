"""Gzip-compressed JSON snapshots of a chain's leaves and tree options."""

from __future__ import annotations

import gzip
import json
import logging
import os
import tempfile
import zlib
from collections.abc import Sequence
from pathlib import Path

from tokenproof.chains import Chain
from tokenproof.errors import SnapshotCorruptError, SnapshotNotFoundError
from tokenproof.merkle.hashing import from_hex, to_hex
from tokenproof.merkle.models import TreeOptions
from tokenproof.merkle.tree import MerkleTree

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def snapshot_filename(chain: Chain) -> str:
    return f"{chain.value}_tree.json.gz"


def persist(
    path: Path,
    chain: Chain,
    root: bytes,
    leaves: Sequence[bytes],
    options: TreeOptions,
) -> Path:
    """Write a snapshot to *path*, all or nothing.

    The payload goes to a temp file in the same directory and is renamed over
    *path* once fully flushed, so readers see either the old file or the new
    one.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "version": SNAPSHOT_VERSION,
        "chain": chain.value,
        "root": to_hex(root),
        "leaves": [to_hex(leaf) for leaf in leaves],
        "options": options.to_dict(),
    }
    data = gzip.compress(json.dumps(payload, separators=(",", ":")).encode("utf-8"))

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(
        "wrote %s snapshot %s (%d leaves, %d bytes)", chain.value, path, len(leaves), len(data)
    )
    return path


def read_payload(path: Path) -> dict:
    """Decompress and decode a snapshot file without building the tree."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise SnapshotNotFoundError(f"No snapshot at {path}") from None
    try:
        payload = json.loads(gzip.decompress(raw))
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotCorruptError(f"Cannot decode snapshot {path}: {e}") from e
    if not isinstance(payload, dict):
        raise SnapshotCorruptError(f"Snapshot {path} is not a JSON object")
    return payload


def load(path: Path) -> MerkleTree:
    """Rebuild the tree stored at *path* from its leaves and options.

    Leaves are taken as stored; nothing is re-hashed unless the recorded
    options say so. A stored root that disagrees with the rebuilt one marks
    the snapshot as corrupt.
    """
    payload = read_payload(path)
    try:
        options = TreeOptions.from_dict(payload["options"])
        leaves = [from_hex(leaf) for leaf in payload["leaves"]]
        tree = MerkleTree(leaves, options)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SnapshotCorruptError(f"Malformed snapshot {path}: {e}") from e

    stored_root = payload.get("root")
    if stored_root is not None and stored_root != tree.hex_root:
        raise SnapshotCorruptError(
            f"Snapshot {path} root mismatch: stored {stored_root}, rebuilt {tree.hex_root}"
        )
    logger.debug("loaded snapshot %s (%d leaves)", path, tree.leaf_count)
    return tree
