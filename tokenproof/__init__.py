"""tokenproof - per-chain Merkle trees over citizen tokens, with inclusion proofs over HTTP."""

from tokenproof.chains import DEFAULT_CHAINS, Chain
from tokenproof.config import TokenProofConfig, load_config
from tokenproof.merkle import MerkleTree, StreamingTreeBuilder, hash_token, verify_proof
from tokenproof.rebuild import RebuildOrchestrator, RebuildStatus
from tokenproof.service import ProofResult, ProofService, TreeSetHolder
from tokenproof.snapshot import SnapshotStore

__version__ = "0.1.0"

__all__ = [
    "Chain",
    "DEFAULT_CHAINS",
    "MerkleTree",
    "ProofResult",
    "ProofService",
    "RebuildOrchestrator",
    "RebuildStatus",
    "SnapshotStore",
    "StreamingTreeBuilder",
    "TokenProofConfig",
    "TreeSetHolder",
    "hash_token",
    "load_config",
    "verify_proof",
]
