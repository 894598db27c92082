"""Serving side: published tree set, proof lookups, startup."""

from tokenproof.service.bootstrap import bootstrap, load_published
from tokenproof.service.proofs import ProofResult, ProofService
from tokenproof.service.published import PublishedTreeSet, TreeSetHolder

__all__ = [
    "ProofResult",
    "ProofService",
    "PublishedTreeSet",
    "TreeSetHolder",
    "bootstrap",
    "load_published",
]
