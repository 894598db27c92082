"""Read path: inclusion proofs and roots from the published tree set."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from tokenproof.chains import Chain
from tokenproof.errors import LeafNotFoundError, TreesNotReadyError, UnknownPartitionError
from tokenproof.merkle.hashing import hash_token, to_hex
from tokenproof.service.published import PublishedTreeSet, TreeSetHolder


class ProofResult(BaseModel):
    """Inclusion proof for one (citizen, token) leaf."""

    model_config = ConfigDict(frozen=True)

    chain: Chain
    leaf: str
    proof: list[str]
    root: str
    generation: str


class ProofService:
    """Stateless lookups against whatever set the holder currently serves."""

    def __init__(self, holder: TreeSetHolder) -> None:
        self._holder = holder

    def _snapshot(self) -> PublishedTreeSet:
        current = self._holder.current()
        if current is None:
            raise TreesNotReadyError("Merkle trees not loaded yet")
        return current

    def get_proof(self, chain: str | Chain, citizen_id: int | str, token: int | str) -> ProofResult:
        """Proof path and root for the leaf hash_token(token, citizen_id).

        Raises LeafNotFoundError when the leaf is not in the chain's tree;
        an absent leaf never gets an empty or partial proof.
        """
        chain = Chain.parse(chain)
        leaf = hash_token(token, citizen_id)
        current = self._snapshot()
        tree = current.trees.get(chain)
        if tree is None:
            raise UnknownPartitionError(chain.value)
        try:
            proof = tree.get_hex_proof(leaf)
        except LeafNotFoundError:
            raise LeafNotFoundError(to_hex(leaf), chain.value) from None
        return ProofResult(
            chain=chain,
            leaf=to_hex(leaf),
            proof=proof,
            root=current.roots[chain],
            generation=current.generation,
        )

    def get_root(self, chain: str | Chain) -> str:
        chain = Chain.parse(chain)
        current = self._snapshot()
        try:
            return current.roots[chain]
        except KeyError:
            raise UnknownPartitionError(chain.value) from None

    def root_hashes(self) -> dict[str, str]:
        """Root per published chain, keyed by chain name."""
        current = self._snapshot()
        return {chain.value: root for chain, root in current.roots.items()}

    def generation(self) -> str | None:
        current = self._holder.current()
        return current.generation if current else None
