"""The fixed set of chains (partitions) a tree can be published for."""

from __future__ import annotations

from enum import Enum

from tokenproof.errors import UnknownPartitionError


class Chain(str, Enum):
    """Blockchain networks with an independent tree and root."""

    ETH = "ETH"
    ARB = "ARB"
    BASE = "BASE"
    POL = "POL"
    AVAX = "AVAX"

    @classmethod
    def parse(cls, value: str | Chain) -> Chain:
        """Validate an external chain identifier.

        Raises UnknownPartitionError for anything outside the enum.
        """
        if isinstance(value, Chain):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownPartitionError(str(value)) from None


DEFAULT_CHAINS: tuple[Chain, ...] = (Chain.ETH, Chain.ARB, Chain.BASE, Chain.POL)
