"""Messages the rebuild worker posts to the orchestrator.

The worker never touches orchestrator state directly; these immutable
messages over a queue.Queue are the only channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from tokenproof.chains import Chain


@dataclass(frozen=True)
class ProgressMessage:
    current_chain: Chain
    chain_progress: int
    overall: int
    chains_completed: int


@dataclass(frozen=True)
class CompleteMessage:
    """Every chain was built and staged under *generation*."""

    generation: str
    paths: dict[Chain, Path]
    roots: dict[Chain, str]


@dataclass(frozen=True)
class ErrorMessage:
    generation: str
    chain: Chain | None
    error: str


RebuildMessage = ProgressMessage | CompleteMessage | ErrorMessage
