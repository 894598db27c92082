"""Rebuild session state as seen by status queries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from tokenproof.chains import Chain


class RebuildState(str, Enum):
    """Lifecycle of a rebuild session."""

    idle = "idle"
    running = "running"
    completed = "completed"
    failed = "failed"


class RebuildStatus(BaseModel):
    """Consistent, read-only snapshot of rebuild progress.

    A new instance replaces the old one on every update, so a reader never
    sees fields from two different moments.
    """

    model_config = ConfigDict(frozen=True)

    state: RebuildState = RebuildState.idle
    generation: str | None = None
    current_chain: Chain | None = None
    chain_progress: dict[Chain, int] = Field(default_factory=dict)
    overall: int = Field(default=0, ge=0, le=100)
    chains_completed: int = Field(default=0, ge=0)
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.state == RebuildState.running

    @property
    def is_complete(self) -> bool:
        return self.state == RebuildState.completed


def overall_percent(chain_index: int, chain_percent: int, chain_count: int) -> int:
    """Overall progress with every chain weighted equally."""
    if chain_count <= 0:
        return 100
    return min(100, (chain_index * 100 + chain_percent) // chain_count)
