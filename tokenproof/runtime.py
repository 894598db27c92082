"""Wires config into the long-lived objects a process owns."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from tokenproof.config.models import TokenProofConfig
from tokenproof.merkle.builder import RetryPolicy
from tokenproof.rebuild.orchestrator import RebuildOrchestrator
from tokenproof.records.sqlite_source import SQLiteRecordSource
from tokenproof.service.proofs import ProofService
from tokenproof.service.published import TreeSetHolder
from tokenproof.snapshot.store import SnapshotStore


@dataclass
class Runtime:
    """Created at startup, shared by the API and CLI for the process lifetime."""

    config: TokenProofConfig
    holder: TreeSetHolder
    store: SnapshotStore
    orchestrator: RebuildOrchestrator
    proofs: ProofService


def retry_policy(cfg: TokenProofConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=cfg.retry.max_attempts,
        base_delay=cfg.retry.base_delay,
        max_delay=cfg.retry.max_delay,
    )


def build_runtime(cfg: TokenProofConfig) -> Runtime:
    holder = TreeSetHolder()
    store = SnapshotStore(cfg.snapshots.directory, keep_generations=cfg.snapshots.keep_generations)
    orchestrator = RebuildOrchestrator(
        holder=holder,
        source_factory=partial(
            SQLiteRecordSource, cfg.database.path, timeout=cfg.database.timeout
        ),
        store=store,
        chains=cfg.tree.chains,
        page_size=cfg.tree.page_size,
        retry=retry_policy(cfg),
    )
    return Runtime(
        config=cfg,
        holder=holder,
        store=store,
        orchestrator=orchestrator,
        proofs=ProofService(holder),
    )
