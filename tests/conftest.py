"""Shared test fixtures for tokenproof."""

from __future__ import annotations

import threading

import pytest

from tokenproof.chains import DEFAULT_CHAINS, Chain
from tokenproof.errors import RecordSourceError
from tokenproof.merkle.builder import RetryPolicy
from tokenproof.rebuild.orchestrator import RebuildOrchestrator
from tokenproof.records.source import TokenRecord
from tokenproof.service.proofs import ProofService
from tokenproof.service.published import TreeSetHolder
from tokenproof.snapshot.store import SnapshotStore


class FakeRecordSource:
    """In-memory RecordSource.

    Can fail a number of calls (optionally only for one chain) and can block
    inside fetch_page for one chain until a gate event is set.
    """

    def __init__(self, records=()):
        self.records: list[TokenRecord] = list(records)
        self.calls: list[tuple] = []
        self.closed = False
        self.failures = 0
        self.retryable = True
        self.fail_chain: Chain | None = None
        self.gate: threading.Event | None = None
        self.gate_chain: Chain | None = None
        self.entered = threading.Event()

    def add(self, chain: Chain, citizen_id: int, token: str) -> TokenRecord:
        next_id = max((r.id for r in self.records), default=0) + 1
        record = TokenRecord(id=next_id, citizen_id=citizen_id, token=token, chain=chain)
        self.records.append(record)
        return record

    def _maybe_fail(self, operation: str, chain: Chain) -> None:
        if self.failures <= 0:
            return
        if self.fail_chain is not None and chain != self.fail_chain:
            return
        self.failures -= 1
        raise RecordSourceError(
            operation, RuntimeError("database is locked"), retryable=self.retryable
        )

    def count(self, chain: Chain) -> int:
        self.calls.append(("count", chain))
        self._maybe_fail("count", chain)
        return sum(1 for r in self.records if r.chain == chain)

    def fetch_page(self, chain: Chain, after_id: int, limit: int) -> list[TokenRecord]:
        self.calls.append(("fetch_page", chain, after_id, limit))
        if self.gate is not None and chain == self.gate_chain:
            self.entered.set()
            if not self.gate.wait(timeout=10):
                raise RuntimeError("gate was never opened")
        self._maybe_fail("fetch_page", chain)
        rows = sorted(
            (r for r in self.records if r.chain == chain and r.id > after_id),
            key=lambda r: r.id,
        )
        return rows[:limit]

    def close(self) -> None:
        self.closed = True


def make_records(chain: Chain, pairs, start_id: int = 1) -> list[TokenRecord]:
    """TokenRecords for (citizen_id, token) pairs with consecutive ids."""
    return [
        TokenRecord(id=start_id + i, citizen_id=citizen_id, token=token, chain=chain)
        for i, (citizen_id, token) in enumerate(pairs)
    ]


@pytest.fixture
def eth_records():
    """The three-record ETH dataset."""
    return make_records(Chain.ETH, [(1, "10"), (2, "20"), (1, "30")])


@pytest.fixture
def sample_records(eth_records):
    """Records for every default chain; POL is left empty."""
    return (
        eth_records
        + make_records(Chain.ARB, [(1, "111"), (4, "444")], start_id=10)
        + make_records(Chain.BASE, [(2, "5"), (5, "6"), (6, "7"), (7, "8"), (8, "9")], start_id=20)
    )


@pytest.fixture
def fake_source(sample_records):
    return FakeRecordSource(sample_records)


@pytest.fixture
def store(tmp_path) -> SnapshotStore:
    return SnapshotStore(tmp_path / "merkle_trees", keep_generations=2)


@pytest.fixture
def holder() -> TreeSetHolder:
    return TreeSetHolder()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects the delays a builder would have slept for."""
    return []


@pytest.fixture
def orchestrator(holder, store, fake_source, sleeps) -> RebuildOrchestrator:
    return RebuildOrchestrator(
        holder=holder,
        source_factory=lambda: fake_source,
        store=store,
        chains=DEFAULT_CHAINS,
        page_size=2,
        retry=RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=4.0),
        sleep=sleeps.append,
    )


@pytest.fixture
def proofs(holder) -> ProofService:
    return ProofService(holder)
