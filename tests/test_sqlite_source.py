"""Tests for SQLiteRecordSource and the development seeder."""

from __future__ import annotations

import pytest

from tokenproof.chains import Chain
from tokenproof.errors import RecordSourceError
from tokenproof.merkle import StreamingTreeBuilder
from tokenproof.records import RecordSource, SQLiteRecordSource, TokenRecord, seed_tokens
from tokenproof.records.seed import random_token


@pytest.fixture
def source(tmp_path) -> SQLiteRecordSource:
    src = SQLiteRecordSource(db_path=str(tmp_path / "data" / "tokens.db"))
    yield src
    src.close()


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocol:
    def test_satisfies_record_source(self, source):
        assert isinstance(source, RecordSource)

    def test_creates_parent_directory(self, tmp_path):
        src = SQLiteRecordSource(db_path=str(tmp_path / "nested" / "dir" / "t.db"))
        src.close()
        assert (tmp_path / "nested" / "dir" / "t.db").exists()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_count_per_chain(self, source):
        source.insert_many([(1, "10", Chain.ETH), (2, "20", Chain.ETH), (1, "5", Chain.ARB)])
        assert source.count(Chain.ETH) == 2
        assert source.count(Chain.ARB) == 1
        assert source.count(Chain.POL) == 0

    def test_fetch_page_in_id_order(self, source):
        source.insert_many([(c, str(c * 10), Chain.ETH) for c in range(1, 6)])

        first = source.fetch_page(Chain.ETH, 0, 2)
        second = source.fetch_page(Chain.ETH, first[-1].id, 2)
        rest = source.fetch_page(Chain.ETH, second[-1].id, 10)

        ids = [r.id for r in first + second + rest]
        assert ids == sorted(ids)
        assert len(ids) == 5
        assert source.fetch_page(Chain.ETH, rest[-1].id, 10) == []

    def test_fetch_page_filters_chain(self, source):
        source.insert_many([(1, "10", Chain.ETH), (1, "11", Chain.BASE), (2, "20", Chain.ETH)])
        page = source.fetch_page(Chain.BASE, 0, 10)
        assert len(page) == 1
        assert page[0] == TokenRecord(id=page[0].id, citizen_id=1, token="11", chain=Chain.BASE)

    def test_large_token_text_survives(self, source):
        big = str(2**200)
        source.insert_many([(1, big, Chain.ETH)])
        assert source.fetch_page(Chain.ETH, 0, 1)[0].token == big

    def test_stats(self, source):
        source.insert_many([(1, "1", Chain.ETH), (1, "2", Chain.ETH), (1, "3", Chain.POL)])
        assert source.stats() == {"ETH": 2, "POL": 1}

    def test_feeds_builder(self, source):
        source.insert_many([(1, "10", Chain.ETH), (2, "20", Chain.ETH), (3, "30", Chain.ETH)])
        result = StreamingTreeBuilder(source, page_size=1).build(Chain.ETH)
        assert result.record_count == 3


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_operational_error_is_retryable(self, source):
        source._conn.execute("DROP TABLE citizen_tokens")
        with pytest.raises(RecordSourceError) as exc_info:
            source.count(Chain.ETH)
        assert exc_info.value.retryable is True
        assert exc_info.value.operation == "count"

    def test_closed_connection_is_not_retryable(self, tmp_path):
        src = SQLiteRecordSource(db_path=str(tmp_path / "t.db"))
        src.close()
        with pytest.raises(RecordSourceError) as exc_info:
            src.fetch_page(Chain.ETH, 0, 10)
        assert exc_info.value.retryable is False


class TestTokenRecord:
    def test_rejects_non_positive_id(self):
        with pytest.raises(ValueError):
            TokenRecord(id=0, citizen_id=1, token="1", chain=Chain.ETH)

    def test_rejects_negative_citizen(self):
        with pytest.raises(ValueError):
            TokenRecord(id=1, citizen_id=-1, token="1", chain=Chain.ETH)


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


class TestSeed:
    def test_random_token_is_48_bit_decimal(self):
        for _ in range(50):
            value = random_token()
            assert value.isdigit()
            assert 0 <= int(value) < 2**48

    def test_seed_counts(self, source):
        inserted = seed_tokens(source, citizens=3, tokens_per_chain=2, chains=[Chain.ETH, Chain.ARB])
        assert inserted == 12
        assert source.stats() == {"ETH": 6, "ARB": 6}

    def test_citizen_range(self, source):
        seed_tokens(source, citizens=2, tokens_per_chain=1, chains=[Chain.POL], first_citizen=50)
        page = source.fetch_page(Chain.POL, 0, 10)
        assert sorted(r.citizen_id for r in page) == [50, 51]

    def test_rejects_negative(self, source):
        with pytest.raises(ValueError):
            seed_tokens(source, citizens=-1, tokens_per_chain=1, chains=[Chain.ETH])
