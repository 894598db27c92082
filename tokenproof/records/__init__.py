"""Token record sources."""

from tokenproof.records.seed import seed_tokens
from tokenproof.records.source import RecordSource, TokenRecord
from tokenproof.records.sqlite_source import SQLiteRecordSource

__all__ = [
    "RecordSource",
    "SQLiteRecordSource",
    "TokenRecord",
    "seed_tokens",
]
