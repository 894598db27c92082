"""Populate a SQLite record store with random citizen tokens for development."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Sequence

from tokenproof.chains import Chain
from tokenproof.records.sqlite_source import SQLiteRecordSource

logger = logging.getLogger(__name__)

TOKEN_BITS = 48


def random_token() -> str:
    """Random integer in [0, 2**48), as decimal text."""
    return str(secrets.randbits(TOKEN_BITS))


def seed_tokens(
    source: SQLiteRecordSource,
    citizens: int,
    tokens_per_chain: int,
    chains: Sequence[Chain],
    first_citizen: int = 1,
) -> int:
    """Insert *tokens_per_chain* tokens per citizen per chain. Returns the row count."""
    if citizens < 0 or tokens_per_chain < 0:
        raise ValueError("citizens and tokens_per_chain must be non-negative")

    inserted = 0
    for citizen_id in range(first_citizen, first_citizen + citizens):
        for chain in chains:
            rows = [(citizen_id, random_token(), chain) for _ in range(tokens_per_chain)]
            inserted += source.insert_many(rows)
        logger.debug("seeded citizen %d across %d chain(s)", citizen_id, len(chains))
    logger.info("seeded %d token(s) for %d citizen(s)", inserted, citizens)
    return inserted
