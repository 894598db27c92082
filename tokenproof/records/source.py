"""Record source interface and the token record model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from tokenproof.chains import Chain


@dataclass(frozen=True)
class TokenRecord:
    """One citizen token row, as read for tree building."""

    id: int
    citizen_id: int
    token: str
    chain: Chain

    def __post_init__(self) -> None:
        if self.id <= 0:
            raise ValueError(f"id must be positive, got {self.id}")
        if self.citizen_id < 0:
            raise ValueError(f"citizen_id must be unsigned, got {self.citizen_id}")


@runtime_checkable
class RecordSource(Protocol):
    """Cursor-paginated access to token records for one chain at a time.

    Implementations wrap backend failures in RecordSourceError, marking the
    ones worth retrying.
    """

    def count(self, chain: Chain) -> int: ...

    def fetch_page(self, chain: Chain, after_id: int, limit: int) -> list[TokenRecord]:
        """Records with ``id > after_id``, ascending by id, at most *limit*."""
        ...

    def close(self) -> None: ...
