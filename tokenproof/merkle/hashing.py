"""Keccak-256 primitives: leaf hashing, pair combination, hex helpers."""

from __future__ import annotations

import re
from collections.abc import Sequence

from eth_utils import decode_hex, encode_hex, keccak

from tokenproof.errors import InvalidLeafInputError

UINT256_MAX = 2**256 - 1
HASH_SIZE = 32

_DECIMAL_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"0x[0-9a-fA-F]+")

# Significant digits in UINT256_MAX, per base.
_MAX_DECIMAL_DIGITS = len(str(UINT256_MAX))
_MAX_HEX_DIGITS = HASH_SIZE * 2


def _parse_text(text: str, field: str) -> int:
    """Decimal or 0x-prefixed hex text to int, bounded before conversion."""
    if _DECIMAL_RE.fullmatch(text):
        digits, base, limit = text, 10, _MAX_DECIMAL_DIGITS
    elif _HEX_RE.fullmatch(text):
        digits, base, limit = text[2:], 16, _MAX_HEX_DIGITS
    else:
        raise InvalidLeafInputError(f"{field} must be decimal or 0x-hex text, got {text!r}")
    significant = digits.lstrip("0") or "0"
    if len(significant) > limit:
        raise InvalidLeafInputError(f"{field} out of uint256 range: {len(significant)} digits")
    return int(significant, base)


def _uint256(value: int | str, field: str) -> bytes:
    """Encode *value* as a 32-byte big-endian unsigned integer."""
    if isinstance(value, bool):
        raise InvalidLeafInputError(f"{field} must be an integer, got {value!r}")
    if isinstance(value, str):
        value = _parse_text(value.strip(), field)
    if not isinstance(value, int):
        raise InvalidLeafInputError(f"{field} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise InvalidLeafInputError(f"{field} out of uint256 range: {value}")
    return value.to_bytes(HASH_SIZE, "big")


def hash_token(token: int | str, citizen_id: int | str) -> bytes:
    """Leaf for a (token, citizen) pair.

    keccak256(abi.encode(uint256 token, uint256 citizenId)). Used both when
    building trees and when answering proof requests.
    """
    return keccak(_uint256(token, "token") + _uint256(citizen_id, "citizen_id"))


def combine_pair(left: bytes, right: bytes, sort_pairs: bool = True) -> bytes:
    """Parent hash of two sibling nodes."""
    if sort_pairs and right < left:
        left, right = right, left
    return keccak(left + right)


def to_hex(value: bytes) -> str:
    return encode_hex(value)


def from_hex(value: str) -> bytes:
    """Decode a 0x-prefixed (or bare) hex string.

    Raises ValueError on malformed input.
    """
    if not isinstance(value, str):
        raise ValueError(f"expected hex string, got {type(value).__name__}")
    return decode_hex(value)


def verify_proof(leaf: bytes, proof: Sequence[bytes], root: bytes) -> bool:
    """Fold *proof* onto *leaf* with the sorted-pair rule and compare to *root*.

    This is the check a client performs; the service never calls it on the
    request path.
    """
    node = leaf
    for sibling in proof:
        node = combine_pair(node, sibling, sort_pairs=True)
    return node == root
