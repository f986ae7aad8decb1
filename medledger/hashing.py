"""
Integrity digest of record payloads.

digest = Keccak256(payload bytes), committed on-chain as bytes32 next to the
CID. Computed client-side from the exact bytes that were uploaded.
"""

from __future__ import annotations

from typing import Final

from eth_utils import keccak

DIGEST_SIZE: Final[int] = 32


def to_hex32(b: bytes) -> str:
    """Convert 32-byte value to 0x-prefixed hex string."""
    if len(b) != DIGEST_SIZE:
        raise ValueError("expected 32-byte value")
    return "0x" + b.hex()


class IntegrityHasher:
    """Keccak-256 over raw payload bytes. Stateless."""

    algorithm = "keccak256"

    def digest(self, data: bytes) -> bytes:
        return keccak(bytes(data))

    def hexdigest(self, data: bytes) -> str:
        return to_hex32(self.digest(data))

    def matches(self, data: bytes, expected: bytes) -> bool:
        return self.digest(data) == bytes(expected)
