"""
Local input checks shared by the ledger clients and the orchestrators.

Each helper either returns the normalised value or raises InvalidInput
before anything is sent to a collaborator.
"""

from __future__ import annotations

from typing import Optional, Union

from eth_utils import is_address, to_checksum_address

from medledger.errors import InvalidInput, InvalidInputReason
from medledger.hashing import DIGEST_SIZE

# largest value a uint256 contract argument can carry
UINT256_MAX = 2**256 - 1


def require_payload(data: Optional[bytes]) -> bytes:
    """Return an immutable snapshot of the payload."""
    if data is None or len(data) == 0:
        raise InvalidInput(InvalidInputReason.NO_FILE_SELECTED, "Select a file first")
    return bytes(data)


def require_address(value: Optional[str], what: str = "grantee") -> str:
    """Checksummed address, or InvalidInput. No ENS names."""
    if not value or not isinstance(value, str) or not is_address(value.strip()):
        raise InvalidInput(
            InvalidInputReason.INVALID_ADDRESS,
            f"{what} address is invalid or missing: {value!r}",
        )
    return to_checksum_address(value.strip())


def require_record_id(value: Union[int, str, None]) -> int:
    if isinstance(value, bool):
        raise InvalidInput(InvalidInputReason.INVALID_RECORD_ID, f"Invalid record id: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise InvalidInput(InvalidInputReason.INVALID_RECORD_ID, f"Invalid record id: {value!r}")
        value = int(value)
    if not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
        raise InvalidInput(InvalidInputReason.INVALID_RECORD_ID, f"Invalid record id: {value!r}")
    return value


def require_future_expiry(expiry: Union[int, str, None], now: float) -> int:
    """Expiry as integer unix seconds strictly after ``now``."""
    try:
        value = int(expiry)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput(InvalidInputReason.INVALID_EXPIRY, f"Invalid expiry: {expiry!r}") from None
    if value <= now:
        raise InvalidInput(
            InvalidInputReason.INVALID_EXPIRY,
            f"Expiry {value} is not in the future (now={int(now)})",
        )
    if value > UINT256_MAX:
        raise InvalidInput(InvalidInputReason.INVALID_EXPIRY, f"Expiry {value} is out of range")
    return value


def require_cid(cid: Optional[str]) -> str:
    if not cid or not cid.strip():
        raise InvalidInput(InvalidInputReason.INVALID_CID, "CID is empty")
    return cid.strip()


def require_digest(digest: Optional[bytes]) -> bytes:
    if digest is None or len(digest) != DIGEST_SIZE:
        raise InvalidInput(InvalidInputReason.INVALID_DIGEST, "digest must be 32 bytes")
    return bytes(digest)


def decode_sealed_key(key: Union[bytes, str, None]) -> bytes:
    """Sealed key blob as bytes; accepts raw bytes or a 0x-hex string."""
    if key is None:
        return b""
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    if isinstance(key, str) and key.startswith("0x"):
        try:
            return bytes.fromhex(key[2:])
        except ValueError:
            pass
    raise InvalidInput(InvalidInputReason.INVALID_SEALED_KEY, "sealed key must be bytes or 0x-hex")
