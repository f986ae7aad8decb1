from __future__ import annotations

import time
from typing import Literal, Optional

from pydantic import BaseModel

from medledger.hashing import to_hex32


def now_unix() -> int:
    return int(time.time())


class Record(BaseModel):
    """
    A registered record pointer as held by the ledger.

    Created exactly once per registration transaction; the ledger has no
    update path.
    """

    record_id: int
    cid: str
    digest: str  # 0x-prefixed keccak256 of the uploaded bytes
    owner: str
    registered_at: Optional[int] = None  # block timestamp, seconds

    model_config = {"frozen": True}

    @classmethod
    def from_chain(cls, fields: tuple) -> Record:
        """Build from the getRecord tuple (id, owner, cid, hash, timestamp)."""
        record_id, owner, cid, digest, timestamp = fields
        return cls(
            record_id=int(record_id),
            owner=owner,
            cid=cid,
            digest=to_hex32(bytes(digest)),
            registered_at=int(timestamp) or None,
        )


class AccessGrant(BaseModel):
    kind: Literal["AccessGrant"] = "AccessGrant"
    record_id: int
    grantee: str
    expiry: int  # seconds since epoch
    sealed_key: str = "0x"  # opaque, hex-encoded

    model_config = {"frozen": True}

    def is_active(self, now: Optional[float] = None) -> bool:
        return (now_unix() if now is None else now) < self.expiry


class TransactionReceipt(BaseModel):
    """Normalised receipt of a confirmed ledger transaction."""

    tx_hash: str
    block_number: int
    status: int = 1
    gas_used: Optional[int] = None
    record_id: Optional[int] = None  # set for registrations (RecordAdded event)

    model_config = {"frozen": True}
