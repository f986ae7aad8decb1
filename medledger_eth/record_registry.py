"""
Record registry client.

RecordLedgerReader only reads; RecordLedgerClient adds the write path.
Which one you hold is decided at construction, so "write without a
signer" cannot be expressed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from web3.logs import DISCARD

from medledger.errors import TransactionReverted
from medledger.models import Record, TransactionReceipt
from medledger.session import IdentityHandle
from medledger.validation import require_cid, require_digest, require_record_id
from medledger_eth.chain_client import LedgerGateway, to_receipt

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "00" * 20

# Minimal ABI (read/write only what we use)
RECORD_REGISTRY_ABI = [
    {
        "type": "function",
        "name": "addRecord",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "cid", "type": "string"},
            {"name": "hash", "type": "bytes32"},
        ],
        "outputs": [{"name": "recordId", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getRecord",
        "stateMutability": "view",
        "inputs": [{"name": "recordId", "type": "uint256"}],
        "outputs": [
            {"name": "id", "type": "uint256"},
            {"name": "owner", "type": "address"},
            {"name": "cid", "type": "string"},
            {"name": "hash", "type": "bytes32"},
            {"name": "timestamp", "type": "uint256"},
        ],
    },
    {
        "type": "event",
        "name": "RecordAdded",
        "anonymous": False,
        "inputs": [
            {"name": "recordId", "type": "uint256", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
            {"name": "cid", "type": "string", "indexed": False},
            {"name": "hash", "type": "bytes32", "indexed": False},
        ],
    },
]


class RecordLedgerReader:
    """Read-only view of the record registry; works with observer identities."""

    writable = False

    def __init__(self, gateway: LedgerGateway, address: str):
        self.gateway = gateway
        self.contract = gateway.contract(address, RECORD_REGISTRY_ABI)

    @property
    def address(self) -> str:
        return self.contract.address

    def fetch(self, record_id: Union[int, str]) -> Optional[Record]:
        """
        Look up a record by id.

        Returns:
            The record, or None if the registry has no such id

        Raises:
            InvalidInput: If record_id is malformed
            NetworkError: If the node could not be reached
        """
        rid = require_record_id(record_id)
        fn = self.gateway.bind(self.contract.functions.getRecord, rid)
        try:
            fields = self.gateway.call(fn, "getRecord")
        except TransactionReverted:
            logger.info(f"Record {rid} not found (getRecord reverted)")
            return None

        fields = tuple(fields)
        if str(fields[1]).lower() == ZERO_ADDRESS:
            logger.info(f"Record {rid} not found (empty slot)")
            return None
        return Record.from_chain(fields)


class RecordLedgerClient(RecordLedgerReader):
    """Read-write record registry client."""

    writable = True

    def register(
        self,
        identity: IdentityHandle,
        cid: str,
        digest: bytes,
        *,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        """
        Submit addRecord(cid, digest) and wait for confirmation.

        Args:
            identity: Signing identity of the registrant
            cid: Content identifier returned by the store
            digest: 32-byte keccak256 of the uploaded bytes
            timeout: Confirmation bound in seconds (gateway default if None)

        Returns:
            Receipt carrying the ledger-assigned record id (if the
            RecordAdded event was found)
        """
        cid = require_cid(cid)
        digest = require_digest(digest)
        raw = self.gateway.transact(
            identity,
            self.gateway.bind(self.contract.functions.addRecord, cid, digest),
            "addRecord",
            timeout=timeout,
        )
        return to_receipt(raw, record_id=self._record_id_from(raw))

    def _record_id_from(self, raw: Any) -> Optional[int]:
        events = self.contract.events.RecordAdded().process_receipt(raw, errors=DISCARD)
        for ev in events:
            return int(ev["args"]["recordId"])
        logger.warning(f"No RecordAdded event in {raw['transactionHash']!r}; record id unknown")
        return None
