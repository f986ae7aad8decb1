"""
Access manager client.

A grant is a singleton per (record, grantee): granting again overwrites the
expiry and sealed key, revoking removes it, and expiry is evaluated by the
ledger whenever hasAccess is queried.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Union

from medledger.models import TransactionReceipt
from medledger.session import IdentityHandle
from medledger.validation import (
    decode_sealed_key,
    require_address,
    require_future_expiry,
    require_record_id,
)
from medledger_eth.chain_client import LedgerGateway, to_receipt

logger = logging.getLogger(__name__)

ACCESS_MANAGER_ABI = [
    {
        "type": "function",
        "name": "grantAccess",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "recordId", "type": "uint256"},
            {"name": "grantee", "type": "address"},
            {"name": "expiry", "type": "uint256"},
            {"name": "encKey", "type": "bytes"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "revokeAccess",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "recordId", "type": "uint256"},
            {"name": "grantee", "type": "address"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "hasAccess",
        "stateMutability": "view",
        "inputs": [
            {"name": "recordId", "type": "uint256"},
            {"name": "grantee", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


class AccessLedgerReader:
    """Read-only access checks."""

    writable = False

    def __init__(self, gateway: LedgerGateway, address: str):
        self.gateway = gateway
        self.contract = gateway.contract(address, ACCESS_MANAGER_ABI)

    def check(self, record_id: Union[int, str], grantee: str) -> bool:
        """True iff a grant exists for the pair and has not expired."""
        rid = require_record_id(record_id)
        who = require_address(grantee)
        fn = self.gateway.bind(self.contract.functions.hasAccess, rid, who)
        ok = self.gateway.call(fn, "hasAccess")
        return bool(ok)


class AccessLedgerClient(AccessLedgerReader):
    """Read-write access manager client."""

    writable = True

    def __init__(
        self,
        gateway: LedgerGateway,
        address: str,
        *,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(gateway, address)
        self.clock = clock

    def grant(
        self,
        identity: IdentityHandle,
        record_id: Union[int, str],
        grantee: str,
        expiry: Union[int, str],
        sealed_key: Union[bytes, str, None] = b"",
        *,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        """
        Grant (or re-grant) access until ``expiry``.

        Expiry futurity is checked locally first so no submission is spent on
        a grant that would be dead on arrival.

        Raises:
            InvalidInput: INVALID_EXPIRY / INVALID_ADDRESS / INVALID_RECORD_ID
        """
        rid = require_record_id(record_id)
        who = require_address(grantee)
        exp = require_future_expiry(expiry, self.clock())
        key = decode_sealed_key(sealed_key)
        raw = self.gateway.transact(
            identity,
            self.gateway.bind(self.contract.functions.grantAccess, rid, who, exp, key),
            "grantAccess",
            timeout=timeout,
        )
        return to_receipt(raw)

    def revoke(
        self,
        identity: IdentityHandle,
        record_id: Union[int, str],
        grantee: str,
        *,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        """Revoke access. Revoking an absent grant is not an error."""
        rid = require_record_id(record_id)
        who = require_address(grantee)
        raw = self.gateway.transact(
            identity,
            self.gateway.bind(self.contract.functions.revokeAccess, rid, who),
            "revokeAccess",
            timeout=timeout,
        )
        return to_receipt(raw)
