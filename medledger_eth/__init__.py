"""
MedLedger Ethereum integration.

Record registry and access manager clients over a shared ledger gateway.
"""

from medledger_eth.access_manager import AccessLedgerClient, AccessLedgerReader
from medledger_eth.bytecode_lock import BytecodeLock
from medledger_eth.chain_client import LedgerGateway
from medledger_eth.metrics import Metrics
from medledger_eth.record_registry import RecordLedgerClient, RecordLedgerReader
from medledger_eth.settings import Settings

__all__ = [
    "AccessLedgerClient",
    "AccessLedgerReader",
    "BytecodeLock",
    "LedgerGateway",
    "Metrics",
    "RecordLedgerClient",
    "RecordLedgerReader",
    "Settings",
]
