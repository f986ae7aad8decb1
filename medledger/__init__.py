"""
MedLedger - medical record pointers and time-bounded access grants on-chain.

Record content lives in content-addressed storage; only the CID and a
keccak-256 integrity digest are committed to the ledger.
"""

__version__ = "0.1.0"

from medledger.errors import (
    ConfigurationError,
    HashMismatch,
    IdentityBusy,
    InvalidInput,
    InvalidInputReason,
    MedLedgerError,
    NetworkError,
    TransactionRejected,
    TransactionReverted,
    UploadFailure,
    UserRejected,
    WalletUnavailable,
)

__all__ = [
    "ConfigurationError",
    "HashMismatch",
    "IdentityBusy",
    "InvalidInput",
    "InvalidInputReason",
    "MedLedgerError",
    "NetworkError",
    "TransactionRejected",
    "TransactionReverted",
    "UploadFailure",
    "UserRejected",
    "WalletUnavailable",
]
